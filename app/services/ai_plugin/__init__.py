"""
AI Plug-in Architecture for the assistant chat.

Gemini is used when configured; the rule-based mock provider is always
available as a fallback. Providers never raise.
"""

from app.services.ai_plugin.base import ChatProvider, ChatReply
from app.services.ai_plugin.gemini_provider import GeminiChatProvider
from app.services.ai_plugin.mock_provider import MockChatProvider
from app.services.ai_plugin.registry import get_chat_provider, generate_with_fallback

__all__ = [
    "ChatProvider",
    "ChatReply",
    "GeminiChatProvider",
    "MockChatProvider",
    "get_chat_provider",
    "generate_with_fallback",
]
