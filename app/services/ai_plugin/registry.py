"""
Chat Provider Registry.

Manages provider selection and fallback logic.
"""

from app.services.ai_plugin.base import ChatProvider, ChatReply
from app.services.ai_plugin.gemini_provider import GeminiChatProvider
from app.services.ai_plugin.mock_provider import MockChatProvider
from app.core.settings import settings
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class ChatProviderRegistry:
    """
    Registry for chat providers, in priority order.
    """

    def __init__(self):
        self.providers: List[ChatProvider] = []
        self._initialize_providers()

    def _initialize_providers(self):
        if not settings.AI_ENABLED:
            logger.info("⚠️ AI is disabled globally (AI_ENABLED=false), using mock provider only")
            self.providers.append(MockChatProvider())
            return

        # Priority 1: Gemini (if API key available)
        gemini_provider = GeminiChatProvider()
        if gemini_provider.is_enabled():
            self.providers.append(gemini_provider)
            logger.info("✅ Gemini Chat Provider registered")

        # Priority 2: Mock (always available as fallback)
        self.providers.append(MockChatProvider())
        logger.info("✅ Mock Chat Provider registered (fallback)")

    def get_provider(self) -> Optional[ChatProvider]:
        for provider in self.providers:
            if provider.is_enabled():
                return provider
        logger.error("⚠️ No chat providers available")
        return None

    def generate_with_fallback(
        self,
        system_prompt: str,
        message: str,
        role: str = "guest",
        history: Optional[List[Dict]] = None
    ) -> ChatReply:
        """
        Try providers in priority order until one succeeds.
        Always returns a ChatReply.
        """
        errors = []
        for provider in self.providers:
            name = provider.get_model_info()["name"]
            try:
                reply = provider.generate_reply(system_prompt, message, role, history)
                if reply.error:
                    logger.warning(f"Provider {name} returned error: {reply.error}")
                    errors.append(reply.error)
                    continue
                if errors:
                    # Keep the primary provider's failure visible to callers
                    reply.error = "; ".join(errors)
                return reply
            except Exception as e:
                logger.warning(f"Provider {name} failed: {e}")
                errors.append(str(e))

        logger.error("⚠️ All chat providers failed, using safe defaults")
        reply = MockChatProvider().generate_reply(system_prompt, message, role, history)
        reply.error = "; ".join(errors) or reply.error
        return reply


# Global registry instance (singleton)
_registry: Optional[ChatProviderRegistry] = None


def _get_registry() -> ChatProviderRegistry:
    global _registry
    if _registry is None:
        _registry = ChatProviderRegistry()
    return _registry


def get_chat_provider() -> Optional[ChatProvider]:
    """Get the best available chat provider."""
    return _get_registry().get_provider()


def generate_with_fallback(
    system_prompt: str,
    message: str,
    role: str = "guest",
    history: Optional[List[Dict]] = None
) -> ChatReply:
    """Main entry point for chat replies."""
    return _get_registry().generate_with_fallback(system_prompt, message, role, history)
