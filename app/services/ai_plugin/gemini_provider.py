"""
Gemini Chat Provider - real LLM replies via google-generativeai.

Fails gracefully; the registry falls back to the mock provider.
"""

from app.services.ai_plugin.base import ChatProvider, ChatReply
from app.core.settings import settings
from typing import Dict, List, Optional
import logging
import time

logger = logging.getLogger(__name__)

# Only the last turns are sent as context
MAX_HISTORY_TURNS = 10

GENERATION_CONFIG = {
    "temperature": 0.7,
    "top_k": 40,
    "top_p": 0.95,
    "max_output_tokens": 500,
}


class GeminiChatProvider(ChatProvider):
    """
    Google Gemini provider.

    Requires GEMINI_API_KEY in environment variables.
    """

    MODEL_VERSION = "1.0"

    def __init__(self):
        self.api_key = settings.GEMINI_API_KEY
        self.model_name = settings.GEMINI_MODEL
        self.enabled = bool(self.api_key and self.api_key.strip())

        if self.enabled:
            logger.info(f"✅ Gemini Chat Provider initialized: {self.model_name}")
        else:
            logger.info("⚠️ Gemini Chat Provider disabled: No API key configured")

    def is_enabled(self) -> bool:
        return self.enabled

    def get_model_info(self) -> Dict[str, str]:
        return {
            "name": self.model_name,
            "version": self.MODEL_VERSION
        }

    def get_timeout_seconds(self) -> float:
        return settings.AI_TIMEOUT_SECONDS

    def generate_reply(
        self,
        system_prompt: str,
        message: str,
        role: str = "guest",
        history: Optional[List[Dict]] = None
    ) -> ChatReply:
        if not self.enabled:
            return ChatReply(
                text="",
                model_name=self.model_name,
                model_version=self.MODEL_VERSION,
                error="Gemini API key not configured"
            )

        started = time.monotonic()
        try:
            prompt = self._build_prompt(system_prompt, message, history or [])
            text = self._call_gemini_api(prompt)
            if not text or not text.strip():
                raise ValueError("Empty response from Gemini")

            return ChatReply(
                text=text.strip(),
                model_name=self.model_name,
                model_version=self.MODEL_VERSION,
                response_time_ms=int((time.monotonic() - started) * 1000)
            )

        except Exception as e:
            logger.warning(f"⚠️ Gemini API call failed: {str(e)}")
            return ChatReply(
                text="",
                model_name=self.model_name,
                model_version=self.MODEL_VERSION,
                response_time_ms=int((time.monotonic() - started) * 1000),
                error=f"Gemini API error: {str(e)}"
            )

    def _build_prompt(self, system_prompt: str, message: str, history: List[Dict]) -> str:
        """Flatten system prompt, history and the new message into one transcript."""
        turns = [f"user: {system_prompt}"]
        for turn in history[-MAX_HISTORY_TURNS:]:
            turns.append(f"{turn.get('role', 'user')}: {turn.get('content', '')}")
        turns.append(f"user: {message}")
        return "\n\n".join(turns)

    def _call_gemini_api(self, prompt: str) -> str:
        import google.generativeai as genai

        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(self.model_name, generation_config=GENERATION_CONFIG)
        response = model.generate_content(
            prompt,
            request_options={"timeout": self.get_timeout_seconds()}
        )
        return response.text
