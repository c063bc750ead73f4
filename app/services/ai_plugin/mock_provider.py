"""
Mock Chat Provider - rule-based fallback when Gemini is unavailable.

Always available and never fails.
"""

from app.services.ai_plugin.base import ChatProvider, ChatReply
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)

EMERGENCY_WORDS = ["emergency", "help", "danger", "unsafe", "lost", "attack", "theft", "scared", "panic"]
MEDICAL_WORDS = ["medical", "hospital", "doctor", "injured", "sick", "ambulance"]
ID_WORDS = ["digital id", "tourist id", "my id", "aadhaar", "passport"]
PLATFORM_WORDS = ["register", "sign up", "account", "features", "gosafe"]
DIRECTION_WORDS = ["where", "direction", "navigate", "route", "way"]


class MockChatProvider(ChatProvider):
    """
    Keyword-matched canned replies.

    Used when:
    - AI is disabled in config
    - Gemini fails
    - No API key is available
    """

    MODEL_NAME = "mock-rules-v1"
    MODEL_VERSION = "1.0.0"
    TIMEOUT_SECONDS = 0.1  # Instant (no network call)

    def __init__(self):
        logger.info(f"✅ Mock Chat Provider initialized: {self.MODEL_NAME}")

    def is_enabled(self) -> bool:
        """Mock provider is always enabled (fallback)."""
        return True

    def get_model_info(self) -> Dict[str, str]:
        return {
            "name": self.MODEL_NAME,
            "version": self.MODEL_VERSION
        }

    def get_timeout_seconds(self) -> float:
        return self.TIMEOUT_SECONDS

    def generate_reply(
        self,
        system_prompt: str,
        message: str,
        role: str = "guest",
        history: Optional[List[Dict]] = None
    ) -> ChatReply:
        try:
            return ChatReply(
                text=self._reply_for(message.lower(), role),
                model_name=self.MODEL_NAME,
                model_version=self.MODEL_VERSION,
                response_time_ms=0
            )
        except Exception as e:
            logger.error(f"Mock chat provider error: {e}")
            return ChatReply(
                text="I'm having trouble right now. For emergencies, dial 112.",
                model_name=self.MODEL_NAME,
                model_version=self.MODEL_VERSION,
                error=str(e)
            )

    def _reply_for(self, text: str, role: str) -> str:
        if any(word in text for word in MEDICAL_WORDS):
            return (
                "For medical emergencies call 108 for an ambulance. "
                "Stay where you are if it is safe and share your live location. "
                "[ACTION:call_emergency:Call Ambulance (108)]"
            )
        if any(word in text for word in EMERGENCY_WORDS):
            if role == "tourist":
                return (
                    "If you are in danger, press the SOS button now. Local police and your "
                    "emergency contacts will be alerted with your location. You can also dial 112. "
                    "[ACTION:call_emergency:Call 112]"
                )
            return "For emergencies in India dial 112. Police: 100, Ambulance: 108, Tourism helpline: 1363."
        if any(word in text for word in ID_WORDS):
            if role == "tourist":
                return "Your Digital Tourist ID is available in your dashboard. [ACTION:show_id:Show my Digital ID]"
            return "Digital Tourist IDs are issued at registration and verified with an integrity hash."
        if any(word in text for word in DIRECTION_WORDS):
            return (
                "Stick to marked safe zones and main roads, especially after dark. "
                "The map shows geofenced danger and restricted areas along your route."
            )
        if role == "guest" and any(word in text for word in PLATFORM_WORDS):
            return (
                "GoSafe offers a Digital Tourist ID, one-tap SOS, geofence alerts and live safety "
                "scores for travel in Northeast India. Register to unlock these features."
            )
        if role == "authority":
            return "Use the police dashboard to review active alerts, tourist clusters and missing person cases."
        if role == "admin":
            return "The admin console covers user management, authority accounts and platform analytics."
        return (
            "I'm GoSafe Assistant. I can help with safety tips, emergency procedures and travel "
            "guidance for Northeast India. What do you need?"
        )
