"""
Chat Service - GoSafe Assistant.

Builds the role-specific prompt, asks the provider registry for a reply,
and turns [ACTION:type:label] markers into structured actions. Signed-in
users get their turns stored in "chat_messages".
"""

from firebase_admin import firestore
from app.config.firebase import get_db
from app.services.ai_plugin import generate_with_fallback
from app.utils.firestore_helpers import where_filter, docs_to_list, sort_by_timestamp
from typing import Dict, List, Optional, Tuple
import logging
import re

logger = logging.getLogger(__name__)

ACTION_PATTERN = re.compile(r"\[ACTION:(\w+):([^\]]+)\]")

EMERGENCY_KEYWORDS = [
    "emergency",
    "help",
    "danger",
    "unsafe",
    "lost",
    "trouble",
    "panic",
    "scared",
    "attack",
    "theft",
    "medical",
]
LOCATION_KEYWORDS = ["where", "direction", "location", "navigate", "route", "way"]

CHAT_ROLES = ("tourist", "authority", "admin", "guest")

BASE_PROMPT = (
    "You are GoSafe Assistant, an AI helper for the Smart Tourist Safety System in Northeast India. "
    "You are knowledgeable about local culture, safety protocols, emergency procedures, and tourist guidance."
)

ROLE_PROMPTS = {
    "tourist": """You help tourists with:
- Safety tips and local guidance for Northeast India
- Emergency procedures and SOS assistance
- Cultural information and travel advice
- Local attractions and safe zones
- Emergency contact information

If a user mentions distress, danger, or emergency keywords, immediately suggest using the SOS button.
For safety concerns, provide actionable advice and suggest emergency contacts.""",
    "authority": """You help tourism authorities with:
- Tourist safety monitoring and alerts
- Emergency response coordination
- Safety protocol guidance
- Tourist assistance procedures
- System operation support

Focus on operational efficiency and tourist safety management.""",
    "admin": """You help system administrators with:
- Platform management and oversight
- User management guidance
- System analytics and insights
- Technical support assistance
- Policy and procedure clarification

Focus on system administration and platform optimization.""",
    "guest": """You help visitors learn about:
- GoSafe platform features and benefits
- Tourist safety in Northeast India
- Registration and onboarding process
- General tourism information
- Platform capabilities

Encourage them to register for full access to safety features.""",
}

GUIDELINES = """Guidelines:
1. Be helpful, concise, and safety-focused
2. For emergencies, suggest immediate SOS action
3. Provide actionable advice
4. Stay within your role's scope
5. Be culturally sensitive to Northeast India
6. Keep responses under 200 words unless specifically needed

If you suggest actions, format them as: [ACTION:type:label]
Available actions: sos, show_id, call_emergency, navigate"""


def build_system_prompt(role: str, language: str = "en") -> str:
    """Unknown roles get the tourist prompt."""
    parts = [BASE_PROMPT, ROLE_PROMPTS.get(role, ROLE_PROMPTS["tourist"])]
    if language and language != "en":
        parts.append(f"Respond in {language} language when possible.")
    parts.append(GUIDELINES)
    return "\n\n".join(parts)


def parse_actions(response: str, role: str, user_message: str) -> Tuple[str, List[Dict]]:
    """
    Strip [ACTION:type:label] markers from the reply and collect them.

    Tourists also get an "sos" action when either side mentions an emergency
    keyword, and "navigate" when their message asks about a location.
    """
    actions = [
        {"type": match.group(1), "label": match.group(2).strip(), "data": None}
        for match in ACTION_PATTERN.finditer(response)
    ]
    cleaned = re.sub(r"[ \t]{2,}", " ", ACTION_PATTERN.sub("", response)).strip()

    if role == "tourist":
        user_text = user_message.lower()
        reply_text = cleaned.lower()
        if (
            any(k in user_text or k in reply_text for k in EMERGENCY_KEYWORDS)
            and not any(a["type"] == "sos" for a in actions)
        ):
            actions.append({"type": "sos", "label": "Emergency SOS", "data": None})
        if (
            any(k in user_text for k in LOCATION_KEYWORDS)
            and not any(a["type"] == "navigate" for a in actions)
        ):
            actions.append({"type": "navigate", "label": "Show on Map", "data": None})

    return cleaned, actions


class ChatService:
    """
    Assistant chat over the provider registry.
    """

    def __init__(self):
        self.db = get_db()

    def chat(
        self,
        message: str,
        role: str = "guest",
        language: str = "en",
        history: Optional[List[Dict]] = None,
        user_id: Optional[str] = None,
    ) -> Dict:
        """
        Returns:
            {"response", "actions", "provider", "error"}. Never raises.
        """
        role = role if role in CHAT_ROLES else "guest"
        try:
            if user_id and not history:
                history = self.get_history(user_id)

            reply = generate_with_fallback(build_system_prompt(role, language), message, role, history or [])
            text, actions = parse_actions(reply.text, role, message)
            if not text:
                text = "Sorry, I could not generate a response."

            if user_id:
                self._store_turns(user_id, role, language, message, text, actions, reply.model_name)

            return {
                "response": text,
                "actions": actions,
                "provider": reply.model_name,
                "error": reply.error,
            }
        except Exception as e:
            logger.error(f"Chat failed: {str(e)}", exc_info=True)
            _, actions = parse_actions("", role, message)
            return {
                "response": "I'm having trouble right now. For emergencies, dial 112.",
                "actions": actions,
                "provider": "none",
                "error": str(e),
            }

    def _store_turns(
        self,
        user_id: str,
        role: str,
        language: str,
        message: str,
        response: str,
        actions: List[Dict],
        model: str,
    ) -> None:
        try:
            messages = self.db.collection("chat_messages")
            messages.document().set({
                "user_id": user_id,
                "message_type": "user",
                "content": message,
                "created_at": firestore.SERVER_TIMESTAMP,
            })
            messages.document().set({
                "user_id": user_id,
                "message_type": "assistant",
                "content": response,
                "metadata": {"model": model, "actions": actions, "user_role": role, "language": language},
                "created_at": firestore.SERVER_TIMESTAMP,
            })
        except Exception as e:
            logger.error(f"Failed to store chat turns for {user_id}: {str(e)}")

    def get_history(self, user_id: str, limit: int = 10) -> List[Dict]:
        """Last stored turns, oldest first, as {"role", "content"}."""
        try:
            query = where_filter(self.db.collection("chat_messages"), "user_id", "==", user_id)
            records = sort_by_timestamp(docs_to_list(query.stream()), "created_at", descending=False)
        except Exception as e:
            logger.error(f"Failed to load chat history for {user_id}: {str(e)}")
            return []
        return [{"role": r.get("message_type"), "content": r.get("content")} for r in records[-limit:]]


# Singleton instance
_chat_service = None


def get_chat_service() -> ChatService:
    """Get singleton chat service instance."""
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service
