"""
Chat Provider Base Interface.

Defines the contract for assistant chat providers.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class ChatReply:
    """
    Standardized provider reply.

    Raw text may still contain [ACTION:type:label] markers; the chat
    service strips them.
    """

    def __init__(
        self,
        text: str,
        model_name: str,
        model_version: str,
        inference_timestamp: Optional[datetime] = None,
        response_time_ms: Optional[int] = None,
        error: Optional[str] = None
    ):
        self.text = text
        self.model_name = model_name
        self.model_version = model_version
        self.inference_timestamp = inference_timestamp or datetime.now(timezone.utc)
        self.response_time_ms = response_time_ms
        self.error = error  # If the provider failed, error message stored here

    def to_dict(self) -> Dict:
        result = {
            "text": self.text,
            "model_name": self.model_name,
            "model_version": self.model_version,
            "inference_timestamp": self.inference_timestamp.isoformat(),
        }
        if self.response_time_ms is not None:
            result["response_time_ms"] = self.response_time_ms
        if self.error:
            result["error"] = self.error
        return result


class ChatProvider(ABC):
    """
    Abstract base class for chat providers.
    """

    @abstractmethod
    def is_enabled(self) -> bool:
        """True if the provider is configured and ready."""
        pass

    @abstractmethod
    def get_model_info(self) -> Dict[str, str]:
        """Dict with 'name' and 'version' keys."""
        pass

    @abstractmethod
    def generate_reply(
        self,
        system_prompt: str,
        message: str,
        role: str = "guest",
        history: Optional[List[Dict]] = None
    ) -> ChatReply:
        """
        Produce a reply to the user's message.

        This method MUST:
        - Return a ChatReply even on failure (error set)
        - Never raise exceptions
        - Respect timeout limits

        Args:
            system_prompt: Role-specific instructions
            message: The user's message
            role: tourist, authority, admin or guest
            history: Earlier turns as {"role", "content"} dicts, oldest first
        """
        pass

    @abstractmethod
    def get_timeout_seconds(self) -> float:
        pass
