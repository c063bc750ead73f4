"""
Models for the assistant chat.
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class ChatMessage(BaseModel):
    role: str = Field(..., description="user or assistant")
    content: str


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    role: str = Field("guest", description="tourist, authority, admin or guest")
    language: str = "en"
    history: List[ChatMessage] = Field(default_factory=list)


class ChatAction(BaseModel):
    type: str
    label: str
    data: Optional[Dict] = None


class ChatResponse(BaseModel):
    response: str
    actions: List[ChatAction] = Field(default_factory=list)
    provider: str
    error: Optional[str] = None
