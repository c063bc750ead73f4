"""
Assistant chat endpoint.
"""

from fastapi import APIRouter, Depends
from app.models.chat import ChatRequest, ChatResponse
from app.routes.deps import get_optional_user
from app.services.chat_service import get_chat_service
from typing import Dict, Optional

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.post("", response_model=ChatResponse)
async def chat(request: ChatRequest, user: Optional[Dict] = Depends(get_optional_user)):
    """
    Ask GoSafe Assistant.

    Signed-in users chat as their own role and their turns are stored;
    anonymous callers chat as guests.
    """
    role = user["role"] if user else "guest"
    history = [m.model_dump() for m in request.history]
    return get_chat_service().chat(
        request.message,
        role=role,
        language=request.language,
        history=history,
        user_id=user["id"] if user else None,
    )
