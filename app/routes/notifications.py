"""
Notification endpoints - bulk broadcasts and the delivery log.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.models.police import BulkNotificationRequest
from app.routes.deps import require_staff
from app.services.notification_service import get_notification_service
from typing import Dict
import asyncio
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"], dependencies=[Depends(require_staff)])


@router.post("/bulk")
async def send_bulk_notification(request: BulkNotificationRequest):
    """
    Broadcast a message to one or more recipient groups ("police", "authorities").
    """
    try:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(
            None,
            get_notification_service().send_bulk_notification,
            request.title,
            request.message,
            request.severity.value,
            request.target_groups,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("")
async def list_notifications(limit: int = Query(50, ge=1, le=500)):
    return get_notification_service().get_notifications(limit)
