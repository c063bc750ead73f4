"""
SOS endpoints - raise, track and resolve emergency alerts.

Handlers that notify responders run in the thread pool, since webhook
delivery is a blocking HTTP call.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.models.sos import (
    SOSRequest,
    SOSCreateResponse,
    AssignRequest,
    ResolveRequest,
    EnhancedSOSRequest,
    EnhancedSOSResponse,
)
from app.models.tourist import EmergencyContact
from app.routes.deps import get_current_user, require_staff, ensure_tourist_access
from app.services.sos_service import AlertStateError, get_sos_service
from app.services.sos_risk_service import get_sos_risk_service
from typing import Dict
import asyncio
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sos", tags=["SOS"])


@router.post("", response_model=SOSCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_sos(request: SOSRequest, user: Dict = Depends(get_current_user)):
    """
    Raise an SOS alert.

    Authorities and the tourist's emergency contacts are notified; a
    notification failure never fails the alert.
    """
    ensure_tourist_access(user, request.tourist_id)
    try:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, get_sos_service().create_sos_alert, request.model_dump(mode="json"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create SOS alert: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create SOS alert: {str(e)}"
        )


@router.post("/enhanced", response_model=EnhancedSOSResponse)
async def create_enhanced_sos(request: EnhancedSOSRequest, user: Dict = Depends(get_current_user)):
    """
    Raise an SOS prioritised by the tourist's alert history and device state.
    """
    ensure_tourist_access(user, request.tourist_id)
    loop = asyncio.get_event_loop()
    result = await loop.run_in_executor(
        None, get_sos_risk_service().create_enhanced_sos, request.model_dump(mode="json")
    )
    if not result.get("success"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=result.get("error", "Failed to create SOS alert")
        )
    return result


@router.get("/location-risk")
async def location_risk(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
):
    return get_sos_risk_service().check_location_risk(lat, lng)


@router.get("/active")
async def active_alerts(user: Dict = Depends(require_staff)):
    return get_sos_service().get_active_alerts()


@router.get("/history/{tourist_id}")
async def sos_history(tourist_id: str, user: Dict = Depends(get_current_user)):
    ensure_tourist_access(user, tourist_id)
    try:
        return get_sos_service().get_sos_history(tourist_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/analytics/{tourist_id}")
async def sos_analytics(tourist_id: str, user: Dict = Depends(require_staff)):
    return get_sos_risk_service().get_sos_analytics(tourist_id)


@router.get("/risk-profile/{tourist_id}")
async def risk_profile(tourist_id: str, user: Dict = Depends(require_staff)):
    return get_sos_risk_service().analyze_risk_profile(tourist_id)


@router.get("/contacts/{tourist_id}")
async def emergency_contacts(tourist_id: str, user: Dict = Depends(get_current_user)):
    ensure_tourist_access(user, tourist_id)
    return get_sos_service().get_emergency_contacts(tourist_id)


@router.post("/contacts/{tourist_id}", status_code=status.HTTP_201_CREATED)
async def add_emergency_contact(
    tourist_id: str,
    contact: EmergencyContact,
    user: Dict = Depends(get_current_user),
):
    ensure_tourist_access(user, tourist_id)
    try:
        return get_sos_service().add_emergency_contact(tourist_id, contact.model_dump(mode="json"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{alert_id}")
async def get_alert(alert_id: str, user: Dict = Depends(get_current_user)):
    try:
        alert = get_sos_service().get_alert(alert_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    ensure_tourist_access(user, alert["tourist_id"])
    return alert


@router.post("/{alert_id}/cancel")
async def cancel_alert(alert_id: str, user: Dict = Depends(get_current_user)):
    try:
        service = get_sos_service()
        ensure_tourist_access(user, service.get_alert(alert_id)["tourist_id"])
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, service.cancel_sos_alert, alert_id)
    except AlertStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{alert_id}/assign")
async def assign_alert(alert_id: str, request: AssignRequest, user: Dict = Depends(require_staff)):
    try:
        return get_sos_service().assign_alert(alert_id, request.responder_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{alert_id}/resolve")
async def resolve_alert(alert_id: str, request: ResolveRequest, user: Dict = Depends(require_staff)):
    try:
        return get_sos_service().resolve_alert(alert_id, request.notes)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
