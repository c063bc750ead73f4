"""
Digital tourist ID endpoints and authority alert views.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.models.tourist import DigitalTouristIDCreate, SafetyMetrics
from app.routes.deps import get_current_user, require_staff, ensure_tourist_access
from app.services.tourist_service import get_tourist_service
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tourists", tags=["Tourists"])


@router.post("/ids", status_code=status.HTTP_201_CREATED)
async def create_digital_id(request: DigitalTouristIDCreate, user: Dict = Depends(require_staff)):
    """
    Issue a digital tourist ID (authority desk registration).
    """
    try:
        service = get_tourist_service()
        record = service.create_digital_tourist_id(request.model_dump())
        return service.to_public(record)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to issue digital ID: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to issue digital ID: {str(e)}"
        )


@router.get("/ids")
async def list_digital_ids(user: Dict = Depends(require_staff)):
    service = get_tourist_service()
    return [service.to_public(r) for r in service.get_all_digital_tourist_ids()]


@router.get("/ids/me")
async def my_digital_id(user: Dict = Depends(get_current_user)):
    service = get_tourist_service()
    record = service.get_digital_tourist_id_for_user(user["id"])
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No digital ID issued for this user")
    return service.to_public(record)


@router.get("/ids/{tourist_id}")
async def get_digital_id(tourist_id: str, user: Dict = Depends(get_current_user)):
    ensure_tourist_access(user, tourist_id)
    service = get_tourist_service()
    record = service.get_digital_tourist_id(tourist_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Digital ID not found: {tourist_id}")
    return service.to_public(record)


@router.post("/ids/{tourist_id}/revoke")
async def revoke_digital_id(tourist_id: str, user: Dict = Depends(require_staff)):
    try:
        service = get_tourist_service()
        return service.to_public(service.revoke_digital_tourist_id(tourist_id))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/ids/{tourist_id}/verify")
async def verify_digital_id(tourist_id: str):
    """
    Recompute the integrity hash of an ID and compare it to the stored one.
    """
    try:
        return get_tourist_service().verify_digital_id_integrity(tourist_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/metrics", response_model=SafetyMetrics)
async def safety_metrics(user: Dict = Depends(require_staff)):
    return get_tourist_service().get_safety_metrics()


@router.get("/locations/latest")
async def latest_locations(
    limit: int = Query(100, ge=1, le=1000),
    user: Dict = Depends(require_staff),
):
    return get_tourist_service().get_latest_tourist_locations(limit)


@router.get("/alerts")
async def all_alerts(user: Dict = Depends(require_staff)):
    return get_tourist_service().get_all_sos_alerts()


@router.get("/alerts/active")
async def active_alerts(user: Dict = Depends(require_staff)):
    return get_tourist_service().get_active_sos_alerts()


@router.get("/alerts/anomaly")
async def anomaly_alerts(critical_only: bool = False, user: Dict = Depends(require_staff)):
    service = get_tourist_service()
    return service.get_critical_anomaly_alerts() if critical_only else service.get_anomaly_alerts()


@router.post("/alerts/anomaly/auto-resolve")
async def auto_resolve_anomaly_alerts(user: Dict = Depends(require_staff)):
    """Resolve anomaly alerts older than an hour. Silent distress stays open."""
    return {"resolved": get_tourist_service().auto_resolve_anomaly_alerts()}


@router.get("/{tourist_id}/safety-score")
async def tourist_safety_score(
    tourist_id: str,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    user: Dict = Depends(get_current_user),
):
    ensure_tourist_access(user, tourist_id)
    location = {"lat": lat, "lng": lng} if lat is not None and lng is not None else None
    return {"tourist_id": tourist_id, "score": get_tourist_service().calculate_safety_score(tourist_id, location)}
