"""Map routes - tourist locations, geofences, risk areas and safety scores.

Location updates run the geofence and anomaly checks synchronously against
Firestore, so they are pushed to the thread pool to keep the event loop free.
"""

from typing import Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.models.geo import (
    LocationUpdate,
    GeoFenceCreate,
    GeoFenceUpdate,
    PointCheckRequest,
    SafetyScore,
    RiskAreaCreate,
)
from app.routes.deps import get_current_user, require_staff, ensure_tourist_access
from app.services.geo_service import get_geo_service
import asyncio
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/map", tags=["Map"])


# ----------------------------------------------------------------------
# Locations
# ----------------------------------------------------------------------

@router.post("/locations", status_code=status.HTTP_201_CREATED)
async def update_location(request: LocationUpdate, user: Dict = Depends(get_current_user)):
    """
    Store a location fix for a tourist.

    Returns the stored fix plus any geofence alerts and anomalies it raised.
    """
    ensure_tourist_access(user, request.tourist_id)
    try:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, get_geo_service().update_tourist_location, request.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to update location: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update location: {str(e)}"
        )


@router.get("/locations")
async def all_locations(user: Dict = Depends(require_staff)):
    return get_geo_service().get_all_tourist_locations()


@router.get("/locations/{tourist_id}")
async def tourist_location(tourist_id: str, user: Dict = Depends(get_current_user)):
    ensure_tourist_access(user, tourist_id)
    location = get_geo_service().get_tourist_location(tourist_id)
    if location is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No location for tourist {tourist_id}")
    return location


# ----------------------------------------------------------------------
# Geofences
# ----------------------------------------------------------------------

@router.get("/geofences")
async def list_geofences():
    return get_geo_service().get_geofences()


@router.post("/geofences", status_code=status.HTTP_201_CREATED)
async def create_geofence(request: GeoFenceCreate, user: Dict = Depends(require_staff)):
    try:
        fence = request.model_dump(mode="json")
        fence["created_by"] = user["id"]
        return get_geo_service().create_geofence(fence)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/geofences/check")
async def check_point(request: PointCheckRequest):
    """
    Fences containing the point, and who to escalate to from there.
    """
    geo = get_geo_service()
    fences = geo.get_containing_geofences(request.latitude, request.longitude)
    return {
        "inside": fences,
        "escalation": geo.get_escalation_type(fences, request.latitude, request.longitude),
    }


@router.post("/geofences/validate")
async def validate_geofence(geometry: Dict):
    return {"valid": get_geo_service().validate_polygon(geometry)}


@router.get("/geofences/alerts")
async def geofence_alerts(
    tourist_id: Optional[str] = Query(None),
    user: Dict = Depends(get_current_user),
):
    if user.get("role") == "tourist":
        tourist_id = user.get("digital_id") or ""
        if not tourist_id:
            return []
    return get_geo_service().get_geofence_alerts(tourist_id)


@router.get("/geofences/{fence_id}")
async def get_geofence(fence_id: str):
    try:
        return get_geo_service().get_geofence(fence_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.patch("/geofences/{fence_id}")
async def update_geofence(fence_id: str, request: GeoFenceUpdate, user: Dict = Depends(require_staff)):
    try:
        return get_geo_service().update_geofence(fence_id, request.model_dump(mode="json", exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.delete("/geofences/{fence_id}")
async def delete_geofence(fence_id: str, user: Dict = Depends(require_staff)):
    try:
        get_geo_service().delete_geofence(fence_id)
        return {"success": True, "id": fence_id}
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


# ----------------------------------------------------------------------
# Risk areas and safety score
# ----------------------------------------------------------------------

@router.get("/risk-areas")
async def list_risk_areas():
    return get_geo_service().get_risk_areas()


@router.post("/risk-areas", status_code=status.HTTP_201_CREATED)
async def create_risk_area(request: RiskAreaCreate, user: Dict = Depends(require_staff)):
    try:
        return get_geo_service().create_risk_area(request.model_dump(mode="json"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/safety-score", response_model=SafetyScore)
async def safety_score(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
):
    try:
        return get_geo_service().calculate_safety_score(lat, lng)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
