"""
Planned trip routes - the reference for route deviation checks.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from app.models.geo import RouteCreate
from app.routes.deps import get_current_user, ensure_tourist_access
from app.services.route_service import get_route_service
from typing import Dict
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["Routes"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_route(request: RouteCreate, user: Dict = Depends(get_current_user)):
    """
    Plan a route. Any previously active route for the tourist is replaced.
    """
    ensure_tourist_access(user, request.tourist_id)
    try:
        waypoints = [w.model_dump() for w in request.planned_waypoints]
        return get_route_service().create_route(request.tourist_id, waypoints)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/active/{tourist_id}")
async def active_route(tourist_id: str, user: Dict = Depends(get_current_user)):
    ensure_tourist_access(user, tourist_id)
    route = get_route_service().get_active_route(tourist_id)
    if route is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No active route for tourist {tourist_id}")
    return route


@router.get("/progress/{tourist_id}")
async def route_progress(tourist_id: str, user: Dict = Depends(get_current_user)):
    ensure_tourist_access(user, tourist_id)
    try:
        return get_route_service().get_route_progress(tourist_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("/{route_id}/complete")
async def complete_route(route_id: str, user: Dict = Depends(get_current_user)):
    try:
        service = get_route_service()
        ensure_tourist_access(user, service.get_route(route_id).get("tourist_id"))
        return service.complete_route(route_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
