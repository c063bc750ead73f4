"""
Police dashboard endpoints - clusters, risk zones, ID records, alert history
and missing-person cases. All endpoints require an authority or admin.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.models.geo import RiskZoneCreate
from app.models.police import MissingPersonCreate, CaseUpdateCreate
from app.models.sos import StatusUpdateRequest
from app.routes.deps import require_staff
from app.services.police_dashboard_service import get_police_dashboard_service
from datetime import datetime
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/police", tags=["Police Dashboard"], dependencies=[Depends(require_staff)])


@router.get("/stats")
async def dashboard_stats():
    return get_police_dashboard_service().get_dashboard_stats()


@router.get("/clusters")
async def tourist_clusters(since: Optional[datetime] = Query(None)):
    """Tourists grouped within 1 km of each other (default: last 24 hours)."""
    return get_police_dashboard_service().get_tourist_clusters(since)


@router.get("/risk-zones")
async def risk_zones():
    return get_police_dashboard_service().get_risk_zones()


@router.post("/risk-zones", status_code=status.HTTP_201_CREATED)
async def create_risk_zone(request: RiskZoneCreate):
    try:
        return get_police_dashboard_service().create_risk_zone(request.model_dump(mode="json"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/digital-ids")
async def digital_id_records(
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    return get_police_dashboard_service().get_digital_id_records(status_filter, search, limit, offset)


@router.get("/digital-ids/{record_id}")
async def digital_id_record(record_id: str):
    record = get_police_dashboard_service().get_digital_id_record(record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Digital ID not found: {record_id}")
    return record


@router.get("/alerts")
async def alert_history(
    tourist_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    alert_type: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    return get_police_dashboard_service().get_alert_history(
        tourist_id, status_filter, alert_type, date_from, date_to, limit, offset
    )


@router.patch("/alerts/{alert_id}/status")
async def update_alert_status(alert_id: str, request: StatusUpdateRequest):
    try:
        return get_police_dashboard_service().update_alert_status(alert_id, request.status.value)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/missing-persons")
async def missing_persons(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    return get_police_dashboard_service().get_missing_persons(status_filter, limit, offset)


@router.post("/missing-persons", status_code=status.HTTP_201_CREATED)
async def create_missing_person_case(request: MissingPersonCreate):
    try:
        return get_police_dashboard_service().create_missing_person_case(request.model_dump(mode="json"))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create missing person case: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to create missing person case: {str(e)}"
        )


@router.post("/missing-persons/{case_id}/efir")
async def generate_efir(case_id: str):
    """
    Generate an electronic First Information Report for a missing-person case.
    """
    try:
        return get_police_dashboard_service().generate_efir(case_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to generate E-FIR: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to generate E-FIR: {str(e)}"
        )


@router.get("/missing-persons/{case_id}/updates")
async def case_updates(case_id: str):
    return get_police_dashboard_service().get_case_updates(case_id)


@router.post("/missing-persons/{case_id}/updates", status_code=status.HTTP_201_CREATED)
async def add_case_update(case_id: str, request: CaseUpdateCreate, user: Dict = Depends(require_staff)):
    try:
        return get_police_dashboard_service().add_case_update(case_id, request.model_dump(mode="json"), user["id"])
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
