"""
Anomaly endpoints - stored detections and their resolution.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.models.anomaly import RiskFactors
from app.routes.deps import require_staff
from app.services.anomaly_detection_service import (
    calculate_anomaly_score,
    get_anomaly_detection_service,
    get_severity_level,
)
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/anomalies", tags=["Anomalies"])


@router.get("")
async def list_anomalies(
    tourist_id: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    user: Dict = Depends(require_staff),
):
    try:
        return get_anomaly_detection_service().get_anomalies(tourist_id, status_filter)
    except Exception as e:
        logger.error(f"Failed to get anomalies: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get anomalies: {str(e)}"
        )


@router.post("/score")
async def score_risk_factors(factors: RiskFactors):
    """
    Score a set of risk factors without storing anything.
    """
    score = calculate_anomaly_score(factors)
    return {"score": score, "severity_level": get_severity_level(score)}


@router.post("/{anomaly_id}/resolve")
async def resolve_anomaly(anomaly_id: str, user: Dict = Depends(require_staff)):
    try:
        return get_anomaly_detection_service().resolve_anomaly(anomaly_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
