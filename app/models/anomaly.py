"""
Models for threshold-based anomaly detection.
"""

from pydantic import BaseModel, Field
from enum import Enum
from typing import Any, Dict, List


class AnomalyType(str, Enum):
    SUDDEN_DROP_OFF = "sudden_drop_off"
    PROLONGED_INACTIVITY = "prolonged_inactivity"
    ROUTE_DEVIATION = "route_deviation"
    SILENT_DISTRESS = "silent_distress"
    RISK_ZONE_ENTRY = "risk_zone_entry"


class SeverityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskFactors(BaseModel):
    """Inputs of the anomaly score. Defaults are the "nothing unusual" values."""
    distance_km: float = 0
    time_gap_minutes: float = 0
    speed_kmh: float = 0
    battery_level: float = 100
    network_type: str = "unknown"
    risk_zone_proximity: float = 10000  # meters
    route_deviation_meters: float = 0
    inactivity_minutes: float = 0


class AnomalyDetectionResult(BaseModel):
    detected: bool
    anomaly_type: AnomalyType
    severity_score: int = Field(0, ge=0, le=100)
    severity_level: SeverityLevel = SeverityLevel.LOW
    details: Dict[str, Any] = Field(default_factory=dict)
    recommendations: List[str] = Field(default_factory=list)
