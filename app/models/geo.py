"""
Models for locations, geofences, risk areas and planned routes.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from app.models.base import GeoPoint, LatLng


class GeoFenceType(str, Enum):
    SAFE = "safe"
    RESTRICTED = "restricted"
    DANGER = "danger"
    TOURIST_ZONE = "tourist_zone"
    RISK_ZONE = "risk_zone"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class LocationUpdate(BaseModel):
    tourist_id: str = Field(..., min_length=1)
    latitude: float
    longitude: float
    timestamp: Optional[datetime] = None
    accuracy: Optional[float] = Field(None, ge=0)
    battery_level: Optional[float] = Field(None, ge=0, le=100)
    network_type: Optional[str] = Field(None, description="wifi, 4g, 3g, 2g, none")
    speed_kmh: Optional[float] = Field(None, ge=0)


class GeoFenceCreate(BaseModel):
    name: str
    type: GeoFenceType
    description: Optional[str] = ""
    # Legacy list of {"lat", "lng"} vertices or a GeoJSON Polygon
    coordinates: Any
    risk_level: Optional[RiskLevel] = None


class GeoFenceUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[GeoFenceType] = None
    description: Optional[str] = None
    coordinates: Optional[Any] = None
    risk_level: Optional[RiskLevel] = None


class PointCheckRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class SafetyScore(BaseModel):
    score: int = Field(..., ge=0, le=100)
    factors: Dict[str, int]
    recommendations: List[str]


class RiskZoneCreate(BaseModel):
    name: str
    coordinates: List[Dict[str, float]]
    risk_level: RiskLevel = RiskLevel.MEDIUM
    risk_factors: List[str] = Field(default_factory=list)
    recommendations: str = ""


class Waypoint(LatLng):
    name: str = ""


class RouteCreate(BaseModel):
    tourist_id: str
    planned_waypoints: List[Waypoint] = Field(..., min_length=1)


class RiskAreaCreate(BaseModel):
    name: str = Field(..., min_length=1)
    center: GeoPoint
    radius: float = Field(500, gt=0, description="Meters")
    risk_level: RiskLevel
    description: str = ""
    active_incidents: int = Field(0, ge=0)
