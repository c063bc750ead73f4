"""
Models for SOS / emergency alerts.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from app.models.base import BaseResponse, GeoPoint


class SOSType(str, Enum):
    PANIC = "panic"
    MEDICAL = "medical"
    SECURITY = "security"
    GENERAL = "general"


class SOSStatus(str, Enum):
    """
    Alert lifecycle: active → assigned → resolved, or active → cancelled.
    "responded" is set by the authority dashboard's quick-status update.
    """
    ACTIVE = "active"
    ASSIGNED = "assigned"
    RESPONDED = "responded"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class SOSRequest(BaseModel):
    type: SOSType = SOSType.GENERAL
    location: GeoPoint
    message: Optional[str] = Field(None, max_length=1000)
    tourist_id: str = Field(..., min_length=1)


class SOSCreateResponse(BaseModel):
    id: str
    status: SOSStatus
    timestamp: datetime
    estimated_response_time: Optional[int] = Field(None, description="Minutes")
    assigned_responder: Optional[str] = None


class SOSAlert(BaseModel):
    id: str
    timestamp: datetime
    type: str
    status: str
    location: GeoPoint
    tourist_id: str
    message: Optional[str] = None
    response_time: Optional[int] = None
    notes: Optional[str] = None
    assigned_responder: Optional[str] = None


class AssignRequest(BaseModel):
    responder_id: str


class ResolveRequest(BaseModel):
    notes: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: SOSStatus


class DeviceInfo(BaseModel):
    user_agent: str = ""
    is_online: bool = True
    connection_type: Optional[str] = None


class EnhancedSOSRequest(SOSRequest):
    """SOS with device context used for risk-aware prioritisation."""
    battery_level: float = Field(100, ge=0, le=100)
    network_strength: float = Field(100, ge=0, le=100)
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)


class EnhancedSOSResponse(BaseResponse):
    sos_id: Optional[str] = None
    priority: Optional[str] = None
    risk_score: Optional[int] = None
    suggested_escalation: Optional[str] = None
    risk_profile: Optional[Dict] = None
    error: Optional[str] = None
