"""
Models for the police / authority dashboard.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from app.models.base import LatLng
from app.models.geo import RiskLevel


class CaseStatus(str, Enum):
    ACTIVE = "active"
    INVESTIGATING = "investigating"
    FOUND = "found"
    CLOSED = "closed"


class CaseUpdateType(str, Enum):
    INVESTIGATION = "investigation"
    SIGHTING = "sighting"
    EVIDENCE = "evidence"
    CONTACT = "contact"
    STATUS_CHANGE = "status_change"


class LastKnownLocation(LatLng):
    address: str = "Unknown location"
    timestamp: Optional[datetime] = None


class MissingPersonCreate(BaseModel):
    tourist_id: str
    reported_by_user_id: Optional[str] = None
    status: CaseStatus = CaseStatus.ACTIVE
    last_known_location: LastKnownLocation
    last_contact_time: Optional[datetime] = None
    missing_since: Optional[datetime] = None
    description: Optional[str] = None
    circumstances: Optional[str] = None
    physical_description: Optional[str] = None
    clothing_description: Optional[str] = None
    emergency_contacts: Dict = Field(default_factory=dict)
    priority_level: RiskLevel = RiskLevel.MEDIUM


class CaseUpdateCreate(BaseModel):
    update_type: CaseUpdateType
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    location: Optional[LastKnownLocation] = None
    evidence_files: List[str] = Field(default_factory=list)
    new_status: Optional[CaseStatus] = Field(None, description="Applied when update_type is status_change")


class BulkNotificationRequest(BaseModel):
    title: str
    message: str
    severity: RiskLevel = RiskLevel.MEDIUM
    target_groups: List[str] = Field(default_factory=lambda: ["police"])
