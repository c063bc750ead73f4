"""
Models for digital tourist IDs and emergency contacts.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class DigitalIDStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


class ContactType(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    EMERGENCY = "emergency"


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    number: str = Field(..., min_length=3, max_length=20)
    type: ContactType = ContactType.PRIMARY
    relationship: Optional[str] = None


class DigitalTouristIDCreate(BaseModel):
    tourist_name: str = Field(..., min_length=1, max_length=120)
    aadhaar_number: str = Field(..., description="12-digit Aadhaar number")
    passport_number: Optional[str] = None
    trip_itinerary: str = ""
    emergency_contacts: List[dict] = Field(default_factory=list)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    user_id: Optional[str] = None


class DigitalTouristIDResponse(BaseModel):
    id: str
    tourist_name: str
    aadhaar_number: Optional[str] = Field(None, description="Masked for display")
    passport_number: Optional[str] = None
    trip_itinerary: str = ""
    emergency_contacts: List[dict] = Field(default_factory=list)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    issued_at: Optional[datetime] = None
    blockchain_hash: str
    status: DigitalIDStatus
    user_id: Optional[str] = None


class SafetyMetrics(BaseModel):
    total_tourists: int = 0
    active_tourists: int = 0
    total_alerts: int = 0
    active_alerts: int = 0
    safe_zones: int = 0
    danger_zones: int = 0
    restricted_zones: int = 0
