"""
User models for authentication and profile management.
"""

from pydantic import BaseModel, Field
from enum import Enum
from typing import List, Optional

from app.models.base import BaseResponse


class UserRole(str, Enum):
    TOURIST = "tourist"
    AUTHORITY = "authority"
    ADMIN = "admin"


class LoginRequest(BaseModel):
    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Account password")


class RegisterRequest(BaseModel):
    """Self-service registration. Authority accounts are created by admins."""
    email: str
    password: str
    name: str
    phone: Optional[str] = Field(None, max_length=20)
    role: Optional[UserRole] = Field(default=UserRole.TOURIST, description="tourist or admin")


class TouristRegisterRequest(RegisterRequest):
    """Registration that also issues a digital tourist ID."""
    aadhaar_number: str = Field(..., description="12-digit Aadhaar number")
    passport_number: Optional[str] = None
    trip_itinerary: str = Field("", max_length=2000)
    emergency_contacts: List[dict] = Field(default_factory=list)
    valid_days: int = Field(30, ge=1, le=365, description="Validity of the digital ID")


class CreateAuthorityRequest(BaseModel):
    email: str
    password: str
    name: str
    organization: Optional[str] = None
    assigned_geo_fence_ids: List[str] = Field(default_factory=list)


class EmailRequest(BaseModel):
    email: str


class TokenRequest(BaseModel):
    token: str


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str


class AuthUser(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole = UserRole.TOURIST
    is_verified: bool = False
    digital_id: Optional[str] = None
    language: str = "en"


class AuthResponse(BaseResponse):
    """Authentication response."""
    user: Optional[AuthUser] = None
    token: Optional[str] = None
    redirect_url: Optional[str] = None
    verification_token: Optional[str] = None  # Returned only in DEBUG mode
