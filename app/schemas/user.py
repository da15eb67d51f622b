"""
Pydantic schemas for accounts and authentication
"""
from __future__ import annotations
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.db.models import UserRole, CountryCode, BackgroundCheckStatus


class SignupRequest(BaseModel):
    """Customer or professional registration"""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    full_name: str = Field(..., min_length=2, max_length=120)
    phone: Optional[str] = Field(None, max_length=20)
    role: UserRole = UserRole.CUSTOMER
    country: CountryCode = CountryCode.CO
    locale: str = Field("es", pattern=r"^(es|en)$")


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: "UserResponse"


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own account"""
    full_name: Optional[str] = Field(None, min_length=2, max_length=120)
    phone: Optional[str] = Field(None, max_length=20)
    locale: Optional[str] = Field(None, pattern=r"^(es|en)$")
    bio: Optional[str] = Field(None, max_length=2000)
    city: Optional[str] = Field(None, max_length=100)
    primary_services: Optional[List[str]] = None
    hourly_rate: Optional[int] = Field(None, gt=0)
    paypal_email: Optional[EmailStr] = None


class ProfessionalProfileResponse(BaseModel):
    bio: Optional[str] = None
    primary_services: Optional[List[str]] = None
    city: Optional[str] = None
    hourly_rate: Optional[int] = None
    rating: float
    review_count: int
    total_bookings: int
    instant_payout_enabled: bool
    background_check_status: BackgroundCheckStatus
    is_listed: bool

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    """Schema for user response"""
    id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    country: CountryCode
    locale: str
    is_active: bool
    created_at: Optional[datetime] = None
    professional_profile: Optional[ProfessionalProfileResponse] = None

    class Config:
        from_attributes = True


class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=10, max_length=255)
    platform: Optional[str] = Field(None, pattern=r"^(ios|android|web)$")


class ProfessionalListing(BaseModel):
    """Public directory entry"""
    id: int
    full_name: str
    country: CountryCode
    city: Optional[str] = None
    bio: Optional[str] = None
    primary_services: Optional[List[str]] = None
    hourly_rate: Optional[int] = None
    rating: float
    review_count: int
    total_bookings: int
    background_check_status: BackgroundCheckStatus


TokenResponse.model_rebuild()

