"""
Pydantic schemas for admin endpoints
"""
from typing import Any, Dict, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from app.db.models import BackgroundCheckStatus, CountryCode, SuspensionType, UserRole, WebhookProvider


class ModerateUserRequest(BaseModel):
    action: Literal["suspend", "unsuspend", "ban"]
    reason: Optional[str] = Field(None, max_length=1000)
    duration_days: Optional[int] = Field(None, ge=1, le=365)
    notes: Optional[str] = Field(None, max_length=2000)


class ModerateUserResponse(BaseModel):
    success: bool
    user_id: int
    action: str
    details: Dict[str, Any] = {}


class SuspensionResponse(BaseModel):
    id: int
    user_id: int
    suspended_by: int
    suspension_type: SuspensionType
    reason: str
    expires_at: Optional[datetime] = None
    lifted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: int
    admin_id: int
    action_type: str
    target_user_id: Optional[int] = None
    target_resource_type: Optional[str] = None
    target_resource_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BackgroundCheckResponse(BaseModel):
    id: int
    professional_id: int
    provider: WebhookProvider
    provider_check_id: str
    status: BackgroundCheckStatus
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminUserDetail(BaseModel):
    id: int
    email: str
    full_name: str
    role: UserRole
    country: CountryCode
    is_active: bool
    created_at: Optional[datetime] = None
    active_suspension: Optional[SuspensionResponse] = None
    booking_count: int = 0

    class Config:
        from_attributes = True
