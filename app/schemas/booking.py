"""
Pydantic schemas for Booking operations
"""
from __future__ import annotations
from typing import Optional
from datetime import datetime, timezone
from pydantic import BaseModel, Field, field_validator

from app.core.config import settings
from app.db.models import BookingStatus, CountryCode, CurrencyCode, PaymentProcessor, DisputeStatus


class BookingAddress(BaseModel):
    street: str = Field(..., min_length=3, max_length=200)
    city: str = Field(..., min_length=2, max_length=100)
    neighborhood: Optional[str] = Field(None, max_length=100)
    details: Optional[str] = Field(None, max_length=300)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class BookingCreate(BaseModel):
    """Schema for a customer booking a professional"""
    professional_id: int
    service_name: str = Field(..., min_length=2, max_length=120)
    scheduled_start: datetime
    duration_minutes: int = Field(..., ge=settings.MIN_BOOKING_MINUTES, le=settings.MAX_BOOKING_MINUTES)
    amount: int = Field(..., gt=0, description="Service amount in minor currency units")
    address: BookingAddress
    special_instructions: Optional[str] = Field(None, max_length=1000)
    payment_processor: Optional[PaymentProcessor] = None
    is_direct_hire: bool = False

    @field_validator('scheduled_start')
    @classmethod
    def to_naive_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class BookingDecline(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)


class BookingCancel(BaseModel):
    """Schema for cancelling booking"""
    reason: str = Field(..., min_length=3, max_length=500)


class CheckInRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class CheckOutRequest(CheckInRequest):
    completion_notes: Optional[str] = Field(None, max_length=2000)


class DisputeCreate(BaseModel):
    reason: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)


class DisputeResolve(BaseModel):
    resolution_notes: str = Field(..., min_length=3, max_length=5000)
    refund_amount: int = Field(0, ge=0)


class BookingResponse(BaseModel):
    """Schema for booking response"""
    id: int
    customer_id: int
    professional_id: int
    service_name: str
    status: BookingStatus
    scheduled_start: datetime
    duration_minutes: int
    scheduled_end: datetime
    address: Optional[dict] = None
    special_instructions: Optional[str] = None
    country: CountryCode
    currency: CurrencyCode
    payment_processor: PaymentProcessor
    amount_estimated: int
    service_fee: int
    amount_authorized: int
    amount_captured: Optional[int] = None
    amount_refunded: int
    time_extension_minutes: int
    time_extension_amount: int
    tip_amount: Optional[int] = None
    stripe_payment_intent_id: Optional[str] = None
    paypal_order_id: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    actual_duration_minutes: Optional[int] = None
    completion_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CancellationResponse(BaseModel):
    booking: BookingResponse
    refund_percentage: int
    refund_amount: int
    reason: str


class CancellationPolicyResponse(BaseModel):
    can_cancel: bool
    refund_percentage: int
    reason: str
    hours_until_service: float
    description: str


class DisputeResponse(BaseModel):
    id: int
    booking_id: int
    opened_by: int
    reason: str
    description: Optional[str] = None
    status: DisputeStatus
    resolution_notes: Optional[str] = None
    refund_amount: int
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
