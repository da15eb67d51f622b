"""
Pydantic schemas for payment endpoints
"""
from typing import Optional
from pydantic import BaseModel, Field

from app.core.config import settings


class CreateIntentRequest(BaseModel):
    """Schema for authorizing a booking payment with Stripe"""
    booking_id: int
    amount: int = Field(..., gt=0, le=1_000_000_000, description="Amount in minor currency units")
    currency: str = Field("cop", pattern=r"^(cop|usd|eur)$")


class CreateIntentResponse(BaseModel):
    client_secret: Optional[str] = None
    payment_intent_id: str


class CaptureIntentRequest(BaseModel):
    booking_id: int
    payment_intent_id: str = Field(..., min_length=3)
    amount_to_capture: Optional[int] = Field(None, gt=0)


class VoidIntentRequest(BaseModel):
    booking_id: int
    payment_intent_id: str = Field(..., min_length=3)


class PaymentStatusResponse(BaseModel):
    booking_id: int
    booking_status: str
    payment_intent_id: Optional[str] = None
    amount: Optional[int] = None
    status: str


class TipRequest(BaseModel):
    booking_id: int
    amount: int = Field(..., gt=0, le=settings.MAX_TIP_AMOUNT)
    percentage: Optional[float] = Field(None, ge=0, le=100)


class TipResponse(BaseModel):
    booking_id: int
    tip_amount: int
    transaction_id: int


class PaymentMethod(BaseModel):
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None


class PayPalOrderRequest(BaseModel):
    booking_id: int


class PayPalOrderResponse(BaseModel):
    order_id: str
    status: Optional[str] = None
    approve_url: Optional[str] = None


class PayPalAuthorizeResponse(BaseModel):
    booking_id: int
    booking_status: str
    authorization_id: Optional[str] = None
