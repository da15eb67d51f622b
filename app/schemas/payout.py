"""
Pydantic schemas for balances and payouts
"""
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field

from app.db.models import CurrencyCode, PaymentProcessor, PayoutStatus, PayoutType


class PendingClearance(BaseModel):
    booking_id: int
    amount: int
    completed_at: datetime
    clearance_at: datetime
    hours_remaining: int


class BalanceResponse(BaseModel):
    professional_id: int
    available_balance: int
    pending_balance: int
    total_balance: int
    total_earnings: int
    currency: str
    pending_clearances: List[PendingClearance] = []


class InstantPayoutRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Gross amount in minor currency units")


class PayoutTransferResponse(BaseModel):
    id: int
    professional_id: int
    payout_type: PayoutType
    processor: PaymentProcessor
    gross_amount: int
    fee_amount: int
    fee_percentage: float
    amount: int
    currency: CurrencyCode
    status: PayoutStatus
    stripe_payout_id: Optional[str] = None
    error_message: Optional[str] = None
    requested_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProDashboardStats(BaseModel):
    month_earnings: int
    completed_this_month: int
    upcoming_bookings: int
    rating: float
    review_count: int
    total_bookings: int
    available_balance: int
    pending_balance: int
    currency: str
    next_payout_date: datetime


class UrgentTask(BaseModel):
    type: str
    priority: str
    booking_id: int
    service_name: str
    scheduled_start: datetime
    message: str
