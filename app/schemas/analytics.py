"""
Pydantic schemas for the admin dashboard
"""
from __future__ import annotations
from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel


class BookingSummary(BaseModel):
    """Booking counts by status"""
    total: int
    by_status: Dict[str, int]


class RevenueSummary(BaseModel):
    """Captured volume (GMV) per currency, minor units"""
    gmv_captured: Dict[str, int]
    refunded: Dict[str, int]
    platform_fees: Dict[str, int]
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None


class DashboardStats(BaseModel):
    bookings: BookingSummary
    revenue: RevenueSummary
    open_disputes: int
    active_suspensions: int
    pending_payouts: int
    pending_background_checks: int
    new_users: int
    recent_bookings: List[Dict] = []
