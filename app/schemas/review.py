"""
Pydantic schemas for reviews
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    """Schema for creating a review on a completed booking"""
    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5")
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseModel):
    id: int
    booking_id: int
    customer_id: int
    professional_id: int
    rating: int
    comment: Optional[str] = None
    is_hidden: bool
    is_flagged: bool
    flag_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReviewModerationRequest(BaseModel):
    """Admin hide/unhide of a review"""
    hidden: bool
    reason: Optional[str] = Field(None, max_length=500)
