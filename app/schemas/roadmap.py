"""
Pydantic schemas for the product roadmap
"""
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from app.db.models import RoadmapCategory, RoadmapPriority, RoadmapStatus, RoadmapVisibility

AUDIENCES = ("all", "customer", "professional")


def _validate_tags(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return value
    if len(value) > 10:
        raise ValueError("At most 10 tags are allowed")
    for tag in value:
        if len(tag) > 50:
            raise ValueError("Tags must be at most 50 characters")
    return value


def _validate_audience(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return value
    invalid = [a for a in value if a not in AUDIENCES]
    if invalid:
        raise ValueError(f"Invalid audience: {', '.join(invalid)}")
    return value


class RoadmapItemCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    slug: Optional[str] = Field(None, pattern=r"^[a-z0-9-]+$", max_length=200)
    description: str = Field(..., min_length=10, max_length=10000)
    status: RoadmapStatus = RoadmapStatus.UNDER_CONSIDERATION
    category: RoadmapCategory
    priority: RoadmapPriority = RoadmapPriority.MEDIUM
    target_quarter: Optional[str] = Field(None, pattern=r"^Q[1-4] \d{4}$")
    visibility: RoadmapVisibility = RoadmapVisibility.DRAFT
    target_audience: List[str] = ["all"]
    tags: List[str] = []

    @field_validator('tags')
    @classmethod
    def check_tags(cls, value):
        return _validate_tags(value)

    @field_validator('target_audience')
    @classmethod
    def check_audience(cls, value):
        return _validate_audience(value)


class RoadmapItemUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    slug: Optional[str] = Field(None, pattern=r"^[a-z0-9-]+$", max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=10000)
    status: Optional[RoadmapStatus] = None
    category: Optional[RoadmapCategory] = None
    priority: Optional[RoadmapPriority] = None
    target_quarter: Optional[str] = Field(None, pattern=r"^Q[1-4] \d{4}$")
    visibility: Optional[RoadmapVisibility] = None
    target_audience: Optional[List[str]] = None
    tags: Optional[List[str]] = None

    @field_validator('tags')
    @classmethod
    def check_tags(cls, value):
        return _validate_tags(value)

    @field_validator('target_audience')
    @classmethod
    def check_audience(cls, value):
        return _validate_audience(value)


class RoadmapItemResponse(BaseModel):
    id: int
    title: str
    slug: str
    description: str
    status: RoadmapStatus
    category: RoadmapCategory
    priority: RoadmapPriority
    target_quarter: Optional[str] = None
    visibility: RoadmapVisibility
    target_audience: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    vote_count: int
    published_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    has_voted: Optional[bool] = None

    class Config:
        from_attributes = True


class VoteToggleResponse(BaseModel):
    success: bool = True
    action: str  # added / removed
    vote_count: int
    has_voted: bool
