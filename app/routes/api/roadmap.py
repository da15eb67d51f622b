"""
Public product roadmap with voting
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.models import Profile, RoadmapCategory, RoadmapStatus
from app.db.session import get_db
from app.routes.auth import get_current_user
from app.schemas.roadmap import RoadmapItemResponse, VoteToggleResponse
from app.services.roadmap_service import roadmap_service

router = APIRouter(
    prefix="/api/roadmap",
    tags=["roadmap"]
)


@router.get("", response_model=List[RoadmapItemResponse])
async def list_roadmap(
    status_filter: Optional[RoadmapStatus] = Query(None, alias="status"),
    category: Optional[RoadmapCategory] = None,
    audience: Optional[str] = Query(None, pattern=r"^(all|customer|professional)$"),
    db: Session = Depends(get_db)
):
    return roadmap_service.list_published(db, status_filter, category, audience)


@router.get("/{slug}", response_model=RoadmapItemResponse)
async def get_roadmap_item(slug: str, db: Session = Depends(get_db)):
    return roadmap_service.get_published_by_slug(db, slug)


@router.post("/{item_id}/vote", response_model=VoteToggleResponse)
async def toggle_vote(
    item_id: int,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add the caller's vote, or remove it when already voted"""
    return roadmap_service.toggle_vote(db, current_user, item_id)
