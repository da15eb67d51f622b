"""
Admin routes for roadmap items
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models import Profile, RoadmapCategory, RoadmapStatus, RoadmapVisibility
from app.routes.admin.dependencies import require_admin
from app.schemas.roadmap import RoadmapItemCreate, RoadmapItemResponse, RoadmapItemUpdate
from app.services.roadmap_service import roadmap_service
from app.utils.pagination import PaginatedResponse, paginate_query

router = APIRouter(
    prefix="/admin/api/roadmap",
    tags=["admin-roadmap"]
)


@router.get("", response_model=PaginatedResponse[RoadmapItemResponse])
async def list_items(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    visibility: Optional[RoadmapVisibility] = None,
    status_filter: Optional[RoadmapStatus] = Query(None, alias="status"),
    category: Optional[RoadmapCategory] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    query = roadmap_service.admin_list_query(db, visibility, status_filter, category, search)
    return paginate_query(query, page, page_size, RoadmapItemResponse.model_validate)


@router.post("", response_model=RoadmapItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    item: RoadmapItemCreate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Create a roadmap item; the slug is generated from the title when omitted"""
    return roadmap_service.create_item(db, current_user, item)


@router.get("/{item_id}", response_model=RoadmapItemResponse)
async def get_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    return roadmap_service.get_item(db, item_id)


@router.put("/{item_id}", response_model=RoadmapItemResponse)
async def update_item(
    item_id: int,
    item: RoadmapItemUpdate,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    return roadmap_service.update_item(db, current_user, item_id, item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    roadmap_service.delete_item(db, current_user, item_id)
