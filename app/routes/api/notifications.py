"""
In-app notification inbox and push token registration
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.models import Profile
from app.db.session import get_db
from app.routes.auth import get_current_user
from app.schemas.notification import NotificationResponse, UnreadCountResponse
from app.schemas.user import PushTokenRequest
from app.services.notification_service import notification_service
from app.utils.pagination import PaginatedResponse, paginate_query

router = APIRouter(
    prefix="/api/notifications",
    tags=["notifications"]
)


@router.get("", response_model=PaginatedResponse[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = notification_service.list_query(db, current_user.id, unread_only)
    return paginate_query(query, page, page_size, NotificationResponse.model_validate)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"unread_count": notification_service.unread_count(db, current_user.id)}


@router.post("/read-all")
async def mark_all_read(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    updated = notification_service.mark_all_read(db, current_user.id)
    return {"success": True, "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = notification_service.mark_read(db, current_user.id, notification_id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification


@router.post("/push-tokens", status_code=status.HTTP_201_CREATED)
async def register_push_token(
    request: PushTokenRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    push_token = notification_service.register_push_token(db, current_user.id, request.token, request.platform)
    return {"success": True, "id": push_token.id}
