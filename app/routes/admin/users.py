"""
Admin routes for user management and moderation
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy import func, or_

from app.db.session import get_db
from app.db.models import Booking, Profile, UserRole
from app.routes.admin.dependencies import require_admin
from app.schemas.admin import AdminUserDetail, ModerateUserRequest, ModerateUserResponse, SuspensionResponse
from app.schemas.user import UserResponse
from app.services.moderation_service import moderation_service
from app.utils.pagination import PaginatedResponse, paginate_query
from app.utils.websocket_manager import websocket_manager

router = APIRouter(
    prefix="/admin/api/users",
    tags=["admin-users"]
)


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """List all users with pagination and filters"""
    query = db.query(Profile)

    if search:
        query = query.filter(or_(
            Profile.full_name.ilike(f"%{search}%"),
            Profile.email.ilike(f"%{search}%"),
            Profile.phone.ilike(f"%{search}%")
        ))
    if role:
        query = query.filter(Profile.role == role)
    if is_active is not None:
        query = query.filter(Profile.is_active == is_active)

    query = query.order_by(Profile.created_at.desc(), Profile.id.desc())
    return paginate_query(query, page, page_size, UserResponse.model_validate)


@router.get("/{user_id}", response_model=AdminUserDetail)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Get user by ID with moderation state"""
    user = db.query(Profile).filter(Profile.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    suspension = moderation_service.get_active_suspension(db, user.id)
    booking_count = db.query(func.count(Booking.id)).filter(
        or_(Booking.customer_id == user.id, Booking.professional_id == user.id)
    ).scalar() or 0

    return AdminUserDetail(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        country=user.country,
        is_active=user.is_active,
        created_at=user.created_at,
        active_suspension=SuspensionResponse.model_validate(suspension) if suspension else None,
        booking_count=booking_count,
    )


@router.post("/{user_id}/moderate", response_model=ModerateUserResponse)
async def moderate_user(
    user_id: int,
    request: ModerateUserRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Suspend, unsuspend or ban a user"""
    result = moderation_service.moderate_user(
        db,
        current_user,
        user_id,
        request.action,
        reason=request.reason,
        duration_days=request.duration_days,
        notes=request.notes,
    )
    await websocket_manager.send_notification("moderation", {
        "user_id": user_id,
        "action": request.action,
        "admin_id": current_user.id,
    })
    return result
