"""
Admin moderation queue, review visibility and audit log
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models import (
    AdminAuditLog, BackgroundCheck, BackgroundCheckStatus, Dispute, DisputeStatus, Profile, Review
)
from app.routes.admin.dependencies import require_admin
from app.schemas.admin import AuditLogResponse, BackgroundCheckResponse, SuspensionResponse
from app.schemas.booking import DisputeResponse
from app.schemas.review import ReviewModerationRequest, ReviewResponse
from app.services.moderation_service import moderation_service
from app.utils.pagination import PaginatedResponse, paginate_query

router = APIRouter(
    prefix="/admin/api/moderation",
    tags=["admin-moderation"]
)

QUEUE_LIMIT = 50


@router.get("/queue")
async def get_moderation_queue(
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Everything waiting on an admin decision"""
    flagged_reviews = db.query(Review).filter(
        Review.is_flagged == True,
        Review.is_hidden == False
    ).order_by(Review.created_at.desc()).limit(QUEUE_LIMIT).all()
    open_disputes = db.query(Dispute).filter(
        Dispute.status == DisputeStatus.OPEN
    ).order_by(Dispute.created_at.asc()).limit(QUEUE_LIMIT).all()
    suspensions = moderation_service.active_suspensions_query(db).limit(QUEUE_LIMIT).all()
    pending_checks = db.query(BackgroundCheck).filter(
        BackgroundCheck.status.in_([
            BackgroundCheckStatus.PENDING,
            BackgroundCheckStatus.IN_PROGRESS,
            BackgroundCheckStatus.CONSIDER,
        ])
    ).order_by(BackgroundCheck.created_at.asc()).limit(QUEUE_LIMIT).all()

    return {
        "flagged_reviews": [ReviewResponse.model_validate(r) for r in flagged_reviews],
        "open_disputes": [DisputeResponse.model_validate(d) for d in open_disputes],
        "active_suspensions": [SuspensionResponse.model_validate(s) for s in suspensions],
        "pending_background_checks": [BackgroundCheckResponse.model_validate(c) for c in pending_checks],
    }


@router.post("/reviews/{review_id}", response_model=ReviewResponse)
async def moderate_review(
    review_id: int,
    request: ReviewModerationRequest,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Hide or unhide a review; the professional's rating is recomputed"""
    return moderation_service.set_review_hidden(db, current_user, review_id, request.hidden, request.reason)


@router.get("/audit-logs", response_model=PaginatedResponse[AuditLogResponse])
async def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    action_type: Optional[str] = None,
    admin_id: Optional[int] = None,
    target_user_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    query = db.query(AdminAuditLog)
    if action_type:
        query = query.filter(AdminAuditLog.action_type == action_type)
    if admin_id:
        query = query.filter(AdminAuditLog.admin_id == admin_id)
    if target_user_id:
        query = query.filter(AdminAuditLog.target_user_id == target_user_id)
    query = query.order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc())
    return paginate_query(query, page, page_size, AuditLogResponse.model_validate)
