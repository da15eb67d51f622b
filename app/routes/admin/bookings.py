"""
Admin routes for bookings and disputes
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models import Booking, BookingStatus, Dispute, DisputeStatus, Profile
from app.routes.admin.dependencies import require_admin
from app.schemas.booking import BookingResponse, DisputeResolve, DisputeResponse
from app.services.booking_service import booking_service
from app.utils.pagination import PaginatedResponse, paginate_query
from app.utils.websocket_manager import websocket_manager

router = APIRouter(
    prefix="/admin/api",
    tags=["admin-bookings"]
)


@router.get("/bookings", response_model=PaginatedResponse[BookingResponse])
async def list_bookings(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[BookingStatus] = None,
    customer_id: Optional[int] = None,
    professional_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """List all bookings with pagination and filters"""
    query = db.query(Booking)
    if status:
        query = query.filter(Booking.status == status)
    if customer_id:
        query = query.filter(Booking.customer_id == customer_id)
    if professional_id:
        query = query.filter(Booking.professional_id == professional_id)

    query = query.order_by(Booking.created_at.desc(), Booking.id.desc())
    return paginate_query(query, page, page_size, BookingResponse.model_validate)


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    return booking_service.get_booking(db, booking_id)


@router.get("/disputes", response_model=PaginatedResponse[DisputeResponse])
async def list_disputes(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[DisputeStatus] = None,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    query = db.query(Dispute)
    if status:
        query = query.filter(Dispute.status == status)
    query = query.order_by(Dispute.created_at.desc(), Dispute.id.desc())
    return paginate_query(query, page, page_size, DisputeResponse.model_validate)


@router.post("/disputes/{dispute_id}/resolve", response_model=DisputeResponse)
async def resolve_dispute(
    dispute_id: int,
    request: DisputeResolve,
    db: Session = Depends(get_db),
    current_user: Profile = Depends(require_admin)
):
    """Resolve a dispute, optionally refunding part or all of the captured amount"""
    dispute = booking_service.get_dispute(db, dispute_id)
    dispute = booking_service.resolve_dispute(
        db, current_user, dispute, request.resolution_notes, request.refund_amount
    )
    await websocket_manager.send_notification("dispute_resolved", {
        "dispute_id": dispute.id,
        "booking_id": dispute.booking_id,
        "refund_amount": dispute.refund_amount,
    })
    return dispute
