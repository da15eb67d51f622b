"""
Booking endpoints
  POST /api/bookings                              - create a booking (pending_payment)
  GET  /api/bookings                              - list the caller's bookings
  GET  /api/bookings/{booking_id}                 - booking detail
  GET  /api/bookings/{booking_id}/cancellation-policy
  POST /api/bookings/{booking_id}/accept | decline | cancel
  POST /api/bookings/{booking_id}/check-in | check-out
  POST /api/bookings/{booking_id}/dispute
  POST /api/bookings/{booking_id}/review
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.models import BookingStatus, Profile, UserRole
from app.db.session import get_db
from app.routes.auth import get_current_user
from app.schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingDecline,
    BookingResponse,
    CancellationPolicyResponse,
    CancellationResponse,
    CheckInRequest,
    CheckOutRequest,
    DisputeCreate,
    DisputeResponse,
)
from app.schemas.review import ReviewCreate, ReviewResponse
from app.services.booking_service import booking_service
from app.services.cancellation_policy import calculate_cancellation_policy, get_cancellation_policy_description
from app.utils.pagination import PaginatedResponse, paginate_query
from app.utils.websocket_manager import websocket_manager

router = APIRouter(
    prefix="/api/bookings",
    tags=["bookings"]
)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking: BookingCreate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a booking; payment is authorized separately through /api/payments"""
    if current_user.role != UserRole.CUSTOMER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only customers can create bookings")
    return booking_service.create_booking(db, current_user, booking)


@router.get("", response_model=PaginatedResponse[BookingResponse])
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    query = booking_service.list_bookings_query(db, current_user, status_filter)
    return paginate_query(query, page, page_size, BookingResponse.model_validate)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return booking_service.get_booking_for(db, current_user, booking_id)


@router.get("/{booking_id}/cancellation-policy", response_model=CancellationPolicyResponse)
async def get_cancellation_policy(
    booking_id: int,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, booking_id)
    policy = calculate_cancellation_policy(booking.scheduled_start, booking.status)
    return {
        "can_cancel": policy.can_cancel,
        "refund_percentage": policy.refund_percentage,
        "reason": policy.reason,
        "hours_until_service": round(policy.hours_until_service, 2),
        "description": get_cancellation_policy_description(current_user.locale or "es"),
    }


@router.post("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: int,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, booking_id)
    return booking_service.accept_booking(db, current_user, booking)


@router.post("/{booking_id}/decline", response_model=BookingResponse)
async def decline_booking(
    booking_id: int,
    body: BookingDecline,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, booking_id)
    return booking_service.decline_booking(db, current_user, booking, body.reason)


@router.post("/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking(
    booking_id: int,
    body: BookingCancel,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, booking_id)
    return booking_service.cancel_booking(db, current_user, booking, body.reason)


@router.post("/{booking_id}/check-in", response_model=BookingResponse)
async def check_in(
    booking_id: int,
    body: CheckInRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, booking_id)
    return booking_service.check_in(db, current_user, booking, body.latitude, body.longitude)


@router.post("/{booking_id}/check-out", response_model=BookingResponse)
async def check_out(
    booking_id: int,
    body: CheckOutRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Capture the payment and complete the service"""
    booking = booking_service.get_booking_for(db, current_user, booking_id)
    return booking_service.check_out(
        db, current_user, booking, body.latitude, body.longitude, body.completion_notes
    )


@router.post("/{booking_id}/dispute", response_model=DisputeResponse, status_code=status.HTTP_201_CREATED)
async def open_dispute(
    booking_id: int,
    body: DisputeCreate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, booking_id)
    dispute = booking_service.open_dispute(db, current_user, booking, body.reason, body.description)

    await websocket_manager.send_notification("dispute_opened", {
        "dispute_id": dispute.id,
        "booking_id": booking.id,
        "reason": dispute.reason,
    })
    return dispute


@router.post("/{booking_id}/review", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def add_review(
    booking_id: int,
    body: ReviewCreate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, booking_id)
    return booking_service.add_review(db, current_user, booking, body.rating, body.comment)
