"""
Payment endpoints (Stripe and PayPal)
  POST /api/payments/create-intent     - authorize a booking with a manual-capture intent
  POST /api/payments/capture-intent    - capture and complete an in-progress booking
  POST /api/payments/void-intent       - release the authorization and cancel
  POST /api/payments/process-tip       - tip the professional on a completed booking
  GET  /api/payments/methods           - saved cards
  POST /api/payments/paypal/create-order
  POST /api/payments/paypal/authorize
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.logging_config import logger
from app.db.models import CustomerProfile, Profile
from app.db.session import get_db
from app.routes.auth import get_current_user
from app.schemas.payment import (
    CaptureIntentRequest,
    CreateIntentRequest,
    CreateIntentResponse,
    PaymentMethod,
    PaymentStatusResponse,
    PayPalAuthorizeResponse,
    PayPalOrderRequest,
    PayPalOrderResponse,
    TipRequest,
    TipResponse,
    VoidIntentRequest,
)
from app.services.booking_service import booking_service
from app.services.stripe_gateway import stripe_gateway

router = APIRouter(
    prefix="/api/payments",
    tags=["payments"]
)


@router.post("/create-intent", response_model=CreateIntentResponse)
async def create_intent(
    request: CreateIntentRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, request.booking_id)
    intent = booking_service.create_payment_intent(db, current_user, booking, request.amount, request.currency)
    return {
        "client_secret": getattr(intent, "client_secret", None),
        "payment_intent_id": intent.id,
    }


@router.post("/capture-intent", response_model=PaymentStatusResponse)
async def capture_intent(
    request: CaptureIntentRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, request.booking_id)
    booking = booking_service.capture_intent(
        db, current_user, booking, request.payment_intent_id, request.amount_to_capture
    )
    return {
        "booking_id": booking.id,
        "booking_status": booking.status.value,
        "payment_intent_id": booking.stripe_payment_intent_id,
        "amount": booking.amount_captured,
        "status": "captured",
    }


@router.post("/void-intent", response_model=PaymentStatusResponse)
async def void_intent(
    request: VoidIntentRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, request.booking_id)
    booking = booking_service.void_intent(db, current_user, booking, request.payment_intent_id)
    return {
        "booking_id": booking.id,
        "booking_status": booking.status.value,
        "payment_intent_id": booking.stripe_payment_intent_id,
        "amount": booking.amount_authorized,
        "status": "voided",
    }


@router.post("/process-tip", response_model=TipResponse)
async def process_tip(
    request: TipRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, request.booking_id)
    transaction = booking_service.process_tip(db, current_user, booking, request.amount, request.percentage)
    return {
        "booking_id": booking.id,
        "tip_amount": transaction.amount,
        "transaction_id": transaction.id,
    }


@router.get("/methods", response_model=List[PaymentMethod])
async def list_payment_methods(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    customer_profile = db.query(CustomerProfile).filter(CustomerProfile.profile_id == current_user.id).first()
    if not customer_profile or not customer_profile.stripe_customer_id:
        return []
    return stripe_gateway.list_payment_methods(customer_profile.stripe_customer_id)


@router.post("/paypal/create-order", response_model=PayPalOrderResponse)
async def create_paypal_order(
    request: PayPalOrderRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, request.booking_id)
    order = booking_service.create_paypal_order(db, current_user, booking)
    approve_url = next(
        (link.get("href") for link in order.get("links", []) if link.get("rel") in ("approve", "payer-action")),
        None
    )
    logger.info(f"PayPal order ready for booking {booking.id}")
    return {"order_id": order.get("id"), "status": order.get("status"), "approve_url": approve_url}


@router.post("/paypal/authorize", response_model=PayPalAuthorizeResponse)
async def authorize_paypal_order(
    request: PayPalOrderRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    booking = booking_service.get_booking_for(db, current_user, request.booking_id)
    booking = booking_service.authorize_paypal_order(db, current_user, booking)
    return {
        "booking_id": booking.id,
        "booking_status": booking.status.value,
        "authorization_id": booking.paypal_authorization_id,
    }
