"""
Booking management service

Every operation checks ownership first, then the status transition, then writes.
"""
from math import asin, cos, radians, sin, sqrt
from typing import Optional, Dict
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import and_, func

from app.core.config import settings
from app.core.exceptions import (
    NotFoundError, PermissionDeniedError, ValidationFailedError, PaymentProcessorError
)
from app.core.logging_config import logger
from app.db.models import (
    Booking, BookingStatus, Dispute, DisputeStatus, Profile, ProfessionalProfile,
    PaymentProcessor, Review, UserRole, AdminAuditLog, utcnow
)
from app.schemas.booking import BookingCreate
from app.services.balance_service import balance_service
from app.services.booking_lifecycle import ACTIVE_STATUSES, assert_transition, transition
from app.services.cancellation_policy import calculate_cancellation_policy, calculate_refund_amount
from app.services.notification_service import notification_service
from app.services.payment_calculation import payment_calculation_service
from app.services.payment_service import payment_service
from app.services.rebook_nudge_service import rebook_variant_for
from app.utils.price_utils import (
    get_currency_for_country, get_primary_payment_processor, is_payment_processor_supported, is_valid_price
)

EARTH_RADIUS_METERS = 6_371_000


def haversine_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates in meters"""
    d_lat = radians(lat2 - lat1)
    d_lng = radians(lng2 - lng1)
    a = sin(d_lat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * asin(sqrt(a))


def _distance_to_address(booking: Booking, latitude: float, longitude: float) -> Optional[float]:
    address = booking.address or {}
    if address.get("latitude") is None or address.get("longitude") is None:
        return None
    return haversine_meters(latitude, longitude, float(address["latitude"]), float(address["longitude"]))


class BookingService:
    """Service for booking lifecycle operations"""

    # Lookup

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Booking:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    @staticmethod
    def get_booking_for(db: Session, user: Profile, booking_id: int) -> Booking:
        """Booking visible to the user: its customer, its professional, or an admin"""
        booking = BookingService.get_booking(db, booking_id)
        if user.role == UserRole.ADMIN:
            return booking
        if user.id not in (booking.customer_id, booking.professional_id):
            logger.warning(f"User {user.id} denied access to booking {booking_id}")
            raise PermissionDeniedError("You do not have access to this booking")
        return booking

    @staticmethod
    def list_bookings_query(db: Session, user: Profile, status: Optional[BookingStatus] = None):
        query = db.query(Booking)
        if user.role == UserRole.PROFESSIONAL:
            query = query.filter(Booking.professional_id == user.id)
        elif user.role != UserRole.ADMIN:
            query = query.filter(Booking.customer_id == user.id)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.scheduled_start.desc(), Booking.id.desc())

    @staticmethod
    def _require_customer(user: Profile, booking: Booking):
        if user.id != booking.customer_id:
            raise PermissionDeniedError("Only the customer on this booking can do this")

    @staticmethod
    def _require_professional(user: Profile, booking: Booking):
        if user.id != booking.professional_id:
            raise PermissionDeniedError("Only the assigned professional can do this")

    # Creation

    @staticmethod
    def create_booking(db: Session, customer: Profile, data: BookingCreate, now: Optional[datetime] = None) -> Booking:
        now = now or utcnow()

        professional = db.query(Profile).filter(
            Profile.id == data.professional_id,
            Profile.role == UserRole.PROFESSIONAL,
            Profile.is_active == True
        ).first()
        if not professional:
            raise NotFoundError("Professional not found")
        if professional.id == customer.id:
            raise ValidationFailedError("You cannot book yourself")

        if data.scheduled_start <= now:
            raise ValidationFailedError("Scheduled start must be in the future")
        if not settings.MIN_BOOKING_MINUTES <= data.duration_minutes <= settings.MAX_BOOKING_MINUTES:
            raise ValidationFailedError(
                f"Duration must be between {settings.MIN_BOOKING_MINUTES} and {settings.MAX_BOOKING_MINUTES} minutes"
            )

        country = professional.country
        if not is_valid_price(data.amount, country):
            raise ValidationFailedError("Amount is outside the allowed price range", {"country": country.value})

        processor = data.payment_processor or get_primary_payment_processor(country)
        if not is_payment_processor_supported(processor, country):
            raise ValidationFailedError(
                f"Payment processor {processor.value} is not supported in {country.value}"
            )

        scheduled_end = data.scheduled_start + timedelta(minutes=data.duration_minutes)

        # Lock the professional's active bookings while checking for overlaps
        overlapping = db.query(Booking).filter(
            Booking.professional_id == professional.id,
            Booking.status.in_(ACTIVE_STATUSES),
            and_(Booking.scheduled_start < scheduled_end, Booking.scheduled_end > data.scheduled_start)
        ).with_for_update().first()
        if overlapping:
            raise ValidationFailedError(
                "The professional already has a booking at that time",
                {"conflicting_booking_id": overlapping.id}
            )

        checkout = payment_calculation_service.calculate_checkout(data.amount, country, data.is_direct_hire)
        booking = Booking(
            customer_id=customer.id,
            professional_id=professional.id,
            service_name=data.service_name,
            status=BookingStatus.PENDING_PAYMENT,
            scheduled_start=data.scheduled_start,
            duration_minutes=data.duration_minutes,
            scheduled_end=scheduled_end,
            address=data.address.model_dump(),
            special_instructions=data.special_instructions,
            country=country,
            currency=get_currency_for_country(country),
            payment_processor=processor,
            amount_estimated=checkout["service_amount"],
            service_fee=checkout["service_fee"],
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)

        logger.info(f"Booking created: {booking.id} (customer {customer.id} -> professional {professional.id})")
        return booking

    # Professional response

    @staticmethod
    def accept_booking(db: Session, professional: Profile, booking: Booking) -> Booking:
        BookingService._require_professional(professional, booking)
        transition(booking, BookingStatus.CONFIRMED)
        booking.accepted_at = utcnow()
        notification_service.notify_booking_accepted(db, booking)
        db.commit()
        db.refresh(booking)
        logger.info(f"Booking accepted: {booking.id}")
        return booking

    @staticmethod
    def decline_booking(db: Session, professional: Profile, booking: Booking, reason: str) -> Booking:
        BookingService._require_professional(professional, booking)
        assert_transition(booking.status, BookingStatus.DECLINED)

        payment_service.void(db, booking, f"booking-{booking.id}-decline-void", professional.id)

        transition(booking, BookingStatus.DECLINED)
        booking.decline_reason = reason
        notification_service.notify_booking_declined(db, booking)
        db.commit()
        db.refresh(booking)
        logger.info(f"Booking declined: {booking.id}")
        return booking

    # Cancellation

    @staticmethod
    def cancel_booking(db: Session, actor: Profile, booking: Booking, reason: str) -> Dict:
        """
        Cancel with the refund policy applied.

        Authorized-only payments are voided in full. Captured payments are
        refunded by the policy percentage, or 100% when the professional or an
        admin cancels.
        """
        is_customer = actor.id == booking.customer_id
        is_professional = actor.id == booking.professional_id
        if not (is_customer or is_professional or actor.role == UserRole.ADMIN):
            raise PermissionDeniedError("You do not have access to this booking")

        assert_transition(booking.status, BookingStatus.CANCELLED)

        policy = calculate_cancellation_policy(booking.scheduled_start, booking.status)
        if is_customer and not policy.can_cancel:
            raise ValidationFailedError(policy.reason)

        refund_percentage = policy.refund_percentage if is_customer else 100
        refund_amount = 0

        if booking.amount_captured:
            refund_amount = calculate_refund_amount(booking.amount_captured, refund_percentage)
            payment_service.refund(db, booking, refund_amount, f"booking-{booking.id}-cancel-refund", actor.id)
        else:
            voided = payment_service.void(db, booking, f"booking-{booking.id}-cancel-void", actor.id)
            if voided:
                refund_amount = booking.amount_authorized or 0

        transition(booking, BookingStatus.CANCELLED)
        booking.cancellation_reason = reason
        booking.cancelled_by = actor.id
        booking.cancelled_at = utcnow()

        recipient = booking.professional if is_customer else booking.customer
        notification_service.notify_booking_cancelled(db, booking, recipient, refund_amount)
        db.commit()
        db.refresh(booking)

        logger.info(f"Booking cancelled: {booking.id} by {actor.id}, refund {refund_percentage}% ({refund_amount})")
        return {
            "booking": booking,
            "refund_percentage": refund_percentage,
            "refund_amount": refund_amount,
            "reason": policy.reason if is_customer else "Cancelled by the service provider",
        }

    # Service execution

    @staticmethod
    def check_in(db: Session, professional: Profile, booking: Booking, latitude: float, longitude: float) -> Booking:
        BookingService._require_professional(professional, booking)
        transition(booking, BookingStatus.IN_PROGRESS)

        distance = _distance_to_address(booking, latitude, longitude)
        if distance is not None and distance > settings.CHECK_IN_RADIUS_METERS:
            logger.warning(
                f"Check-in for booking {booking.id} is {distance:.0f}m from the service address "
                f"(radius {settings.CHECK_IN_RADIUS_METERS}m)"
            )

        booking.checked_in_at = utcnow()
        booking.check_in_latitude = latitude
        booking.check_in_longitude = longitude
        notification_service.notify_service_started(db, booking)
        db.commit()
        db.refresh(booking)
        logger.info(f"Booking checked in: {booking.id}")
        return booking

    @staticmethod
    def check_out(
        db: Session,
        professional: Profile,
        booking: Booking,
        latitude: float,
        longitude: float,
        completion_notes: Optional[str] = None
    ) -> Booking:
        BookingService._require_professional(professional, booking)
        assert_transition(booking.status, BookingStatus.COMPLETED)
        if not booking.checked_in_at:
            raise ValidationFailedError("Booking has not been checked in")
        if not (booking.stripe_payment_intent_id or booking.paypal_authorization_id):
            raise ValidationFailedError("Booking has no payment authorization")

        amount = (booking.amount_authorized or 0) + (booking.time_extension_amount or 0)
        try:
            payment_service.capture(db, booking, amount, f"booking-{booking.id}-checkout-capture", professional.id)
        except PaymentProcessorError as e:
            notification_service.notify_admin_payment_failure(db, booking, e.message)
            db.commit()
            raise

        now = utcnow()
        transition(booking, BookingStatus.COMPLETED)
        booking.checked_out_at = now
        booking.check_out_latitude = latitude
        booking.check_out_longitude = longitude
        booking.actual_duration_minutes = round((now - booking.checked_in_at).total_seconds() / 60)
        booking.completion_notes = completion_notes
        booking.rebook_nudge_variant = rebook_variant_for(booking.id)

        balance_service.add_to_pending_balance(db, booking, now)
        pro_profile = db.query(ProfessionalProfile).filter(
            ProfessionalProfile.profile_id == booking.professional_id
        ).first()
        if pro_profile:
            pro_profile.total_bookings = (pro_profile.total_bookings or 0) + 1

        notification_service.notify_service_completed(db, booking)
        db.commit()
        db.refresh(booking)
        logger.info(f"Booking checked out: {booking.id}, captured {amount}")
        return booking

    # Disputes

    @staticmethod
    def open_dispute(
        db: Session,
        customer: Profile,
        booking: Booking,
        reason: str,
        description: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Dispute:
        BookingService._require_customer(customer, booking)
        assert_transition(booking.status, BookingStatus.DISPUTED)

        now = now or utcnow()
        window = timedelta(hours=settings.DISPUTE_WINDOW_HOURS)
        if not booking.checked_out_at or now - booking.checked_out_at > window:
            raise ValidationFailedError(
                f"Disputes must be opened within {settings.DISPUTE_WINDOW_HOURS} hours of service completion"
            )

        dispute = Dispute(
            booking_id=booking.id,
            opened_by=customer.id,
            reason=reason,
            description=description,
            status=DisputeStatus.OPEN,
        )
        db.add(dispute)
        # Pending clearance stays frozen while the booking is disputed
        transition(booking, BookingStatus.DISPUTED)
        db.flush()
        notification_service.notify_dispute_opened(db, booking, dispute)
        db.commit()
        db.refresh(dispute)
        logger.info(f"Dispute {dispute.id} opened on booking {booking.id}")
        return dispute

    @staticmethod
    def get_dispute(db: Session, dispute_id: int) -> Dispute:
        dispute = db.query(Dispute).filter(Dispute.id == dispute_id).first()
        if not dispute:
            raise NotFoundError("Dispute not found")
        return dispute

    @staticmethod
    def resolve_dispute(
        db: Session,
        admin: Profile,
        dispute: Dispute,
        resolution_notes: str,
        refund_amount: int = 0
    ) -> Dispute:
        if admin.role != UserRole.ADMIN:
            raise PermissionDeniedError("Admin access required")
        if dispute.status != DisputeStatus.OPEN:
            raise ValidationFailedError("Dispute is already resolved")

        booking = dispute.booking
        assert_transition(booking.status, BookingStatus.COMPLETED)

        refundable = (booking.amount_captured or 0) - (booking.amount_refunded or 0)
        refund_amount = min(max(refund_amount, 0), refundable)
        if refund_amount:
            payment_service.refund(db, booking, refund_amount, f"dispute-{dispute.id}-refund", admin.id)
            if booking.amount_refunded >= (booking.amount_captured or 0):
                balance_service.cancel_clearance(db, booking.id)
            else:
                balance_service.reduce_clearance(db, booking.id, refund_amount)

        dispute.status = DisputeStatus.RESOLVED
        dispute.resolution_notes = resolution_notes
        dispute.refund_amount = refund_amount
        dispute.resolved_by = admin.id
        dispute.resolved_at = utcnow()
        transition(booking, BookingStatus.COMPLETED)

        db.add(AdminAuditLog(
            admin_id=admin.id,
            action_type="resolve_dispute",
            target_user_id=booking.customer_id,
            target_resource_type="dispute",
            target_resource_id=str(dispute.id),
            details={"booking_id": booking.id, "refund_amount": refund_amount},
            notes=resolution_notes,
        ))
        notification_service.notify_dispute_resolved(db, booking, dispute)
        db.commit()
        db.refresh(dispute)
        logger.info(f"Dispute {dispute.id} resolved by admin {admin.id}, refund {refund_amount}")
        return dispute

    # Reviews

    @staticmethod
    def add_review(db: Session, customer: Profile, booking: Booking, rating: int, comment: Optional[str] = None) -> Review:
        BookingService._require_customer(customer, booking)
        if booking.status != BookingStatus.COMPLETED:
            raise ValidationFailedError("Only completed bookings can be reviewed")
        if not 1 <= rating <= 5:
            raise ValidationFailedError("Rating must be between 1 and 5")
        if db.query(Review).filter(Review.booking_id == booking.id).first():
            raise ValidationFailedError("This booking has already been reviewed")

        review = Review(
            booking_id=booking.id,
            customer_id=customer.id,
            professional_id=booking.professional_id,
            rating=rating,
            comment=comment,
        )
        db.add(review)
        db.flush()

        count, average = db.query(func.count(Review.id), func.avg(Review.rating)).filter(
            Review.professional_id == booking.professional_id,
            Review.is_hidden == False
        ).one()
        pro_profile = db.query(ProfessionalProfile).filter(
            ProfessionalProfile.profile_id == booking.professional_id
        ).first()
        if pro_profile:
            pro_profile.review_count = count
            pro_profile.rating = round(float(average or 0), 2)

        db.commit()
        db.refresh(review)
        logger.info(f"Review {review.id} added for booking {booking.id}")
        return review

    # Payment API

    @staticmethod
    def _require_intent(booking: Booking, payment_intent_id: str):
        if booking.stripe_payment_intent_id != payment_intent_id:
            raise ValidationFailedError("Payment intent does not belong to this booking")

    @staticmethod
    def create_payment_intent(db: Session, customer: Profile, booking: Booking, amount: int, currency: str):
        BookingService._require_customer(customer, booking)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            raise ValidationFailedError("Booking is not awaiting payment")
        intent = payment_service.create_payment_intent(db, booking, customer, amount, currency)
        db.commit()
        return intent

    @staticmethod
    def capture_intent(
        db: Session,
        user: Profile,
        booking: Booking,
        payment_intent_id: str,
        amount_to_capture: Optional[int] = None
    ) -> Booking:
        """Capture the authorized intent and complete the booking"""
        if user.id not in (booking.customer_id, booking.professional_id):
            raise PermissionDeniedError("You do not have access to this booking")
        BookingService._require_intent(booking, payment_intent_id)
        assert_transition(booking.status, BookingStatus.COMPLETED)

        amount = amount_to_capture or (booking.amount_authorized or 0) + (booking.time_extension_amount or 0)
        try:
            payment_service.capture(db, booking, amount, f"booking-{booking.id}-capture", user.id)
        except PaymentProcessorError as e:
            notification_service.notify_admin_payment_failure(db, booking, e.message)
            db.commit()
            raise

        now = utcnow()
        transition(booking, BookingStatus.COMPLETED)
        booking.checked_out_at = booking.checked_out_at or now
        booking.rebook_nudge_variant = rebook_variant_for(booking.id)
        balance_service.add_to_pending_balance(db, booking, now)
        notification_service.notify_service_completed(db, booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def void_intent(db: Session, user: Profile, booking: Booking, payment_intent_id: str) -> Booking:
        """Release the authorization and cancel a booking that has not started"""
        if user.id not in (booking.customer_id, booking.professional_id) and user.role != UserRole.ADMIN:
            raise PermissionDeniedError("You do not have access to this booking")
        BookingService._require_intent(booking, payment_intent_id)
        if booking.status not in (BookingStatus.PENDING_PAYMENT, BookingStatus.PENDING, BookingStatus.CONFIRMED):
            raise ValidationFailedError(f"Cannot void payment for a booking in status {booking.status.value}")

        payment_service.void(db, booking, f"booking-{booking.id}-void", user.id)
        transition(booking, BookingStatus.CANCELLED)
        booking.cancelled_by = user.id
        booking.cancelled_at = utcnow()
        booking.cancellation_reason = booking.cancellation_reason or "Payment authorization voided"
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def process_tip(db: Session, customer: Profile, booking: Booking, amount: int, percentage: Optional[float] = None):
        BookingService._require_customer(customer, booking)
        if booking.status != BookingStatus.COMPLETED:
            raise ValidationFailedError("Tips can only be added to completed bookings")
        if booking.tip_amount:
            raise ValidationFailedError("This booking already has a tip")
        if amount <= 0 or amount > settings.MAX_TIP_AMOUNT:
            raise ValidationFailedError(f"Tip must be between 1 and {settings.MAX_TIP_AMOUNT}")
        if amount > booking.amount_estimated:
            raise ValidationFailedError("Tip cannot exceed the service amount")

        transaction = payment_service.record_tip(db, booking, amount, customer.id)
        booking.tip_amount = amount
        booking.tip_percentage = percentage
        balance_service.add_tip(db, booking, amount)
        db.commit()
        db.refresh(transaction)
        logger.info(f"Tip of {amount} recorded for booking {booking.id}")
        return transaction

    @staticmethod
    def create_paypal_order(db: Session, customer: Profile, booking: Booking) -> Dict:
        BookingService._require_customer(customer, booking)
        if booking.status != BookingStatus.PENDING_PAYMENT:
            raise ValidationFailedError("Booking is not awaiting payment")
        if booking.payment_processor != PaymentProcessor.PAYPAL:
            raise ValidationFailedError("Booking is not paid with PayPal")
        order = payment_service.create_paypal_order(db, booking, customer)
        db.commit()
        return order

    @staticmethod
    def authorize_paypal_order(db: Session, customer: Profile, booking: Booking) -> Booking:
        BookingService._require_customer(customer, booking)
        if booking.payment_processor != PaymentProcessor.PAYPAL:
            raise ValidationFailedError("Booking is not paid with PayPal")
        assert_transition(booking.status, BookingStatus.PENDING)

        payment_service.authorize_paypal_order(db, booking, customer)
        transition(booking, BookingStatus.PENDING)
        notification_service.notify_new_booking(db, booking)
        db.commit()
        db.refresh(booking)
        logger.info(f"PayPal authorization recorded for booking {booking.id}")
        return booking


# Global instance
booking_service = BookingService()
