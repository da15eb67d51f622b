"""
Payment processor facade

Dispatches authorize/capture/void/refund on the booking's processor and records
every call as a PaymentTransaction keyed by the idempotency key sent to the
processor. A key that already succeeded returns the stored transaction without
calling the processor again.
"""
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import PaymentProcessorError, ValidationFailedError
from app.core.logging_config import logger
from app.db.models import (
    Booking, CustomerProfile, PaymentProcessor, PaymentTransaction, Profile,
    TransactionStatus, TransactionType
)
from app.services.paypal_client import paypal_client
from app.services.stripe_gateway import stripe_gateway


def _stripe_summary(obj) -> Dict[str, Any]:
    return {
        "id": getattr(obj, "id", None),
        "object": getattr(obj, "object", None),
        "status": getattr(obj, "status", None),
        "amount": getattr(obj, "amount", None),
    }


def _paypal_summary(data: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": data.get("id"), "status": data.get("status")}


class PaymentService:
    """Service for processor calls on bookings"""

    @staticmethod
    def get_transaction(db: Session, idempotency_key: str) -> Optional[PaymentTransaction]:
        return db.query(PaymentTransaction).filter(
            PaymentTransaction.idempotency_key == idempotency_key
        ).first()

    @staticmethod
    def _begin(
        db: Session,
        booking: Booking,
        transaction_type: TransactionType,
        amount: int,
        idempotency_key: str,
        user_id: Optional[int]
    ) -> PaymentTransaction:
        """Return the row for this key, creating it in PENDING state when new"""
        transaction = PaymentService.get_transaction(db, idempotency_key)
        if transaction is None:
            transaction = PaymentTransaction(
                booking_id=booking.id,
                user_id=user_id,
                processor=booking.payment_processor,
                transaction_type=transaction_type,
                status=TransactionStatus.PENDING,
                amount=amount,
                currency=booking.currency,
                idempotency_key=idempotency_key,
            )
            db.add(transaction)
            db.flush()
        return transaction

    @staticmethod
    def _fail(db: Session, transaction: PaymentTransaction, error: PaymentProcessorError):
        transaction.status = TransactionStatus.FAILED
        transaction.failure_reason = error.message
        # Persist the failure even though the caller's unit of work is rolled back
        db.commit()

    @staticmethod
    def _succeed(transaction: PaymentTransaction, reference: Optional[str], response: Dict[str, Any]):
        transaction.status = TransactionStatus.SUCCEEDED
        transaction.processor_reference = reference
        transaction.gateway_response = response
        transaction.failure_reason = None

    @staticmethod
    def get_or_create_stripe_customer(db: Session, user: Profile) -> str:
        customer_profile = db.query(CustomerProfile).filter(CustomerProfile.profile_id == user.id).first()
        if customer_profile and customer_profile.stripe_customer_id:
            return customer_profile.stripe_customer_id

        customer = stripe_gateway.create_customer(user.email, user.full_name, user.id)
        if not customer_profile:
            customer_profile = CustomerProfile(profile_id=user.id)
            db.add(customer_profile)
        customer_profile.stripe_customer_id = customer.id
        db.flush()
        logger.info(f"Stripe customer {customer.id} created for user {user.id}")
        return customer.id

    @staticmethod
    def create_payment_intent(db: Session, booking: Booking, user: Profile, amount: int, currency: str):
        """Create (or reuse) the manual-capture intent authorizing the booking total"""
        customer_id = PaymentService.get_or_create_stripe_customer(db, user)
        key = f"booking-{booking.id}-intent-{amount}-{currency.lower()}"
        transaction = PaymentService._begin(db, booking, TransactionType.AUTHORIZATION, amount, key, user.id)

        try:
            intent = stripe_gateway.create_payment_intent(
                amount=amount,
                currency=currency,
                customer_id=customer_id,
                booking_id=booking.id,
                metadata={"customer_id": str(user.id), "professional_id": str(booking.professional_id)},
            )
        except PaymentProcessorError as e:
            PaymentService._fail(db, transaction, e)
            raise

        PaymentService._succeed(transaction, intent.id, _stripe_summary(intent))
        booking.stripe_payment_intent_id = intent.id
        booking.stripe_payment_status = getattr(intent, "status", None)
        booking.amount_authorized = amount
        logger.info(f"Payment intent {intent.id} created for booking {booking.id}")
        return intent

    @staticmethod
    def create_paypal_order(db: Session, booking: Booking, user: Profile) -> Dict[str, Any]:
        """Create (or replay) the AUTHORIZE order; the key matches the PayPal-Request-Id the client sends"""
        amount = booking.amount_estimated + booking.service_fee
        key = f"booking-{booking.id}-order"
        transaction = PaymentService._begin(db, booking, TransactionType.AUTHORIZATION, amount, key, user.id)

        try:
            order = paypal_client.create_order(
                booking_id=booking.id,
                amount=amount,
                currency=booking.currency.value,
                description=booking.service_name,
            )
        except PaymentProcessorError as e:
            PaymentService._fail(db, transaction, e)
            raise

        PaymentService._succeed(transaction, order.get("id"), _paypal_summary(order))
        booking.paypal_order_id = order.get("id")
        logger.info(f"PayPal order {booking.paypal_order_id} created for booking {booking.id}")
        return order

    @staticmethod
    def authorize_paypal_order(db: Session, booking: Booking, user: Profile) -> PaymentTransaction:
        if not booking.paypal_order_id:
            raise ValidationFailedError("Booking has no PayPal order")

        amount = booking.amount_estimated + booking.service_fee
        key = f"booking-{booking.id}-paypal-authorize"
        transaction = PaymentService._begin(db, booking, TransactionType.AUTHORIZATION, amount, key, user.id)
        if transaction.status == TransactionStatus.SUCCEEDED:
            return transaction

        try:
            result = paypal_client.authorize_order(booking.paypal_order_id, booking.id)
        except PaymentProcessorError as e:
            PaymentService._fail(db, transaction, e)
            raise

        authorization_id = None
        for unit in result.get("purchase_units", []):
            for authorization in unit.get("payments", {}).get("authorizations", []):
                authorization_id = authorization.get("id")
        if not authorization_id:
            error = PaymentProcessorError("PayPal returned no authorization", {"processor": "paypal"})
            PaymentService._fail(db, transaction, error)
            raise error

        PaymentService._succeed(transaction, authorization_id, _paypal_summary(result))
        booking.paypal_authorization_id = authorization_id
        booking.amount_authorized = amount
        return transaction

    @staticmethod
    def capture(
        db: Session,
        booking: Booking,
        amount: int,
        idempotency_key: str,
        user_id: Optional[int] = None
    ) -> PaymentTransaction:
        transaction = PaymentService._begin(db, booking, TransactionType.CAPTURE, amount, idempotency_key, user_id)
        if transaction.status == TransactionStatus.SUCCEEDED:
            logger.info(f"Capture {idempotency_key} already succeeded, returning stored transaction")
            return transaction

        try:
            if booking.payment_processor == PaymentProcessor.PAYPAL:
                if not booking.paypal_authorization_id:
                    raise PaymentProcessorError("Booking has no PayPal authorization", {"processor": "paypal"})
                result = paypal_client.capture_authorization(
                    booking.paypal_authorization_id, amount, booking.currency.value, idempotency_key
                )
                reference, response = result.get("id"), _paypal_summary(result)
                booking.paypal_capture_id = reference
            else:
                if not booking.stripe_payment_intent_id:
                    raise PaymentProcessorError("Booking has no payment intent", {"processor": "stripe"})
                intent = stripe_gateway.capture_payment_intent(
                    booking.stripe_payment_intent_id, amount, idempotency_key
                )
                reference, response = intent.id, _stripe_summary(intent)
                booking.stripe_payment_status = getattr(intent, "status", None)
        except PaymentProcessorError as e:
            PaymentService._fail(db, transaction, e)
            raise

        PaymentService._succeed(transaction, reference, response)
        booking.amount_captured = amount
        logger.info(f"Captured {amount} for booking {booking.id} ({idempotency_key})")
        return transaction

    @staticmethod
    def void(
        db: Session,
        booking: Booking,
        idempotency_key: str,
        user_id: Optional[int] = None
    ) -> Optional[PaymentTransaction]:
        """Release an uncaptured authorization. Returns None when nothing was authorized."""
        if booking.payment_processor == PaymentProcessor.PAYPAL:
            if not booking.paypal_authorization_id:
                return None
        elif not booking.stripe_payment_intent_id:
            return None

        transaction = PaymentService._begin(
            db, booking, TransactionType.VOID, booking.amount_authorized or 0, idempotency_key, user_id
        )
        if transaction.status == TransactionStatus.SUCCEEDED:
            return transaction

        try:
            if booking.payment_processor == PaymentProcessor.PAYPAL:
                result = paypal_client.void_authorization(booking.paypal_authorization_id, idempotency_key)
                reference, response = booking.paypal_authorization_id, _paypal_summary(result)
            else:
                intent = stripe_gateway.cancel_payment_intent(booking.stripe_payment_intent_id, idempotency_key)
                reference, response = intent.id, _stripe_summary(intent)
                booking.stripe_payment_status = getattr(intent, "status", None)
        except PaymentProcessorError as e:
            PaymentService._fail(db, transaction, e)
            raise

        PaymentService._succeed(transaction, reference, response)
        logger.info(f"Voided authorization for booking {booking.id} ({idempotency_key})")
        return transaction

    @staticmethod
    def refund(
        db: Session,
        booking: Booking,
        amount: int,
        idempotency_key: str,
        user_id: Optional[int] = None
    ) -> Optional[PaymentTransaction]:
        """Refund part or all of a captured payment. Returns None for a zero amount."""
        if amount <= 0:
            return None

        refundable = (booking.amount_captured or 0) - (booking.amount_refunded or 0)
        if amount > refundable:
            raise ValidationFailedError(
                "Refund exceeds the refundable amount",
                {"requested": amount, "refundable": refundable}
            )

        transaction = PaymentService._begin(db, booking, TransactionType.REFUND, amount, idempotency_key, user_id)
        if transaction.status == TransactionStatus.SUCCEEDED:
            return transaction

        try:
            if booking.payment_processor == PaymentProcessor.PAYPAL:
                if not booking.paypal_capture_id:
                    raise PaymentProcessorError("Booking has no PayPal capture", {"processor": "paypal"})
                result = paypal_client.refund_capture(
                    booking.paypal_capture_id, amount, booking.currency.value, idempotency_key
                )
                reference, response = result.get("id"), _paypal_summary(result)
            else:
                refund = stripe_gateway.create_refund(booking.stripe_payment_intent_id, amount, idempotency_key)
                reference, response = refund.id, _stripe_summary(refund)
        except PaymentProcessorError as e:
            PaymentService._fail(db, transaction, e)
            raise

        PaymentService._succeed(transaction, reference, response)
        booking.amount_refunded = (booking.amount_refunded or 0) + amount
        logger.info(f"Refunded {amount} for booking {booking.id} ({idempotency_key})")
        return transaction

    @staticmethod
    def record_tip(db: Session, booking: Booking, amount: int, user_id: int) -> PaymentTransaction:
        """Tips are recorded against the booking and paid out with the professional's balance"""
        key = f"booking-{booking.id}-tip"
        transaction = PaymentService._begin(db, booking, TransactionType.TIP, amount, key, user_id)
        PaymentService._succeed(transaction, None, {"source": "tip"})
        return transaction


# Global instance
payment_service = PaymentService()
