"""
Webhook processing for Stripe and PayPal

Every event is verified, checked for freshness, stored once per
(provider, event_id) and then handled. Redelivery of a stored event is a no-op.
"""
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import WebhookProcessingError, WebhookVerificationError
from app.core.logging_config import logger
from app.core.webhook_security import verify_timestamp
from app.db.models import (
    Booking, BookingStatus, PayoutStatus, PayoutTransfer, ProfessionalProfile, Profile,
    WebhookEvent, WebhookEventStatus, WebhookProvider, utcnow
)
from app.services.balance_service import balance_service
from app.services.booking_lifecycle import can_transition, transition
from app.services.notification_service import notification_service
from app.services.paypal_client import paypal_client
from app.services.payout_service import payout_service
from app.services.stripe_gateway import stripe_gateway


@dataclass
class WebhookResult:
    duplicate: bool = False
    # Admin dashboard events to broadcast once the request commits
    broadcasts: List[Dict[str, Any]] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        if self.duplicate:
            return {"received": True, "duplicate": True}
        return {"received": True}


class WebhookEventStore:
    """Idempotent storage of provider events"""

    @staticmethod
    def record(
        db: Session,
        provider: WebhookProvider,
        event_id: str,
        event_type: str,
        payload: Optional[Dict[str, Any]]
    ) -> Optional[WebhookEvent]:
        """
        Store a new event in PROCESSING state and commit it.
        Returns None for a duplicate; a previously FAILED event is returned for reprocessing.
        """
        event = WebhookEvent(
            provider=provider,
            event_id=event_id,
            event_type=event_type,
            status=WebhookEventStatus.PROCESSING,
            payload=payload,
        )
        try:
            with db.begin_nested():
                db.add(event)
        except IntegrityError:
            existing = db.query(WebhookEvent).filter(
                WebhookEvent.provider == provider,
                WebhookEvent.event_id == event_id
            ).first()
            if existing is None or existing.status != WebhookEventStatus.FAILED:
                logger.info(f"Duplicate {provider.value} webhook ignored: {event_id} ({event_type})")
                return None
            logger.info(f"Retrying failed {provider.value} webhook {event_id}")
            existing.status = WebhookEventStatus.PROCESSING
            existing.error_message = None
            event = existing
        db.commit()
        return event

    @staticmethod
    def process(
        db: Session,
        provider: WebhookProvider,
        event_id: str,
        event_type: str,
        payload: Optional[Dict[str, Any]],
        handler: Callable[[Session, Dict[str, Any], WebhookResult], None]
    ) -> WebhookResult:
        stored = WebhookEventStore.record(db, provider, event_id, event_type, payload)
        if stored is None:
            return WebhookResult(duplicate=True)

        stored_id = stored.id
        result = WebhookResult()
        try:
            handler(db, payload or {}, result)
        except Exception as e:
            db.rollback()
            logger.error(f"{provider.value} webhook {event_id} ({event_type}) failed: {str(e)}", exc_info=True)
            failed = db.query(WebhookEvent).filter(WebhookEvent.id == stored_id).first()
            failed.status = WebhookEventStatus.FAILED
            failed.error_message = str(e)[:1000]
            failed.processed_at = utcnow()
            db.commit()
            raise WebhookProcessingError("Webhook processing failed", {"event_id": event_id})

        stored.status = WebhookEventStatus.PROCESSED
        stored.processed_at = utcnow()
        db.commit()
        logger.info(f"{provider.value} webhook processed: {event_type} ({event_id})")
        return result


def _booking_for_intent(db: Session, intent: Mapping[str, Any]) -> Optional[Booking]:
    booking_id = (intent.get("metadata") or {}).get("booking_id")
    query = db.query(Booking)
    if booking_id and str(booking_id).isdigit():
        booking = query.filter(Booking.id == int(booking_id)).first()
        if booking:
            return booking
    return query.filter(Booking.stripe_payment_intent_id == intent.get("id")).first()


class StripeWebhookHandler:
    """Handlers keyed by Stripe event type; each receives the event's data.object"""

    @staticmethod
    def amount_capturable_updated(db: Session, intent: Dict[str, Any], result: WebhookResult):
        booking = _booking_for_intent(db, intent)
        if not booking:
            logger.warning(f"No booking for payment intent {intent.get('id')}")
            return
        booking.stripe_payment_intent_id = intent.get("id")
        booking.stripe_payment_status = intent.get("status")
        booking.amount_authorized = intent.get("amount_capturable") or booking.amount_authorized
        if booking.status == BookingStatus.PENDING_PAYMENT:
            transition(booking, BookingStatus.PENDING)
            notification_service.notify_new_booking(db, booking)
            logger.info(f"Booking {booking.id} authorized, awaiting professional")

    @staticmethod
    def payment_succeeded(db: Session, intent: Dict[str, Any], result: WebhookResult):
        booking = _booking_for_intent(db, intent)
        if not booking:
            logger.warning(f"No booking for payment intent {intent.get('id')}")
            return
        booking.stripe_payment_status = intent.get("status")
        booking.amount_captured = intent.get("amount_received") or booking.amount_captured
        if booking.status == BookingStatus.IN_PROGRESS:
            transition(booking, BookingStatus.COMPLETED)
            booking.checked_out_at = booking.checked_out_at or utcnow()
        if booking.status == BookingStatus.COMPLETED:
            balance_service.add_to_pending_balance(db, booking)

    @staticmethod
    def payment_canceled(db: Session, intent: Dict[str, Any], result: WebhookResult):
        booking = _booking_for_intent(db, intent)
        if not booking:
            return
        booking.stripe_payment_status = intent.get("status")
        if can_transition(booking.status, BookingStatus.CANCELLED):
            transition(booking, BookingStatus.CANCELLED)
            booking.cancelled_at = utcnow()
            booking.cancellation_reason = intent.get("cancellation_reason") or "Payment authorization cancelled"
            logger.info(f"Booking {booking.id} cancelled after payment intent cancellation")

    @staticmethod
    def payment_failed(db: Session, intent: Dict[str, Any], result: WebhookResult):
        booking = _booking_for_intent(db, intent)
        if not booking:
            return
        error = intent.get("last_payment_error") or {}
        reason = error.get("message") or "Payment failed"
        booking.stripe_payment_status = "failed"
        notification_service.notify_admin_payment_failure(db, booking, reason)
        result.broadcasts.append({
            "notification_type": "payment_failed",
            "data": {"booking_id": booking.id, "reason": reason},
        })

    @staticmethod
    def charge_refunded(db: Session, charge: Dict[str, Any], result: WebhookResult):
        booking = db.query(Booking).filter(
            Booking.stripe_payment_intent_id == charge.get("payment_intent")
        ).first()
        if not booking:
            return
        refunded = charge.get("amount_refunded") or 0
        booking.amount_refunded = max(booking.amount_refunded or 0, refunded)
        logger.info(f"Booking {booking.id} refunded total {booking.amount_refunded}")

    @staticmethod
    def payout_paid(db: Session, payout: Dict[str, Any], result: WebhookResult):
        StripeWebhookHandler._payout_update(db, payout, PayoutStatus.COMPLETED, result)

    @staticmethod
    def payout_failed(db: Session, payout: Dict[str, Any], result: WebhookResult):
        StripeWebhookHandler._payout_update(db, payout, PayoutStatus.FAILED, result)

    @staticmethod
    def _payout_update(db: Session, payout: Dict[str, Any], status: PayoutStatus, result: WebhookResult):
        transfer = db.query(PayoutTransfer).filter(PayoutTransfer.stripe_payout_id == payout.get("id")).first()
        if not transfer:
            logger.warning(f"No transfer for Stripe payout {payout.get('id')}")
            return
        if payout_service.apply_status(db, transfer, status, payout.get("failure_message")):
            notification_service.notify_payout_status(db, transfer)
            if status == PayoutStatus.FAILED:
                result.broadcasts.append({
                    "notification_type": "payout_failed",
                    "data": {"transfer_id": transfer.id, "status": status.value},
                })

    @staticmethod
    def account_updated(db: Session, account: Dict[str, Any], result: WebhookResult):
        profile = db.query(ProfessionalProfile).filter(
            ProfessionalProfile.stripe_account_id == account.get("id")
        ).first()
        if not profile:
            return
        profile.instant_payout_enabled = bool(account.get("payouts_enabled"))
        logger.info(f"Instant payouts {'enabled' if profile.instant_payout_enabled else 'disabled'} "
                    f"for professional {profile.profile_id}")


STRIPE_HANDLERS = {
    "payment_intent.amount_capturable_updated": StripeWebhookHandler.amount_capturable_updated,
    "payment_intent.succeeded": StripeWebhookHandler.payment_succeeded,
    "payment_intent.canceled": StripeWebhookHandler.payment_canceled,
    "payment_intent.payment_failed": StripeWebhookHandler.payment_failed,
    "charge.refunded": StripeWebhookHandler.charge_refunded,
    "payout.paid": StripeWebhookHandler.payout_paid,
    "payout.failed": StripeWebhookHandler.payout_failed,
    "account.updated": StripeWebhookHandler.account_updated,
}


class PayPalWebhookHandler:
    """Payout item and checkout events"""

    ITEM_STATUSES = {
        "PAYMENT.PAYOUTS-ITEM.SUCCEEDED": PayoutStatus.COMPLETED,
        "PAYMENT.PAYOUTS-ITEM.FAILED": PayoutStatus.FAILED,
        "PAYMENT.PAYOUTS-ITEM.RETURNED": PayoutStatus.RETURNED,
        "PAYMENT.PAYOUTS-ITEM.BLOCKED": PayoutStatus.BLOCKED,
        "PAYMENT.PAYOUTS-ITEM.UNCLAIMED": PayoutStatus.UNCLAIMED,
    }

    @staticmethod
    def handle(db: Session, event: Dict[str, Any], result: WebhookResult):
        event_type = event.get("event_type", "")
        resource = event.get("resource") or {}

        if event_type in PayPalWebhookHandler.ITEM_STATUSES:
            PayPalWebhookHandler._payout_item(db, resource, PayPalWebhookHandler.ITEM_STATUSES[event_type], result)
        elif event_type in ("CHECKOUT.ORDER.APPROVED", "PAYMENT.AUTHORIZATION.CREATED"):
            logger.info(f"PayPal {event_type} for resource {resource.get('id')}")
        else:
            logger.info(f"Unhandled PayPal event type: {event_type}")

    @staticmethod
    def _payout_item(db: Session, resource: Dict[str, Any], status: PayoutStatus, result: WebhookResult):
        item_id = resource.get("payout_item_id")
        transfer = db.query(PayoutTransfer).filter(PayoutTransfer.paypal_payout_item_id == item_id).first()
        if not transfer:
            sender_item_id = (resource.get("payout_item") or {}).get("sender_item_id") or ""
            if sender_item_id.startswith("payout-") and sender_item_id[7:].isdigit():
                transfer = db.query(PayoutTransfer).filter(PayoutTransfer.id == int(sender_item_id[7:])).first()
        if not transfer:
            logger.warning(f"No transfer for PayPal payout item {item_id}")
            return

        if item_id and not transfer.paypal_payout_item_id:
            transfer.paypal_payout_item_id = item_id
        errors = resource.get("errors") or {}
        if not payout_service.apply_status(db, transfer, status, errors.get("message")):
            return

        if status == PayoutStatus.BLOCKED:
            professional = db.query(Profile).filter(Profile.id == transfer.professional_id).first()
            reason = f"PayPal payout {transfer.id} blocked"
            logger.error(f"{reason} for professional {professional.id if professional else '?'}")
            result.broadcasts.append({
                "notification_type": "payout_failed",
                "data": {"transfer_id": transfer.id, "status": status.value},
            })
            notification_service.notify_admins(db, "payment_failed", url=f"/admin/payouts/{transfer.id}", reason=reason)
        else:
            notification_service.notify_payout_status(db, transfer)


class WebhookService:
    """Entry points used by the webhook routes"""

    @staticmethod
    def handle_stripe(db: Session, payload: bytes, signature: Optional[str]) -> WebhookResult:
        # Raises WebhookVerificationError on a bad signature or stale header timestamp
        stripe_gateway.construct_event(payload, signature)
        event = json.loads(payload)
        verify_timestamp(event.get("created"))

        event_type = event.get("type", "")
        handler = STRIPE_HANDLERS.get(event_type)

        def run(session: Session, data: Dict[str, Any], result: WebhookResult):
            if handler is None:
                logger.info(f"Unhandled Stripe event type: {event_type}")
                return
            handler(session, (data.get("data") or {}).get("object") or {}, result)

        return WebhookEventStore.process(db, WebhookProvider.STRIPE, event["id"], event_type, event, run)

    @staticmethod
    def handle_paypal(db: Session, payload: bytes, headers: Mapping[str, str]) -> WebhookResult:
        lowered = {k.lower(): v for k, v in headers.items()}
        verify_timestamp(lowered.get("paypal-transmission-time"))
        try:
            event = json.loads(payload)
        except ValueError:
            raise WebhookVerificationError("Invalid payload")
        paypal_client.verify_webhook_signature(lowered, event)

        event_id = event.get("id")
        if not event_id:
            raise WebhookVerificationError("Missing event id")
        return WebhookEventStore.process(
            db, WebhookProvider.PAYPAL, event_id, event.get("event_type", ""), event, PayPalWebhookHandler.handle
        )


# Global instance
webhook_service = WebhookService()
