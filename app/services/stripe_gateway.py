"""
Stripe SDK wrapper

Every mutating call takes an idempotency key so retries never double-charge,
double-capture or double-pay.
"""
from typing import Any, Dict, List, Optional

import stripe

from app.core.config import settings
from app.core.exceptions import PaymentProcessorError, WebhookVerificationError
from app.core.logging_config import logger

stripe.api_key = settings.STRIPE_SECRET_KEY


class StripeGateway:
    """Thin wrapper around the stripe module used by payment and payout services"""

    def _call(self, operation: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {getattr(e, 'user_message', None) or str(e)}")
            raise PaymentProcessorError(
                f"Payment processor error during {operation}",
                {"processor": "stripe", "code": getattr(e, "code", None)}
            )

    def create_customer(self, email: str, name: Optional[str], profile_id: int):
        return self._call(
            "customer creation",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"profile_id": str(profile_id)},
            idempotency_key=f"customer-{profile_id}",
        )

    def create_payment_intent(
        self,
        amount: int,
        currency: str,
        customer_id: Optional[str],
        booking_id: int,
        metadata: Optional[Dict[str, str]] = None,
    ):
        """Authorize only; funds are captured at check-out"""
        data = {"booking_id": str(booking_id)}
        data.update(metadata or {})
        return self._call(
            "payment intent creation",
            stripe.PaymentIntent.create,
            amount=amount,
            currency=currency.lower(),
            customer=customer_id,
            capture_method="manual",
            automatic_payment_methods={"enabled": True},
            metadata=data,
            idempotency_key=f"booking-{booking_id}-intent-{amount}-{currency.lower()}",
        )

    def capture_payment_intent(self, payment_intent_id: str, amount_to_capture: Optional[int], idempotency_key: str):
        params: Dict[str, Any] = {"idempotency_key": idempotency_key}
        if amount_to_capture is not None:
            params["amount_to_capture"] = amount_to_capture
        return self._call("capture", stripe.PaymentIntent.capture, payment_intent_id, **params)

    def cancel_payment_intent(self, payment_intent_id: str, idempotency_key: str, reason: str = "requested_by_customer"):
        return self._call(
            "void",
            stripe.PaymentIntent.cancel,
            payment_intent_id,
            cancellation_reason=reason,
            idempotency_key=idempotency_key,
        )

    def create_refund(self, payment_intent_id: str, amount: int, idempotency_key: str, reason: str = "requested_by_customer"):
        return self._call(
            "refund",
            stripe.Refund.create,
            payment_intent=payment_intent_id,
            amount=amount,
            reason=reason,
            idempotency_key=idempotency_key,
        )

    def list_payment_methods(self, customer_id: str) -> List[Dict[str, Any]]:
        methods = self._call(
            "payment method listing",
            stripe.PaymentMethod.list,
            customer=customer_id,
            type="card",
        )
        results = []
        for method in methods.data:
            card = method.card
            results.append({
                "id": method.id,
                "brand": card.brand,
                "last4": card.last4,
                "exp_month": card.exp_month,
                "exp_year": card.exp_year,
            })
        return results

    def create_instant_payout(
        self,
        stripe_account_id: str,
        amount: int,
        currency: str,
        idempotency_key: str,
        metadata: Dict[str, str],
    ):
        return self._call(
            "instant payout",
            stripe.Payout.create,
            amount=amount,
            currency=currency.lower(),
            method="instant",
            statement_descriptor=settings.STRIPE_STATEMENT_DESCRIPTOR,
            metadata=metadata,
            stripe_account=stripe_account_id,
            idempotency_key=idempotency_key,
        )

    def create_transfer(
        self,
        destination_account_id: str,
        amount: int,
        currency: str,
        idempotency_key: str,
        metadata: Dict[str, str],
    ):
        """Move scheduled payout funds from the platform to a connected account"""
        return self._call(
            "transfer",
            stripe.Transfer.create,
            amount=amount,
            currency=currency.lower(),
            destination=destination_account_id,
            description=settings.STRIPE_STATEMENT_DESCRIPTOR,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """Verify the Stripe-Signature header (includes its own timestamp tolerance)"""
        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.error("STRIPE_WEBHOOK_SECRET not configured")
            raise WebhookVerificationError("Webhook secret not configured")
        if not signature:
            raise WebhookVerificationError("Missing stripe-signature header")
        try:
            return stripe.Webhook.construct_event(
                payload,
                signature,
                settings.STRIPE_WEBHOOK_SECRET,
                tolerance=settings.WEBHOOK_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe webhook signature verification failed: {str(e)}")
            raise WebhookVerificationError("Invalid signature")
        except ValueError:
            raise WebhookVerificationError("Invalid payload")


# Global instance
stripe_gateway = StripeGateway()
