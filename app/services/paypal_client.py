"""
PayPal REST API client (orders, authorizations, payouts, webhook verification)
"""
import time
from typing import Any, Dict, Optional

import requests

from app.core.config import settings
from app.core.exceptions import PaymentProcessorError, WebhookVerificationError
from app.core.logging_config import logger
from app.utils.price_utils import to_major_units

PAYPAL_API_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}

REQUIRED_WEBHOOK_HEADERS = (
    "paypal-transmission-id",
    "paypal-transmission-time",
    "paypal-transmission-sig",
    "paypal-cert-url",
    "paypal-auth-algo",
)


class PayPalClient:
    """Client for the PayPal REST API using OAuth2 client credentials"""

    def __init__(self):
        self.base_url = PAYPAL_API_URLS.get(settings.PAYPAL_ENVIRONMENT, PAYPAL_API_URLS["sandbox"])
        self.timeout = settings.PAYPAL_TIMEOUT_SECONDS
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    def get_access_token(self) -> str:
        if self._access_token and time.time() < self._token_expires_at:
            return self._access_token

        if not (settings.PAYPAL_CLIENT_ID and settings.PAYPAL_CLIENT_SECRET):
            raise PaymentProcessorError("PayPal credentials not configured", {"processor": "paypal"})

        try:
            response = requests.post(
                f"{self.base_url}/v1/oauth2/token",
                auth=(settings.PAYPAL_CLIENT_ID, settings.PAYPAL_CLIENT_SECRET),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"PayPal token request failed: {str(e)}")
            raise PaymentProcessorError("Failed to authenticate with PayPal", {"processor": "paypal"})

        data = response.json()
        self._access_token = data["access_token"]
        # Refresh a minute before expiry
        self._token_expires_at = time.time() + int(data.get("expires_in", 300)) - 60
        return self._access_token

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        if request_id:
            headers["PayPal-Request-Id"] = request_id

        try:
            response = requests.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            detail = getattr(getattr(e, "response", None), "text", "")
            logger.error(f"PayPal {operation} failed: {str(e)} {detail[:500]}")
            raise PaymentProcessorError(f"Payment processor error during {operation}", {"processor": "paypal"})

        return response.json() if response.content else {}

    def create_order(self, booking_id: int, amount: int, currency: str, description: str) -> Dict[str, Any]:
        """Create an order with intent AUTHORIZE; funds are captured at check-out"""
        return self._request(
            "POST",
            "/v2/checkout/orders",
            "order creation",
            json={
                "intent": "AUTHORIZE",
                "purchase_units": [{
                    "reference_id": str(booking_id),
                    "custom_id": str(booking_id),
                    "description": description[:127],
                    "amount": {"currency_code": currency.upper(), "value": to_major_units(amount)},
                }],
            },
            request_id=f"booking-{booking_id}-order",
        )

    def authorize_order(self, order_id: str, booking_id: int) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/v2/checkout/orders/{order_id}/authorize",
            "authorization",
            request_id=f"booking-{booking_id}-authorize",
        )

    def capture_authorization(self, authorization_id: str, amount: int, currency: str, request_id: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/v2/payments/authorizations/{authorization_id}/capture",
            "capture",
            json={
                "amount": {"currency_code": currency.upper(), "value": to_major_units(amount)},
                "final_capture": True,
            },
            request_id=request_id,
        )

    def void_authorization(self, authorization_id: str, request_id: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/v2/payments/authorizations/{authorization_id}/void",
            "void",
            request_id=request_id,
        )

    def refund_capture(self, capture_id: str, amount: int, currency: str, request_id: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/v2/payments/captures/{capture_id}/refund",
            "refund",
            json={"amount": {"currency_code": currency.upper(), "value": to_major_units(amount)}},
            request_id=request_id,
        )

    def create_payout(
        self,
        sender_batch_id: str,
        sender_item_id: str,
        receiver_email: str,
        amount: int,
        currency: str,
        note: str,
    ) -> Dict[str, Any]:
        """
        Single-item payout. PayPal rejects a repeated sender_batch_id, which makes
        it the idempotency key; sender_item_id ties webhook events back to the transfer.
        """
        return self._request(
            "POST",
            "/v1/payments/payouts",
            "payout",
            json={
                "sender_batch_header": {
                    "sender_batch_id": sender_batch_id,
                    "email_subject": "Casaora payout",
                },
                "items": [{
                    "recipient_type": "EMAIL",
                    "receiver": receiver_email,
                    "note": note,
                    "sender_item_id": sender_item_id,
                    "amount": {"currency": currency.upper(), "value": to_major_units(amount)},
                }],
            },
            request_id=sender_batch_id,
        )

    def verify_webhook_signature(self, headers: Dict[str, str], event: Dict[str, Any]) -> None:
        """
        Verify a webhook through PayPal's verify-webhook-signature API

        Raises:
            WebhookVerificationError: when headers are missing or PayPal reports FAILURE
        """
        if not settings.PAYPAL_WEBHOOK_ID:
            logger.error("PAYPAL_WEBHOOK_ID not configured")
            raise WebhookVerificationError("Webhook not configured")

        missing = [h for h in REQUIRED_WEBHOOK_HEADERS if not headers.get(h)]
        if missing:
            raise WebhookVerificationError("Missing required PayPal headers", {"missing": missing})

        try:
            result = self._request(
                "POST",
                "/v1/notifications/verify-webhook-signature",
                "webhook verification",
                json={
                    "auth_algo": headers["paypal-auth-algo"],
                    "cert_url": headers["paypal-cert-url"],
                    "transmission_id": headers["paypal-transmission-id"],
                    "transmission_sig": headers["paypal-transmission-sig"],
                    "transmission_time": headers["paypal-transmission-time"],
                    "webhook_id": settings.PAYPAL_WEBHOOK_ID,
                    "webhook_event": event,
                },
            )
        except PaymentProcessorError:
            raise WebhookVerificationError("Unable to verify PayPal webhook signature")

        if result.get("verification_status") != "SUCCESS":
            logger.warning(f"PayPal webhook verification status: {result.get('verification_status')}")
            raise WebhookVerificationError("Invalid signature")


# Global instance
paypal_client = PayPalClient()
