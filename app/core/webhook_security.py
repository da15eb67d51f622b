"""
Webhook signature and replay protection helpers

Shared by the Stripe, PayPal and background-check webhook endpoints:
- Constant-time signature comparison
- HMAC-SHA256 hex signatures over the raw request body
- Timestamp validation against a tolerance window
"""
import hashlib
import hmac
import time
from datetime import datetime, timezone
from typing import Optional, Union

from app.core.config import settings
from app.core.exceptions import WebhookVerificationError
from app.core.logging_config import logger

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = settings.WEBHOOK_TOLERANCE_SECONDS
MAX_FUTURE_SKEW_SECONDS = settings.WEBHOOK_FUTURE_SKEW_SECONDS


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two strings in constant time"""
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute hex HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_hmac_signature(secret: str, payload: bytes, signature: Optional[str]) -> None:
    """
    Verify a hex HMAC-SHA256 signature

    Raises:
        WebhookVerificationError: if the secret is not configured or the signature does not match
    """
    if not secret:
        logger.error("Webhook secret not configured")
        raise WebhookVerificationError("Webhook secret not configured")

    expected = compute_hmac_sha256(secret, payload)
    if not constant_time_compare(expected, (signature or "").strip().lower()):
        raise WebhookVerificationError("Webhook signature verification failed")


def parse_timestamp(value: Union[str, int, float, None]) -> Optional[float]:
    """Parse a unix timestamp or an ISO-8601 datetime into epoch seconds"""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(int(value))
    except (TypeError, ValueError):
        pass
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def verify_timestamp(
    timestamp: Union[str, int, float, None],
    max_age: int = MAX_WEBHOOK_AGE_SECONDS,
    max_future_skew: int = MAX_FUTURE_SKEW_SECONDS,
    now: Optional[float] = None,
) -> None:
    """
    Reject stale, future-dated or unparseable webhook timestamps

    Raises:
        WebhookVerificationError
    """
    event_time = parse_timestamp(timestamp)
    if event_time is None:
        logger.warning(f"Invalid webhook timestamp format: {timestamp}")
        raise WebhookVerificationError("Invalid webhook timestamp")

    current_time = now if now is not None else time.time()
    age = current_time - event_time

    if age > max_age:
        logger.warning(f"Webhook timestamp too old: {int(age)}s (max: {max_age}s)")
        raise WebhookVerificationError("Webhook event is too old")

    if age < -max_future_skew:
        logger.warning(f"Webhook timestamp in the future: {int(-age)}s ahead")
        raise WebhookVerificationError("Webhook timestamp is in the future")
