"""
Cancellation refund policy

Refund tiers by hours remaining before the scheduled start:
  >= 24h  -> 100%
  >= 12h  -> 50%
  >= 4h   -> 25%
  < 4h    -> 0%
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from app.db.models import BookingStatus, utcnow

REFUND_TIERS = (
    (24, 100, "Full refund (cancelled 24+ hours in advance)"),
    (12, 50, "50% refund (cancelled 12-24 hours in advance)"),
    (4, 25, "25% refund (cancelled 4-12 hours in advance)"),
)
NO_REFUND_REASON = "No refund (cancelled less than 4 hours in advance)"

POLICY_DESCRIPTIONS = {
    "en": (
        "Free cancellation up to 24 hours before the service. "
        "Cancellations 12-24 hours before receive a 50% refund, "
        "4-12 hours before a 25% refund, and less than 4 hours before no refund."
    ),
    "es": (
        "Cancelación gratuita hasta 24 horas antes del servicio. "
        "Las cancelaciones entre 12 y 24 horas antes reciben un reembolso del 50%, "
        "entre 4 y 12 horas antes un reembolso del 25%, y con menos de 4 horas no hay reembolso."
    ),
}


@dataclass
class CancellationPolicy:
    can_cancel: bool
    refund_percentage: int
    reason: str
    hours_until_service: float


def _to_naive_utc(value: Union[datetime, date, str]) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def calculate_cancellation_policy(
    scheduled_start: Union[datetime, date, str],
    status: Union[BookingStatus, str],
    now: Optional[datetime] = None
) -> CancellationPolicy:
    """
    Work out whether a booking can be cancelled and how much is refunded

    Args:
        scheduled_start: Service start as datetime, ISO-8601 string or YYYY-MM-DD
        status: Current booking status
        now: Reference time (naive UTC), defaults to the current time
    """
    status_value = status.value if isinstance(status, BookingStatus) else str(status)

    if status_value == BookingStatus.COMPLETED.value:
        return CancellationPolicy(False, 0, "Cannot cancel completed services", 0)
    if status_value == BookingStatus.IN_PROGRESS.value:
        return CancellationPolicy(False, 0, "Cannot cancel a service that is in progress", 0)

    start = _to_naive_utc(scheduled_start)
    reference = _to_naive_utc(now) if now else utcnow()
    hours_until_service = (start - reference).total_seconds() / 3600

    if hours_until_service < 0:
        return CancellationPolicy(False, 0, "Cannot cancel past services", hours_until_service)

    for min_hours, percentage, reason in REFUND_TIERS:
        if hours_until_service >= min_hours:
            return CancellationPolicy(True, percentage, reason, hours_until_service)

    return CancellationPolicy(True, 0, NO_REFUND_REASON, hours_until_service)


def calculate_refund_amount(amount: int, refund_percentage: Union[int, float]) -> int:
    """Refund in minor units, rounded half up"""
    refund = Decimal(amount) * Decimal(str(refund_percentage)) / Decimal(100)
    return int(refund.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_cancellation_policy_description(locale: str = "es") -> str:
    return POLICY_DESCRIPTIONS.get(locale, POLICY_DESCRIPTIONS["en"])
