"""
Booking status transitions
"""
from typing import Dict, FrozenSet

from app.core.exceptions import InvalidTransitionError
from app.db.models import BookingStatus

VALID_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING_PAYMENT: frozenset({
        BookingStatus.PENDING,
        BookingStatus.CANCELLED,
        BookingStatus.DECLINED,
    }),
    BookingStatus.PENDING: frozenset({
        BookingStatus.CONFIRMED,
        BookingStatus.DECLINED,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
    }),
    BookingStatus.IN_PROGRESS: frozenset({
        BookingStatus.COMPLETED,
    }),
    BookingStatus.COMPLETED: frozenset({
        BookingStatus.DISPUTED,
    }),
    # Dispute resolution returns the booking to completed
    BookingStatus.DISPUTED: frozenset({
        BookingStatus.COMPLETED,
    }),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.DECLINED: frozenset(),
}

# Statuses that hold the professional's calendar slot
ACTIVE_STATUSES = (
    BookingStatus.PENDING_PAYMENT,
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
)

# Payment authorized but not yet captured
VOIDABLE_STATUSES = (
    BookingStatus.PENDING_PAYMENT,
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
)


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in VALID_TRANSITIONS.get(BookingStatus(current), frozenset())


def assert_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed"""
    if not can_transition(current, target):
        raise InvalidTransitionError(BookingStatus(current).value, BookingStatus(target).value)


def is_terminal(status: BookingStatus) -> bool:
    return not VALID_TRANSITIONS.get(BookingStatus(status))


def transition(booking, target: BookingStatus) -> None:
    """Validate and apply a status change on a Booking row"""
    assert_transition(booking.status, target)
    booking.status = target
