from datetime import datetime, timedelta

import pytest

from app.core.exceptions import InvalidTransitionError
from app.db.models import BookingStatus
from app.services.booking_lifecycle import assert_transition, can_transition, is_terminal
from app.services.cancellation_policy import (
    calculate_cancellation_policy, calculate_refund_amount, get_cancellation_policy_description
)

NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest.mark.parametrize("current,target", [
    (BookingStatus.PENDING_PAYMENT, BookingStatus.PENDING),
    (BookingStatus.PENDING, BookingStatus.CONFIRMED),
    (BookingStatus.PENDING, BookingStatus.DECLINED),
    (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS),
    (BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED),
    (BookingStatus.COMPLETED, BookingStatus.DISPUTED),
    (BookingStatus.DISPUTED, BookingStatus.COMPLETED),
])
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    assert_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (BookingStatus.PENDING, BookingStatus.COMPLETED),
    (BookingStatus.CONFIRMED, BookingStatus.PENDING),
    (BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED),
    (BookingStatus.CANCELLED, BookingStatus.PENDING),
    (BookingStatus.DECLINED, BookingStatus.CONFIRMED),
])
def test_rejected_transitions_raise(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError) as exc_info:
        assert_transition(current, target)
    assert exc_info.value.status_code == 400
    assert exc_info.value.details == {"current_status": current.value, "target_status": target.value}


def test_terminal_statuses():
    assert is_terminal(BookingStatus.CANCELLED)
    assert is_terminal(BookingStatus.DECLINED)
    assert not is_terminal(BookingStatus.COMPLETED)
    assert not is_terminal(BookingStatus.PENDING)


@pytest.mark.parametrize("hours_ahead,percentage", [
    (48, 100),
    (24, 100),
    (23.5, 50),
    (12, 50),
    (11, 25),
    (4, 25),
    (3.9, 0),
    (0.5, 0),
])
def test_refund_tiers(hours_ahead, percentage):
    policy = calculate_cancellation_policy(NOW + timedelta(hours=hours_ahead), BookingStatus.CONFIRMED, now=NOW)
    assert policy.can_cancel
    assert policy.refund_percentage == percentage


def test_cannot_cancel_past_service():
    policy = calculate_cancellation_policy(NOW - timedelta(hours=1), BookingStatus.CONFIRMED, now=NOW)
    assert not policy.can_cancel
    assert policy.hours_until_service < 0


@pytest.mark.parametrize("status", [BookingStatus.COMPLETED, BookingStatus.IN_PROGRESS])
def test_cannot_cancel_started_or_finished_service(status):
    policy = calculate_cancellation_policy(NOW + timedelta(days=3), status, now=NOW)
    assert not policy.can_cancel
    assert policy.refund_percentage == 0


def test_policy_accepts_iso_strings_with_timezone():
    policy = calculate_cancellation_policy("2026-03-11T12:00:00Z", "confirmed", now=NOW)
    assert policy.refund_percentage == 100
    assert policy.hours_until_service == pytest.approx(24)


def test_policy_accepts_plain_dates():
    policy = calculate_cancellation_policy(NOW.date() + timedelta(days=2), BookingStatus.PENDING, now=NOW)
    assert policy.refund_percentage == 100


def test_refund_amount_rounds_half_up():
    assert calculate_refund_amount(10_000, 50) == 5_000
    assert calculate_refund_amount(10_001, 50) == 5_001
    assert calculate_refund_amount(999, 25) == 250
    assert calculate_refund_amount(12_345, 0) == 0


def test_policy_description_falls_back_to_english():
    assert "24 horas" in get_cancellation_policy_description("es")
    assert "24 hours" in get_cancellation_policy_description("fr")
