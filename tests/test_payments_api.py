from datetime import timedelta

import pytest

from app.core.exceptions import PaymentProcessorError, ValidationFailedError
from app.db.models import (
    BalanceClearance, BookingStatus, ClearanceStatus, CustomerProfile, PaymentProcessor, PaymentTransaction,
    ProfessionalProfile, TransactionStatus, TransactionType, utcnow
)
from app.services.balance_service import balance_service
from app.services.payment_service import payment_service
from app.services.paypal_client import paypal_client


def test_create_intent_authorizes_booking_total(client, db, customer, make_booking, headers_for, fake_stripe):
    booking = make_booking(BookingStatus.PENDING_PAYMENT, stripe_payment_intent_id=None, amount_authorized=0)

    response = client.post(
        "/api/payments/create-intent",
        json={"booking_id": booking.id, "amount": 11_500_000, "currency": "cop"},
        headers=headers_for(customer),
    )

    assert response.status_code == 200
    assert response.json() == {
        "client_secret": f"pi_booking_{booking.id}_secret_abc",
        "payment_intent_id": f"pi_booking_{booking.id}",
    }
    db.refresh(booking)
    assert booking.stripe_payment_intent_id == f"pi_booking_{booking.id}"
    assert booking.amount_authorized == 11_500_000
    profile = db.query(CustomerProfile).filter(CustomerProfile.profile_id == customer.id).one()
    assert profile.stripe_customer_id == f"cus_{customer.id}"


def test_create_intent_rejects_confirmed_booking(client, customer, make_booking, headers_for, fake_stripe):
    booking = make_booking(BookingStatus.CONFIRMED)

    response = client.post(
        "/api/payments/create-intent",
        json={"booking_id": booking.id, "amount": 11_500_000},
        headers=headers_for(customer),
    )

    assert response.status_code == 400
    assert fake_stripe.count("create_payment_intent") == 0


def test_create_intent_validates_currency(client, customer, make_booking, headers_for):
    booking = make_booking(BookingStatus.PENDING_PAYMENT)

    response = client.post(
        "/api/payments/create-intent",
        json={"booking_id": booking.id, "amount": 11_500_000, "currency": "gbp"},
        headers=headers_for(customer),
    )

    assert response.status_code == 422


def test_capture_completes_in_progress_booking(client, db, professional, make_booking, headers_for, fake_stripe):
    booking = make_booking(BookingStatus.IN_PROGRESS, hours_ahead=-2, checked_in_at=utcnow() - timedelta(hours=2))

    response = client.post(
        "/api/payments/capture-intent",
        json={"booking_id": booking.id, "payment_intent_id": "pi_test_123"},
        headers=headers_for(professional),
    )

    assert response.status_code == 200
    assert response.json() == {
        "booking_id": booking.id,
        "booking_status": "completed",
        "payment_intent_id": "pi_test_123",
        "amount": booking.amount_authorized,
        "status": "captured",
    }
    assert fake_stripe.calls[-1][1]["key"] == f"booking-{booking.id}-capture"


def test_capture_rejects_foreign_intent(client, professional, make_booking, headers_for, fake_stripe):
    booking = make_booking(BookingStatus.IN_PROGRESS, hours_ahead=-2)

    response = client.post(
        "/api/payments/capture-intent",
        json={"booking_id": booking.id, "payment_intent_id": "pi_someone_else"},
        headers=headers_for(professional),
    )

    assert response.status_code == 400
    assert fake_stripe.count("capture") == 0


def test_capture_processor_failure_returns_502(client, db, professional, make_booking, headers_for, fake_stripe):
    booking = make_booking(BookingStatus.IN_PROGRESS, hours_ahead=-2)
    fake_stripe.fail_on.add("capture")

    response = client.post(
        "/api/payments/capture-intent",
        json={"booking_id": booking.id, "payment_intent_id": "pi_test_123"},
        headers=headers_for(professional),
    )

    assert response.status_code == 502
    assert response.json()["details"] == {"processor": "stripe"}
    transaction = db.query(PaymentTransaction).filter(
        PaymentTransaction.idempotency_key == f"booking-{booking.id}-capture"
    ).one()
    assert transaction.status == TransactionStatus.FAILED


def test_repeated_capture_key_calls_processor_once(db, make_booking, fake_stripe):
    booking = make_booking(BookingStatus.IN_PROGRESS, hours_ahead=-2)

    first = payment_service.capture(db, booking, 11_500_000, "booking-capture-once")
    db.commit()
    second = payment_service.capture(db, booking, 11_500_000, "booking-capture-once")

    assert first.id == second.id
    assert second.status == TransactionStatus.SUCCEEDED
    assert fake_stripe.count("capture") == 1


def test_failed_capture_can_be_retried_with_same_key(db, make_booking, fake_stripe):
    booking = make_booking(BookingStatus.IN_PROGRESS, hours_ahead=-2)
    fake_stripe.fail_on.add("capture")
    with pytest.raises(PaymentProcessorError):
        payment_service.capture(db, booking, 11_500_000, "booking-capture-retry")
    fake_stripe.fail_on.clear()

    transaction = payment_service.capture(db, booking, 11_500_000, "booking-capture-retry")

    assert transaction.status == TransactionStatus.SUCCEEDED
    assert fake_stripe.count("capture") == 2
    assert db.query(PaymentTransaction).filter(
        PaymentTransaction.idempotency_key == "booking-capture-retry"
    ).count() == 1


def test_refund_cannot_exceed_captured_amount(db, make_booking, fake_stripe):
    booking = make_booking(BookingStatus.COMPLETED, hours_ahead=-5, amount_captured=1_000_000, amount_refunded=600_000)

    with pytest.raises(ValidationFailedError) as exc_info:
        payment_service.refund(db, booking, 500_000, "refund-too-much")

    assert exc_info.value.details == {"requested": 500_000, "refundable": 400_000}
    assert fake_stripe.count("refund") == 0


def test_void_cancels_confirmed_booking(client, customer, make_booking, headers_for, fake_stripe):
    booking = make_booking(BookingStatus.CONFIRMED)

    response = client.post(
        "/api/payments/void-intent",
        json={"booking_id": booking.id, "payment_intent_id": "pi_test_123"},
        headers=headers_for(customer),
    )

    assert response.status_code == 200
    assert response.json()["booking_status"] == "cancelled"
    assert response.json()["status"] == "voided"
    assert fake_stripe.count("void") == 1


def test_void_is_rejected_once_service_started(client, customer, make_booking, headers_for, fake_stripe):
    booking = make_booking(BookingStatus.IN_PROGRESS, hours_ahead=-1)

    response = client.post(
        "/api/payments/void-intent",
        json={"booking_id": booking.id, "payment_intent_id": "pi_test_123"},
        headers=headers_for(customer),
    )

    assert response.status_code == 400
    assert fake_stripe.count("void") == 0


def test_tip_adds_to_professional_balance(client, db, customer, professional, make_booking, headers_for):
    booking = make_booking(BookingStatus.COMPLETED, hours_ahead=-5, amount_captured=11_500_000)

    response = client.post(
        "/api/payments/process-tip",
        json={"booking_id": booking.id, "amount": 500_000, "percentage": 5},
        headers=headers_for(customer),
    )
    again = client.post(
        "/api/payments/process-tip",
        json={"booking_id": booking.id, "amount": 100_000},
        headers=headers_for(customer),
    )

    assert response.status_code == 200
    assert response.json()["tip_amount"] == 500_000
    assert again.status_code == 400
    tip = db.query(PaymentTransaction).filter(PaymentTransaction.transaction_type == TransactionType.TIP).one()
    assert tip.idempotency_key == f"booking-{booking.id}-tip"
    profile = db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional.id).one()
    assert profile.pending_balance == 500_000


def test_tip_after_clearance_reopens_the_clearance(client, db, customer, professional, make_booking, headers_for):
    booking = make_booking(BookingStatus.COMPLETED, hours_ahead=-30, amount_captured=11_500_000)
    now = utcnow()
    balance_service.add_to_pending_balance(db, booking, now - timedelta(hours=25))
    db.commit()
    assert balance_service.process_due_clearances(db, now) == {"processed": 1, "skipped": 0}

    response = client.post(
        "/api/payments/process-tip",
        json={"booking_id": booking.id, "amount": 500_000},
        headers=headers_for(customer),
    )

    assert response.status_code == 200
    clearance = db.query(BalanceClearance).filter(BalanceClearance.booking_id == booking.id).one()
    db.refresh(clearance)
    assert clearance.status == ClearanceStatus.PENDING
    assert clearance.amount == 500_000
    assert clearance.cleared_at is None
    assert clearance.clearance_at > now + timedelta(hours=23)
    profile = db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional.id).one()
    db.refresh(profile)
    assert profile.available_balance == 10_000_000
    assert profile.pending_balance == 500_000

    balance_service.process_due_clearances(db, now + timedelta(hours=25))
    db.refresh(profile)
    assert profile.available_balance == 10_500_000
    assert profile.pending_balance == 0


def test_tip_requires_completed_booking(client, customer, make_booking, headers_for):
    booking = make_booking(BookingStatus.CONFIRMED)

    response = client.post(
        "/api/payments/process-tip",
        json={"booking_id": booking.id, "amount": 100_000},
        headers=headers_for(customer),
    )

    assert response.status_code == 400


def test_payment_methods_empty_without_stripe_customer(client, customer, headers_for):
    response = client.get("/api/payments/methods", headers=headers_for(customer))
    assert response.status_code == 200
    assert response.json() == []


def test_paypal_order_then_authorize(client, db, customer, make_booking, headers_for, fake_paypal):
    booking = make_booking(
        BookingStatus.PENDING_PAYMENT,
        payment_processor=PaymentProcessor.PAYPAL,
        stripe_payment_intent_id=None,
        amount_authorized=0,
    )

    order = client.post(
        "/api/payments/paypal/create-order", json={"booking_id": booking.id}, headers=headers_for(customer)
    )
    assert order.status_code == 200
    assert order.json() == {
        "order_id": f"ORDER-{booking.id}",
        "status": "CREATED",
        "approve_url": f"https://paypal.test/approve/{booking.id}",
    }
    order_transaction = payment_service.get_transaction(db, f"booking-{booking.id}-order")
    assert order_transaction.status == TransactionStatus.SUCCEEDED
    assert order_transaction.processor == PaymentProcessor.PAYPAL
    assert order_transaction.processor_reference == f"ORDER-{booking.id}"
    assert order_transaction.amount == 11_500_000

    authorized = client.post(
        "/api/payments/paypal/authorize", json={"booking_id": booking.id}, headers=headers_for(customer)
    )
    assert authorized.status_code == 200
    assert authorized.json() == {
        "booking_id": booking.id,
        "booking_status": "pending",
        "authorization_id": f"AUTH-{booking.id}",
    }
    db.refresh(booking)
    assert booking.amount_authorized == booking.amount_estimated + booking.service_fee


def test_failed_paypal_order_is_recorded(client, db, customer, make_booking, headers_for, fake_paypal, monkeypatch):
    booking = make_booking(
        BookingStatus.PENDING_PAYMENT,
        payment_processor=PaymentProcessor.PAYPAL,
        stripe_payment_intent_id=None,
        amount_authorized=0,
    )

    def unavailable(booking_id, amount, currency, description):
        raise PaymentProcessorError("Payment processor error during order creation", {"processor": "paypal"})

    monkeypatch.setattr(paypal_client, "create_order", unavailable)

    response = client.post(
        "/api/payments/paypal/create-order", json={"booking_id": booking.id}, headers=headers_for(customer)
    )

    assert response.status_code == 502
    transaction = payment_service.get_transaction(db, f"booking-{booking.id}-order")
    assert transaction.status == TransactionStatus.FAILED
    assert transaction.failure_reason == "Payment processor error during order creation"
    db.refresh(booking)
    assert booking.paypal_order_id is None


def test_paypal_order_rejected_for_stripe_booking(client, customer, make_booking, headers_for, fake_paypal):
    booking = make_booking(BookingStatus.PENDING_PAYMENT)

    response = client.post(
        "/api/payments/paypal/create-order", json={"booking_id": booking.id}, headers=headers_for(customer)
    )

    assert response.status_code == 400
    assert fake_paypal == []
