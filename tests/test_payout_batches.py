from datetime import datetime, timedelta

from app.db.models import (
    Booking, BookingStatus, CountryCode, CurrencyCode, PaymentProcessor, PayoutBatch, PayoutStatus,
    PayoutTransfer, PayoutType, ProfessionalProfile, UserRole, utcnow
)
from app.services.balance_service import balance_service
from app.services.payout_batch_service import payout_batch_service
from app.services.payout_service import payout_service

CRON_HEADERS = {"Authorization": "Bearer cron-test-secret"}
TUESDAY = datetime(2026, 10, 20, 10)
FRIDAY = datetime(2026, 10, 23, 10)


def _pro_profile(db, professional) -> ProfessionalProfile:
    return db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional.id).one()


def _cleared_booking(db, make_booking, **fields) -> Booking:
    booking = make_booking(
        BookingStatus.COMPLETED, hours_ahead=-40, amount_captured=11_500_000,
        checked_out_at=utcnow() - timedelta(hours=30), **fields
    )
    balance_service.add_to_pending_balance(db, booking, utcnow() - timedelta(hours=25))
    db.commit()
    balance_service.process_due_clearances(db)
    return booking


def _batch_transfer(db, professional) -> PayoutTransfer:
    return db.query(PayoutTransfer).filter(
        PayoutTransfer.professional_id == professional.id,
        PayoutTransfer.payout_type == PayoutType.BATCH
    ).one()


def test_batch_id_names_the_run_day():
    assert payout_batch_service.batch_id_for(TUESDAY) == "payout-2026-10-20-tue"
    assert payout_batch_service.batch_id_for(FRIDAY) == "payout-2026-10-23-fri"


def test_stripe_professional_is_paid_by_transfer(db, professional, make_booking, fake_stripe):
    first = _cleared_booking(db, make_booking)
    second = _cleared_booking(db, make_booking)

    result = payout_batch_service.run(db, now=TUESDAY)

    assert result["batch_id"] == "payout-2026-10-20-tue"
    assert result["status"] == "completed"
    assert result["successful_transfers"] == 1
    assert result["failed_transfers"] == 0
    assert result["totals"] == {"COP": 20_000_000}
    assert fake_stripe.calls[-1] == ("transfer", {
        "account": "acct_test_123",
        "amount": 20_000_000,
        "currency": "COP",
        "key": f"payout-batch-payout-2026-10-20-tue-professional-{professional.id}",
    })

    db.expire_all()
    transfer = _batch_transfer(db, professional)
    assert transfer.status == PayoutStatus.COMPLETED
    assert transfer.stripe_transfer_id == f"tr_{transfer.id}"
    assert transfer.fee_amount == 0
    assert sorted(b.id for b in transfer.bookings) == [first.id, second.id]
    assert _pro_profile(db, professional).available_balance == 0


def test_rerunning_the_same_day_does_not_pay_twice(db, professional, make_booking, fake_stripe):
    _cleared_booking(db, make_booking)

    payout_batch_service.run(db, now=TUESDAY)
    again = payout_batch_service.run(db, now=TUESDAY + timedelta(hours=2))

    assert again["already_processed"] is True
    assert again["successful_transfers"] == 1
    assert fake_stripe.count("transfer") == 1
    assert db.query(PayoutBatch).count() == 1


def test_paypal_market_professional_gets_paypal_payout(db, make_user, fake_stripe, fake_paypal):
    pro = make_user(
        "ana@example.com", UserRole.PROFESSIONAL, country=CountryCode.PY,
        paypal_email="ana@paypal.test", available_balance=5_000_000
    )

    result = payout_batch_service.run(db, now=TUESDAY)

    transfer = _batch_transfer(db, pro)
    assert transfer.processor == PaymentProcessor.PAYPAL
    assert transfer.currency == CurrencyCode.PYG
    assert transfer.status == PayoutStatus.PENDING
    assert fake_paypal == [(
        "create_payout",
        f"payout-batch-payout-2026-10-20-tue-professional-{pro.id}",
        f"payout-{transfer.id}",
        "ana@paypal.test",
        5_000_000,
    )]
    assert fake_stripe.count("transfer") == 0
    assert result["totals"] == {"PYG": 5_000_000}


def test_failed_transfer_restores_balance_for_next_batch(db, professional, make_booking, fake_stripe):
    booking = _cleared_booking(db, make_booking)
    fake_stripe.fail_on.add("transfer")

    result = payout_batch_service.run(db, now=TUESDAY)

    assert result["failed_transfers"] == 1
    assert result["errors"][0]["professional_id"] == professional.id
    assert result["errors"][0]["error"] == "Payment processor error during transfer"
    db.expire_all()
    assert _batch_transfer(db, professional).status == PayoutStatus.FAILED
    assert _pro_profile(db, professional).available_balance == 10_000_000
    assert db.get(Booking, booking.id).payout_transfer_id is None

    fake_stripe.fail_on.clear()
    friday = payout_batch_service.run(db, now=FRIDAY)

    assert friday["successful_transfers"] == 1
    db.expire_all()
    assert db.get(Booking, booking.id).payout_transfer_id is not None


def test_professional_without_payout_method_is_skipped(db, make_user, fake_stripe):
    pro = make_user("diego@example.com", UserRole.PROFESSIONAL, available_balance=1_000_000)

    result = payout_batch_service.run(db, now=TUESDAY)

    assert result["skipped"] == [
        {"professional_id": pro.id, "amount": 1_000_000, "reason": "No payout method configured"}
    ]
    assert result["total_transfers"] == 0
    assert db.query(PayoutTransfer).count() == 0
    assert _pro_profile(db, pro).available_balance == 1_000_000


def test_returned_paypal_payout_frees_its_bookings(db, make_user, make_booking, fake_paypal):
    pro = make_user(
        "ana@example.com", UserRole.PROFESSIONAL, country=CountryCode.PY, paypal_email="ana@paypal.test"
    )
    booking = _cleared_booking(
        db, make_booking, professional_id=pro.id, country=CountryCode.PY, currency=CurrencyCode.PYG
    )
    payout_batch_service.run(db, now=TUESDAY)
    transfer = _batch_transfer(db, pro)
    assert [b.id for b in transfer.bookings] == [booking.id]

    assert payout_service.apply_status(db, transfer, PayoutStatus.RETURNED, "Receiver unregistered") is True
    db.commit()

    db.expire_all()
    assert db.get(Booking, booking.id).payout_transfer_id is None
    assert _pro_profile(db, pro).available_balance == 10_000_000


class TestCronEndpoint:
    def test_requires_cron_secret(self, client):
        response = client.post("/api/cron/process-payout-batch")
        assert response.status_code == 401

    def test_dry_run_previews_without_paying(self, client, db, professional, make_booking, fake_stripe):
        booking = _cleared_booking(db, make_booking)

        response = client.get("/api/cron/process-payout-batch", params={"dry_run": True}, headers=CRON_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["dry_run"] is True
        assert data["payouts"] == [{
            "professional_id": professional.id,
            "processor": "stripe",
            "amount": 10_000_000,
            "currency": "COP",
            "booking_ids": [booking.id],
        }]
        assert fake_stripe.count("transfer") == 0
        assert db.query(PayoutBatch).count() == 0
        db.expire_all()
        assert _pro_profile(db, professional).available_balance == 10_000_000

    def test_runs_batch(self, client, db, professional, make_booking, fake_stripe):
        _cleared_booking(db, make_booking)

        response = client.post("/api/cron/process-payout-batch", headers=CRON_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["successful_transfers"] == 1
        assert data["batch_id"] == payout_batch_service.batch_id_for(utcnow())
