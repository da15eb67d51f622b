from datetime import timedelta

from app.db.models import (
    BalanceClearance, BookingStatus, ClearanceStatus, CurrencyCode, PayoutStatus, PayoutTransfer, PayoutType,
    ProfessionalProfile, utcnow
)
from app.services.balance_service import balance_service, calculate_instant_payout_fee
from app.services.payout_service import payout_service


def _pro_profile(db, professional) -> ProfessionalProfile:
    return db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional.id).one()


def _fund(db, professional, available: int):
    profile = _pro_profile(db, professional)
    profile.available_balance = available
    db.commit()


def test_instant_payout_fee_rounds_half_up():
    assert calculate_instant_payout_fee(1_000_000) == 15_000
    assert calculate_instant_payout_fee(100) == 2


def test_balance_lists_pending_clearances(client, db, professional, make_booking, headers_for):
    booking = make_booking(BookingStatus.COMPLETED, hours_ahead=-5, amount_captured=11_500_000)
    balance_service.add_to_pending_balance(db, booking)
    db.commit()

    response = client.get("/api/pro/balance", headers=headers_for(professional))

    assert response.status_code == 200
    data = response.json()
    assert data["currency"] == "COP"
    assert data["pending_balance"] == 10_000_000
    assert data["available_balance"] == 0
    assert data["total_balance"] == 10_000_000
    assert data["pending_clearances"][0]["booking_id"] == booking.id
    assert data["pending_clearances"][0]["hours_remaining"] == 24


def test_balance_requires_professional(client, customer, headers_for):
    response = client.get("/api/pro/balance", headers=headers_for(customer))
    assert response.status_code == 403


def test_instant_payout_overview(client, db, professional, headers_for):
    _fund(db, professional, 2_000_000)

    response = client.get("/api/pro/payouts/instant", headers=headers_for(professional))

    assert response.status_code == 200
    data = response.json()
    assert data["eligibility"] == {"is_eligible": True, "reasons": []}
    assert data["estimate"] == {"gross_amount": 2_000_000, "fee_amount": 30_000, "net_amount": 1_970_000}
    assert data["fee_info"]["remaining_today"] == 3


def test_instant_payout_deducts_balance(client, db, professional, headers_for, fake_stripe):
    _fund(db, professional, 2_000_000)

    response = client.post(
        "/api/pro/payouts/instant", json={"amount": 1_000_000}, headers=headers_for(professional)
    )

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["gross_amount"] == 1_000_000
    assert data["fee_amount"] == 15_000
    assert data["amount"] == 985_000
    assert data["stripe_payout_id"] == f"po_{data['id']}"
    assert fake_stripe.calls[-1][1] == {
        "account": "acct_test_123", "amount": 985_000, "key": f"instant-payout-{data['id']}"
    }
    db.expire_all()
    assert _pro_profile(db, professional).available_balance == 1_000_000


def test_instant_payout_below_minimum(client, db, professional, headers_for, fake_stripe):
    _fund(db, professional, 2_000_000)

    response = client.post("/api/pro/payouts/instant", json={"amount": 10_000}, headers=headers_for(professional))

    assert response.status_code == 400
    assert any("Minimum instant payout" in e for e in response.json()["details"]["errors"])
    assert fake_stripe.count("instant_payout") == 0


def test_instant_payout_insufficient_balance(client, db, professional, headers_for, fake_stripe):
    _fund(db, professional, 100_000)

    response = client.post("/api/pro/payouts/instant", json={"amount": 500_000}, headers=headers_for(professional))

    assert response.status_code == 400
    assert any(e.startswith("Insufficient balance") for e in response.json()["details"]["errors"])


def test_instant_payout_requires_connected_account(client, db, professional, headers_for, fake_stripe):
    _fund(db, professional, 2_000_000)
    profile = _pro_profile(db, professional)
    profile.stripe_account_id = None
    db.commit()

    response = client.post("/api/pro/payouts/instant", json={"amount": 100_000}, headers=headers_for(professional))

    assert response.status_code == 400
    assert fake_stripe.count("instant_payout") == 0


def test_fourth_instant_payout_in_a_day_is_rate_limited(client, db, professional, headers_for, fake_stripe):
    _fund(db, professional, 5_000_000)
    headers = headers_for(professional)

    statuses = [
        client.post("/api/pro/payouts/instant", json={"amount": 100_000}, headers=headers).status_code
        for _ in range(4)
    ]

    assert statuses == [201, 201, 201, 429]
    assert fake_stripe.count("instant_payout") == 3
    db.expire_all()
    assert _pro_profile(db, professional).available_balance == 4_700_000


def test_failed_instant_payout_restores_balance(client, db, professional, headers_for, fake_stripe):
    _fund(db, professional, 2_000_000)
    fake_stripe.fail_on.add("instant_payout")

    response = client.post(
        "/api/pro/payouts/instant", json={"amount": 1_000_000}, headers=headers_for(professional)
    )

    assert response.status_code == 502
    db.expire_all()
    transfer = db.query(PayoutTransfer).one()
    assert transfer.status == PayoutStatus.FAILED
    assert _pro_profile(db, professional).available_balance == 2_000_000


def test_payout_status_updates_are_final_once_failed(db, professional):
    _fund(db, professional, 0)
    transfer = PayoutTransfer(
        professional_id=professional.id, payout_type=PayoutType.INSTANT, currency=CurrencyCode.COP,
        gross_amount=500_000, fee_amount=7_500, fee_percentage=1.5, amount=492_500, status=PayoutStatus.PENDING,
    )
    db.add(transfer)
    db.commit()

    assert payout_service.apply_status(db, transfer, PayoutStatus.FAILED, "account_closed") is True
    assert payout_service.apply_status(db, transfer, PayoutStatus.COMPLETED) is False
    db.commit()

    assert transfer.status == PayoutStatus.FAILED
    assert _pro_profile(db, professional).available_balance == 500_000


def test_process_due_clearances_skips_disputed(db, professional, make_booking):
    cleared = make_booking(BookingStatus.COMPLETED, hours_ahead=-30, amount_captured=11_500_000)
    disputed = make_booking(BookingStatus.DISPUTED, hours_ahead=-60, amount_captured=11_500_000)
    fresh = make_booking(BookingStatus.COMPLETED, hours_ahead=-3, amount_captured=11_500_000)
    now = utcnow()
    balance_service.add_to_pending_balance(db, cleared, now - timedelta(hours=25))
    balance_service.add_to_pending_balance(db, disputed, now - timedelta(hours=50))
    balance_service.add_to_pending_balance(db, fresh, now - timedelta(hours=1))
    db.commit()

    result = balance_service.process_due_clearances(db, now)

    assert result == {"processed": 1, "skipped": 1}
    statuses = {
        c.booking_id: c.status for c in db.query(BalanceClearance).all()
    }
    assert statuses == {
        cleared.id: ClearanceStatus.CLEARED,
        disputed.id: ClearanceStatus.PENDING,
        fresh.id: ClearanceStatus.PENDING,
    }
    profile = _pro_profile(db, professional)
    assert profile.available_balance == 10_000_000
    assert profile.pending_balance == 20_000_000


def test_clearing_twice_is_a_no_op(db, make_booking):
    booking = make_booking(BookingStatus.COMPLETED, hours_ahead=-30, amount_captured=11_500_000)
    balance_service.add_to_pending_balance(db, booking)
    db.commit()

    assert balance_service.clear_pending_balance(db, booking.id) is True
    assert balance_service.clear_pending_balance(db, booking.id) is False
