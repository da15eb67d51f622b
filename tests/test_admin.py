from datetime import timedelta

from app.db.models import (
    AdminAuditLog, BalanceClearance, BookingStatus, ClearanceStatus, Dispute, DisputeStatus,
    ProfessionalProfile, Review, SuspensionType, UserRole, UserSuspension, utcnow
)
from app.services.balance_service import balance_service


def _moderate(client, admin, user_id, headers_for, **body):
    return client.post(f"/admin/api/users/{user_id}/moderate", json=body, headers=headers_for(admin))


class TestAccess:
    def test_admin_endpoints_reject_customers(self, client, customer, headers_for):
        for path in ("/admin/api/dashboard/stats", "/admin/api/users", "/admin/api/moderation/queue"):
            response = client.get(path, headers=headers_for(customer))
            assert response.status_code == 403
            assert response.json()["error"] == "Admin access required"

    def test_admin_endpoints_require_token(self, client):
        assert client.get("/admin/api/users").status_code == 401


class TestUserModeration:
    def test_suspend_blocks_access_and_writes_audit_log(self, client, db, admin, customer, headers_for):
        response = _moderate(client, admin, customer.id, headers_for, action="suspend",
                             reason="Abusive messages", duration_days=3)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["details"]["duration_days"] == 3

        blocked = client.get("/api/bookings", headers=headers_for(customer))
        assert blocked.status_code == 403
        assert blocked.json()["error"].startswith("Account suspended until")

        log = db.query(AdminAuditLog).one()
        assert log.action_type == "suspend_user"
        assert log.target_user_id == customer.id

    def test_suspend_requires_reason(self, client, admin, customer, headers_for):
        response = _moderate(client, admin, customer.id, headers_for, action="suspend")
        assert response.status_code == 400

    def test_cannot_suspend_twice(self, client, admin, customer, headers_for):
        _moderate(client, admin, customer.id, headers_for, action="suspend", reason="Spam")
        response = _moderate(client, admin, customer.id, headers_for, action="suspend", reason="Spam")
        assert response.status_code == 400
        assert response.json()["error"] == "User is already suspended"

    def test_unknown_action_is_a_validation_error(self, client, admin, customer, headers_for):
        response = _moderate(client, admin, customer.id, headers_for, action="delete")
        assert response.status_code == 422

    def test_admins_cannot_be_banned(self, client, admin, make_user, headers_for):
        other_admin = make_user("ops@casaora.co", UserRole.ADMIN)
        response = _moderate(client, admin, other_admin.id, headers_for, action="ban", reason="Test")
        assert response.status_code == 403

    def test_ban_replaces_suspension_and_unlists_professional(self, client, db, admin, professional, headers_for):
        _moderate(client, admin, professional.id, headers_for, action="suspend", reason="Late arrivals")
        response = _moderate(client, admin, professional.id, headers_for, action="ban", reason="Fraud")

        assert response.status_code == 200
        suspensions = db.query(UserSuspension).filter(UserSuspension.user_id == professional.id).all()
        active = [s for s in suspensions if s.lifted_at is None]
        assert len(active) == 1
        assert active[0].suspension_type == SuspensionType.PERMANENT
        profile = db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional.id).one()
        assert profile.is_listed is False

        blocked = client.get("/api/pro/balance", headers=headers_for(professional))
        assert blocked.status_code == 403
        assert blocked.json()["error"] == "Account has been banned"

    def test_unsuspend_restores_access(self, client, admin, customer, headers_for):
        _moderate(client, admin, customer.id, headers_for, action="suspend", reason="Spam")

        response = _moderate(client, admin, customer.id, headers_for, action="unsuspend", notes="Appeal accepted")

        assert response.status_code == 200
        assert client.get("/api/bookings", headers=headers_for(customer)).status_code == 200

    def test_expired_suspension_does_not_block(self, client, db, admin, customer, headers_for):
        db.add(UserSuspension(
            user_id=customer.id, suspended_by=admin.id, suspension_type=SuspensionType.TEMPORARY,
            reason="Old", expires_at=utcnow() - timedelta(days=1),
        ))
        db.commit()

        assert client.get("/api/bookings", headers=headers_for(customer)).status_code == 200

    def test_user_detail_includes_suspension(self, client, admin, customer, headers_for):
        _moderate(client, admin, customer.id, headers_for, action="suspend", reason="Spam")

        response = client.get(f"/admin/api/users/{customer.id}", headers=headers_for(admin))

        assert response.status_code == 200
        assert response.json()["active_suspension"]["reason"] == "Spam"

    def test_user_search(self, client, admin, customer, other_customer, headers_for):
        response = client.get("/admin/api/users", params={"search": "maria"}, headers=headers_for(admin))

        assert response.status_code == 200
        assert [u["email"] for u in response.json()["items"]] == ["maria@example.com"]


class TestReviewModeration:
    def test_hiding_review_recalculates_rating(self, client, db, admin, customer, professional, make_booking, headers_for):
        first = make_booking(BookingStatus.COMPLETED, hours_ahead=-30, amount_captured=11_500_000)
        second = make_booking(BookingStatus.COMPLETED, hours_ahead=-5, amount_captured=11_500_000)
        db.add_all([
            Review(booking_id=first.id, customer_id=customer.id, professional_id=professional.id, rating=5),
            Review(booking_id=second.id, customer_id=customer.id, professional_id=professional.id, rating=1,
                   comment="Terrible", is_flagged=True),
        ])
        db.commit()
        flagged = db.query(Review).filter(Review.rating == 1).one()

        response = client.post(
            f"/admin/api/moderation/reviews/{flagged.id}",
            json={"hidden": True, "reason": "Harassment"},
            headers=headers_for(admin),
        )

        assert response.status_code == 200
        profile = db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional.id).one()
        assert profile.review_count == 1
        assert profile.rating == 5.0
        assert db.query(AdminAuditLog).filter(AdminAuditLog.action_type == "hide_review").count() == 1

    def test_missing_review(self, client, admin, headers_for):
        response = client.post(
            "/admin/api/moderation/reviews/999", json={"hidden": True}, headers=headers_for(admin)
        )
        assert response.status_code == 404


class TestDisputes:
    def _disputed_booking(self, db, customer, make_booking):
        booking = make_booking(
            BookingStatus.DISPUTED, hours_ahead=-5, amount_captured=11_500_000,
            checked_out_at=utcnow() - timedelta(hours=2)
        )
        balance_service.add_to_pending_balance(db, booking)
        dispute = Dispute(booking_id=booking.id, opened_by=customer.id, reason="Broken vase", status=DisputeStatus.OPEN)
        db.add(dispute)
        db.commit()
        return booking, dispute

    def test_partial_refund_reduces_clearance(self, client, db, admin, customer, make_booking, headers_for, fake_stripe):
        booking, dispute = self._disputed_booking(db, customer, make_booking)

        response = client.post(
            f"/admin/api/disputes/{dispute.id}/resolve",
            json={"resolution_notes": "Partial refund for damage", "refund_amount": 2_000_000},
            headers=headers_for(admin),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "resolved"
        assert response.json()["refund_amount"] == 2_000_000
        db.refresh(booking)
        assert booking.status == BookingStatus.COMPLETED
        assert booking.amount_refunded == 2_000_000
        clearance = db.query(BalanceClearance).filter(BalanceClearance.booking_id == booking.id).one()
        assert clearance.amount == 8_000_000
        assert fake_stripe.calls[-1][1]["key"] == f"dispute-{dispute.id}-refund"

    def test_full_refund_cancels_clearance(self, client, db, admin, customer, make_booking, headers_for, fake_stripe):
        booking, dispute = self._disputed_booking(db, customer, make_booking)

        response = client.post(
            f"/admin/api/disputes/{dispute.id}/resolve",
            json={"resolution_notes": "Service not delivered", "refund_amount": 99_000_000},
            headers=headers_for(admin),
        )

        assert response.status_code == 200
        assert response.json()["refund_amount"] == 11_500_000
        clearance = db.query(BalanceClearance).filter(BalanceClearance.booking_id == booking.id).one()
        assert clearance.status == ClearanceStatus.CANCELLED

    def test_tip_after_full_refund_reopens_cancelled_clearance(
        self, client, db, admin, customer, professional, make_booking, headers_for, fake_stripe
    ):
        booking, dispute = self._disputed_booking(db, customer, make_booking)
        client.post(
            f"/admin/api/disputes/{dispute.id}/resolve",
            json={"resolution_notes": "Service not delivered", "refund_amount": 11_500_000},
            headers=headers_for(admin),
        )

        response = client.post(
            "/api/payments/process-tip",
            json={"booking_id": booking.id, "amount": 300_000},
            headers=headers_for(customer),
        )

        assert response.status_code == 200
        clearance = db.query(BalanceClearance).filter(BalanceClearance.booking_id == booking.id).one()
        db.refresh(clearance)
        assert clearance.status == ClearanceStatus.PENDING
        assert clearance.amount == 300_000
        profile = db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional.id).one()
        db.refresh(profile)
        assert profile.pending_balance == 300_000

    def test_resolving_twice_is_rejected(self, client, db, admin, customer, make_booking, headers_for, fake_stripe):
        booking, dispute = self._disputed_booking(db, customer, make_booking)
        body = {"resolution_notes": "No refund warranted", "refund_amount": 0}

        assert client.post(f"/admin/api/disputes/{dispute.id}/resolve", json=body,
                           headers=headers_for(admin)).status_code == 200
        second = client.post(f"/admin/api/disputes/{dispute.id}/resolve", json=body, headers=headers_for(admin))

        assert second.status_code == 400
        assert fake_stripe.count("refund") == 0

    def test_moderation_queue_lists_open_disputes(self, client, db, admin, customer, make_booking, headers_for):
        self._disputed_booking(db, customer, make_booking)

        response = client.get("/admin/api/moderation/queue", headers=headers_for(admin))

        assert response.status_code == 200
        assert len(response.json()["open_disputes"]) == 1


def test_dashboard_stats(client, db, admin, make_booking, headers_for):
    make_booking(BookingStatus.CONFIRMED)
    make_booking(
        BookingStatus.COMPLETED, hours_ahead=-5, amount_captured=11_500_000,
        checked_out_at=utcnow() - timedelta(hours=2)
    )

    response = client.get("/admin/api/dashboard/stats", params={"days": 7}, headers=headers_for(admin))

    assert response.status_code == 200
    data = response.json()
    assert data["bookings"]["total"] == 2
    assert data["bookings"]["by_status"]["completed"] == 1
    assert data["revenue"]["gmv_captured"] == {"COP": 11_500_000}
    assert data["revenue"]["platform_fees"] == {"COP": 1_500_000}
    assert data["open_disputes"] == 0
