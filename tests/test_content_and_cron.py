from datetime import timedelta

import pytest

from app.core.config import settings
from app.core.security import create_draft_mode_token
from app.db.models import BookingStatus, Notification, utcnow
from app.routes.api.draft_mode import is_safe_redirect
from app.services.balance_service import balance_service
from app.services.cms_service import cms_service

CRON_HEADERS = {"Authorization": "Bearer cron-test-secret"}


@pytest.fixture()
def cms_calls(monkeypatch):
    calls = []

    def fetch(query, params=None, draft=False):
        calls.append({"params": params, "draft": draft})
        if "slug" in (params or {}) and params["slug"] == "missing":
            return None
        return [{"_id": "doc-1", "title": "Cómo reservar"}]

    monkeypatch.setattr(cms_service.client, "fetch", fetch)
    return calls


class TestDraftMode:
    @pytest.mark.parametrize("path, safe", [
        ("/blog/nuevo-servicio", True),
        ("/", True),
        ("//evil.com", False),
        ("https://evil.com", False),
        ("/\\evil.com", False),
        ("blog", False),
        ("", False),
    ])
    def test_safe_redirects(self, path, safe):
        assert is_safe_redirect(path) is safe

    def test_wrong_secret(self, client):
        response = client.get(
            "/api/draft-mode/enable", params={"secret": "nope", "slug": "/blog"}, follow_redirects=False
        )
        assert response.status_code == 401

    def test_open_redirect_is_refused(self, client):
        response = client.get(
            "/api/draft-mode/enable",
            params={"secret": "preview-test-secret", "slug": "//evil.com"},
            follow_redirects=False,
        )
        assert response.status_code == 400

    def test_enable_sets_cookie_and_redirects(self, client):
        response = client.get(
            "/api/draft-mode/enable",
            params={"secret": "preview-test-secret", "slug": "/blog/nuevo"},
            follow_redirects=False,
        )

        assert response.status_code == 307
        assert response.headers["location"] == "/blog/nuevo"
        assert settings.DRAFT_MODE_COOKIE in response.headers["set-cookie"]
        assert "HttpOnly" in response.headers["set-cookie"]

    def test_disable_clears_cookie(self, client):
        response = client.get("/api/draft-mode/disable", params={"slug": "//evil.com"}, follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/"
        assert settings.DRAFT_MODE_COOKIE in response.headers["set-cookie"]


class TestContent:
    def test_published_content_by_default(self, client, cms_calls):
        response = client.get("/api/content/blog", params={"language": "en"})

        assert response.status_code == 200
        assert cms_calls[-1] == {"params": {"language": "en", "limit": 20}, "draft": False}

    def test_draft_cookie_reads_drafts(self, client, cms_calls):
        client.cookies.set(settings.DRAFT_MODE_COOKIE, create_draft_mode_token())

        client.get("/api/content/help/categories")

        assert cms_calls[-1]["draft"] is True

    def test_forged_cookie_is_ignored(self, client, cms_calls):
        client.cookies.set(settings.DRAFT_MODE_COOKIE, "not-a-token")

        client.get("/api/content/changelog")

        assert cms_calls[-1]["draft"] is False

    def test_missing_document_is_404(self, client, cms_calls):
        response = client.get("/api/content/blog/missing")
        assert response.status_code == 404
        assert response.json()["error"] == "Post not found"

    def test_unsupported_language_is_rejected(self, client, cms_calls):
        assert client.get("/api/content/blog", params={"language": "pt"}).status_code == 422


class TestCron:
    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "cron-test-secret"}])
    def test_requires_cron_secret(self, client, headers):
        response = client.post("/api/cron/process-clearances", headers=headers)
        assert response.status_code == 401

    def test_process_clearances(self, client, db, make_booking):
        booking = make_booking(BookingStatus.COMPLETED, hours_ahead=-30, amount_captured=11_500_000)
        balance_service.add_to_pending_balance(db, booking, utcnow() - timedelta(hours=25))
        db.commit()

        response = client.get("/api/cron/process-clearances", headers=CRON_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"success": True, "processed": 1, "skipped": 0}

    def test_rebook_nudges_follow_assigned_variant(self, client, db, customer, make_booking):
        now = utcnow()
        due_24h = make_booking(
            BookingStatus.COMPLETED, hours_ahead=-30, amount_captured=11_500_000,
            checked_out_at=now - timedelta(hours=24), rebook_nudge_variant="24h"
        )
        not_yet = make_booking(
            BookingStatus.COMPLETED, hours_ahead=-30, amount_captured=11_500_000,
            checked_out_at=now - timedelta(hours=24), rebook_nudge_variant="72h"
        )

        response = client.post("/api/cron/send-rebook-nudges", headers=CRON_HEADERS)

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["24h"] == {"total_processed": 1, "sent": 1, "skipped": 0}
        assert results["72h"]["sent"] == 0
        db.refresh(due_24h)
        db.refresh(not_yet)
        assert due_24h.rebook_nudge_sent is True
        assert not_yet.rebook_nudge_sent is False
        assert db.query(Notification).filter(
            Notification.user_id == customer.id,
            Notification.notification_type == "rebook_nudge"
        ).count() == 1

        again = client.post("/api/cron/send-rebook-nudges", headers=CRON_HEADERS)
        assert again.json()["results"]["24h"]["sent"] == 0
