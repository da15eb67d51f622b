"""
Background check webhooks (Checkr and Truora)

Both providers sign the raw body with a hex HMAC-SHA256. Payloads are
normalized to (event_id, event_type, check_id, status, result) before handling.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import WebhookVerificationError
from app.core.logging_config import logger
from app.core.webhook_security import verify_hmac_signature, verify_timestamp
from app.db.models import (
    BackgroundCheck, BackgroundCheckStatus, ProfessionalProfile, Profile, WebhookProvider, utcnow
)
from app.services.notification_service import notification_service
from app.services.webhook_service import WebhookEventStore, WebhookResult

FINAL_CHECK_STATUSES = (
    BackgroundCheckStatus.CLEAR,
    BackgroundCheckStatus.CONSIDER,
    BackgroundCheckStatus.SUSPENDED,
    BackgroundCheckStatus.FAILED,
)

CHECKR_EVENT_TYPES = {
    "report.created": "check.created",
    "report.updated": "check.updated",
    "report.completed": "check.completed",
    "report.suspended": "check.failed",
    "report.canceled": "check.failed",
}

# Truora scores at or above this are treated as clear
TRUORA_CLEAR_SCORE = 0.7


@dataclass
class BackgroundCheckEvent:
    provider: WebhookProvider
    event_id: str
    event_type: str
    check_id: str
    status: BackgroundCheckStatus
    result: Dict[str, Any]


def _checkr_status(report: Dict[str, Any]) -> BackgroundCheckStatus:
    result = (report.get("result") or "").lower()
    status = (report.get("status") or "").lower()
    if result in ("clear", "consider"):
        return BackgroundCheckStatus(result)
    if status == "suspended":
        return BackgroundCheckStatus.SUSPENDED
    if status in ("canceled", "error"):
        return BackgroundCheckStatus.FAILED
    return BackgroundCheckStatus.IN_PROGRESS


def _truora_status(check: Dict[str, Any]) -> BackgroundCheckStatus:
    status = (check.get("status") or "").lower()
    if status == "completed":
        score = float(check.get("score") or 0)
        return BackgroundCheckStatus.CLEAR if score >= TRUORA_CLEAR_SCORE else BackgroundCheckStatus.CONSIDER
    if status in ("error", "failed", "delayed_error"):
        return BackgroundCheckStatus.FAILED
    if status == "not_started":
        return BackgroundCheckStatus.PENDING
    return BackgroundCheckStatus.IN_PROGRESS


def normalize_event(provider: WebhookProvider, body: Dict[str, Any]) -> BackgroundCheckEvent:
    """Map a provider payload to a BackgroundCheckEvent"""
    if provider == WebhookProvider.CHECKR:
        report = (body.get("data") or {}).get("object") or {}
        check_id = report.get("id")
        event_type = CHECKR_EVENT_TYPES.get(body.get("type", ""), "check.updated")
        status = _checkr_status(report)
        result = report
    else:
        check = body.get("check") or {}
        check_id = check.get("check_id")
        status = _truora_status(check)
        event_type = body.get("event") or ("check.completed" if status in FINAL_CHECK_STATUSES else "check.updated")
        result = check

    if not check_id:
        raise WebhookVerificationError("Missing check id")
    event_id = body.get("id") or body.get("event_id") or f"{check_id}:{event_type}:{status.value}"
    return BackgroundCheckEvent(provider, str(event_id), event_type, str(check_id), status, result)


def detect_provider(headers: Mapping[str, str]) -> Tuple[WebhookProvider, str, str]:
    """Returns (provider, signature, secret) from whichever signature header is present"""
    lowered = {k.lower(): v for k, v in headers.items()}
    if lowered.get("x-checkr-signature"):
        return WebhookProvider.CHECKR, lowered["x-checkr-signature"], settings.CHECKR_WEBHOOK_SECRET
    if lowered.get("x-truora-signature"):
        return WebhookProvider.TRUORA, lowered["x-truora-signature"], settings.TRUORA_WEBHOOK_SECRET
    raise WebhookVerificationError("Missing signature")


class BackgroundCheckService:
    """Service for background check status updates"""

    @staticmethod
    def apply_event(db: Session, event: BackgroundCheckEvent) -> Optional[BackgroundCheck]:
        check = db.query(BackgroundCheck).filter(BackgroundCheck.provider_check_id == event.check_id).first()
        if not check:
            logger.warning(f"Unknown {event.provider.value} check {event.check_id}, ignoring {event.event_type}")
            return None

        check.status = event.status
        check.result = event.result
        if event.status in FINAL_CHECK_STATUSES:
            check.completed_at = utcnow()

        profile = db.query(ProfessionalProfile).filter(
            ProfessionalProfile.profile_id == check.professional_id
        ).first()
        if profile:
            profile.background_check_status = event.status

        if event.event_type in ("check.completed", "check.failed") or event.status in FINAL_CHECK_STATUSES:
            professional = db.query(Profile).filter(Profile.id == check.professional_id).first()
            if professional:
                notification_service.notify_background_check(db, professional, event.status)

        logger.info(f"Background check {event.check_id} -> {event.status.value}")
        return check

    @staticmethod
    def handle_webhook(db: Session, payload: bytes, headers: Mapping[str, str]) -> WebhookResult:
        provider, signature, secret = detect_provider(headers)
        verify_hmac_signature(secret, payload, signature)

        lowered = {k.lower(): v for k, v in headers.items()}
        if lowered.get("x-webhook-timestamp"):
            verify_timestamp(lowered["x-webhook-timestamp"])

        try:
            body = json.loads(payload)
        except ValueError:
            raise WebhookVerificationError("Invalid payload")
        event = normalize_event(provider, body)

        def run(session: Session, data: Dict[str, Any], result: WebhookResult):
            BackgroundCheckService.apply_event(session, event)

        return WebhookEventStore.process(db, provider, event.event_id, event.event_type, body, run)


# Global instance
background_check_service = BackgroundCheckService()
