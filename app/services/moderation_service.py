"""
User moderation: suspensions, bans and review visibility
"""
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from app.core.logging_config import logger
from app.db.models import (
    AdminAuditLog, Profile, ProfessionalProfile, Review, SuspensionType, UserRole, UserSuspension, utcnow
)
from app.services.notification_service import notification_service

DEFAULT_SUSPENSION_DAYS = 7

MODERATION_ACTIONS = {
    "suspend": "suspend_user",
    "ban": "ban_user",
    "unsuspend": "unsuspend_user",
}


class ModerationService:
    """Service for admin moderation actions"""

    @staticmethod
    def get_active_suspension(db: Session, user_id: int, now: Optional[datetime] = None) -> Optional[UserSuspension]:
        """Unlifted suspension that is permanent or has not expired yet"""
        now = now or utcnow()
        suspensions = db.query(UserSuspension).filter(
            UserSuspension.user_id == user_id,
            UserSuspension.lifted_at.is_(None)
        ).order_by(UserSuspension.created_at.desc(), UserSuspension.id.desc()).all()
        for suspension in suspensions:
            if suspension.suspension_type == SuspensionType.PERMANENT:
                return suspension
            if suspension.expires_at and suspension.expires_at > now:
                return suspension
        return None

    @staticmethod
    def active_suspensions_query(db: Session, now: Optional[datetime] = None):
        now = now or utcnow()
        return db.query(UserSuspension).filter(
            UserSuspension.lifted_at.is_(None),
            (UserSuspension.suspension_type == SuspensionType.PERMANENT) | (UserSuspension.expires_at > now)
        ).order_by(UserSuspension.created_at.desc())

    @staticmethod
    def _audit(db: Session, admin: Profile, action_type: str, target: Profile, details: Dict, notes: Optional[str]):
        db.add(AdminAuditLog(
            admin_id=admin.id,
            action_type=action_type,
            target_user_id=target.id,
            target_resource_type="user",
            target_resource_id=str(target.id),
            details=details,
            notes=notes,
        ))

    @staticmethod
    def moderate_user(
        db: Session,
        admin: Profile,
        user_id: int,
        action: str,
        reason: Optional[str] = None,
        duration_days: Optional[int] = None,
        notes: Optional[str] = None
    ) -> Dict:
        """
        Apply suspend, ban or unsuspend to a user.

        Raises:
            NotFoundError: user does not exist
            PermissionDeniedError: target is an admin (except unsuspend)
            ValidationFailedError: missing reason, unknown action or wrong current state
        """
        if action not in MODERATION_ACTIONS:
            raise ValidationFailedError(f"Unknown moderation action: {action}")

        target = db.query(Profile).filter(Profile.id == user_id).first()
        if not target:
            raise NotFoundError("User not found")
        if target.role == UserRole.ADMIN and action != "unsuspend":
            raise PermissionDeniedError("Admins cannot be suspended or banned")
        if action in ("suspend", "ban") and not (reason and reason.strip()):
            raise ValidationFailedError("Reason is required for suspend and ban actions")

        now = utcnow()
        active = ModerationService.get_active_suspension(db, target.id, now)
        details: Dict = {"action": action}

        if action == "suspend":
            if active:
                raise ValidationFailedError("User is already suspended")
            days = duration_days or DEFAULT_SUSPENSION_DAYS
            suspension = UserSuspension(
                user_id=target.id,
                suspended_by=admin.id,
                suspension_type=SuspensionType.TEMPORARY,
                reason=reason,
                expires_at=now + timedelta(days=days),
                details={"duration_days": days},
            )
            db.add(suspension)
            details.update({"duration_days": days, "expires_at": suspension.expires_at.isoformat()})
            notification_service.notify_account_suspended(db, target, suspension)

        elif action == "ban":
            if active and active.suspension_type == SuspensionType.PERMANENT:
                raise ValidationFailedError("User is already banned")
            if active:
                active.lifted_at = now
                active.lifted_by = admin.id
                active.lift_reason = "Superseded by permanent ban"
            suspension = UserSuspension(
                user_id=target.id,
                suspended_by=admin.id,
                suspension_type=SuspensionType.PERMANENT,
                reason=reason,
                expires_at=None,
            )
            db.add(suspension)
            target.is_active = False
            pro_profile = db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == target.id).first()
            if pro_profile:
                pro_profile.is_listed = False
            notification_service.notify_account_suspended(db, target, suspension)

        else:
            if not active:
                raise ValidationFailedError("User is not suspended")
            active.lifted_at = now
            active.lifted_by = admin.id
            active.lift_reason = reason or notes
            target.is_active = True

        ModerationService._audit(db, admin, MODERATION_ACTIONS[action], target, details, notes or reason)
        db.commit()
        logger.info(f"Admin {admin.id} applied {action} to user {target.id}")
        return {"user_id": target.id, "action": action, "success": True, "details": details}

    @staticmethod
    def set_review_hidden(db: Session, admin: Profile, review_id: int, hidden: bool, reason: Optional[str] = None) -> Review:
        review = db.query(Review).filter(Review.id == review_id).first()
        if not review:
            raise NotFoundError("Review not found")

        review.is_hidden = hidden
        review.is_flagged = False if not hidden else review.is_flagged
        review.moderated_by = admin.id
        review.moderated_at = utcnow()
        if reason:
            review.flag_reason = reason
        db.add(AdminAuditLog(
            admin_id=admin.id,
            action_type="hide_review" if hidden else "unhide_review",
            target_user_id=review.customer_id,
            target_resource_type="review",
            target_resource_id=str(review.id),
            details={"booking_id": review.booking_id},
            notes=reason,
        ))
        db.flush()

        visible = db.query(Review).filter(
            Review.professional_id == review.professional_id,
            Review.is_hidden == False
        ).all()
        pro_profile = db.query(ProfessionalProfile).filter(
            ProfessionalProfile.profile_id == review.professional_id
        ).first()
        if pro_profile:
            pro_profile.review_count = len(visible)
            pro_profile.rating = round(sum(r.rating for r in visible) / len(visible), 2) if visible else 0.0

        db.commit()
        db.refresh(review)
        logger.info(f"Review {review.id} {'hidden' if hidden else 'unhidden'} by admin {admin.id}")
        return review


# Global instance
moderation_service = ModerationService()
