"""
Professional balance service

Professionals keep 100% of the service amount; customers pay the platform fee
on top at checkout. Earnings of a completed booking sit in the pending balance
for BALANCE_CLEARANCE_HOURS before moving to the available balance, which is
what instant payouts draw from.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from math import ceil
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationFailedError
from app.core.logging_config import logger
from app.db.models import (
    BalanceClearance, Booking, BookingStatus, ClearanceStatus, CountryCode,
    PayoutRateLimit, ProfessionalProfile, Profile, utcnow
)
from app.utils.price_utils import format_amount, get_currency_for_country, round_half_up


@dataclass
class InstantPayoutValidation:
    is_valid: bool
    available_balance: int
    requested_amount: int
    fee_amount: int
    net_amount: int
    currency: str
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def calculate_instant_payout_fee(amount: int) -> int:
    return round_half_up(amount * settings.INSTANT_PAYOUT_FEE_PERCENTAGE / 100)


def professional_earnings(booking: Booking) -> int:
    """Captured amount less the customer-paid platform fee"""
    return max((booking.amount_captured or 0) - (booking.service_fee or 0), 0)


class BalanceService:
    """Service for pending/available balance bookkeeping"""

    @staticmethod
    def get_professional_profile(db: Session, professional_id: int, lock: bool = False) -> ProfessionalProfile:
        query = db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional_id)
        if lock:
            query = query.with_for_update()
        profile = query.first()
        if not profile:
            raise NotFoundError("Professional profile not found")
        return profile

    @staticmethod
    def currency_for(db: Session, professional_id: int) -> str:
        owner = db.query(Profile).filter(Profile.id == professional_id).first()
        country = owner.country if owner else CountryCode.CO
        return get_currency_for_country(country).value

    @staticmethod
    def get_balance_breakdown(db: Session, professional_id: int, now: Optional[datetime] = None) -> Dict:
        now = now or utcnow()
        profile = BalanceService.get_professional_profile(db, professional_id)
        clearances = db.query(BalanceClearance).filter(
            BalanceClearance.professional_id == professional_id,
            BalanceClearance.status == ClearanceStatus.PENDING
        ).order_by(BalanceClearance.clearance_at.asc()).all()

        currency = BalanceService.currency_for(db, professional_id)
        pending_clearances = [
            {
                "booking_id": c.booking_id,
                "amount": c.amount,
                "completed_at": c.completed_at,
                "clearance_at": c.clearance_at,
                "hours_remaining": max(0, ceil((c.clearance_at - now).total_seconds() / 3600)),
            }
            for c in clearances
        ]

        return {
            "professional_id": professional_id,
            "available_balance": profile.available_balance or 0,
            "pending_balance": profile.pending_balance or 0,
            "total_balance": (profile.available_balance or 0) + (profile.pending_balance or 0),
            "total_earnings": profile.total_earnings or 0,
            "currency": currency,
            "pending_clearances": pending_clearances,
        }

    @staticmethod
    def add_to_pending_balance(db: Session, booking: Booking, now: Optional[datetime] = None) -> Optional[BalanceClearance]:
        """
        Queue a completed booking's earnings for clearance.
        Idempotent per booking: a second call returns the existing clearance.
        """
        existing = db.query(BalanceClearance).filter(BalanceClearance.booking_id == booking.id).first()
        if existing:
            logger.info(f"Booking {booking.id} already queued for clearance")
            return existing

        amount = professional_earnings(booking)
        if amount <= 0:
            logger.warning(f"Booking {booking.id} has no earnings to queue")
            return None

        now = now or utcnow()
        clearance = BalanceClearance(
            booking_id=booking.id,
            professional_id=booking.professional_id,
            amount=amount,
            completed_at=booking.checked_out_at or now,
            clearance_at=now + timedelta(hours=settings.BALANCE_CLEARANCE_HOURS),
            status=ClearanceStatus.PENDING,
        )
        try:
            with db.begin_nested():
                db.add(clearance)
        except IntegrityError:
            # Concurrent completion of the same booking
            return db.query(BalanceClearance).filter(BalanceClearance.booking_id == booking.id).first()

        profile = BalanceService.get_professional_profile(db, booking.professional_id, lock=True)
        profile.pending_balance = (profile.pending_balance or 0) + amount
        profile.total_earnings = (profile.total_earnings or 0) + amount
        logger.info(
            f"Added {format_amount(amount, booking.currency)} to pending balance of professional "
            f"{booking.professional_id} (booking {booking.id})"
        )
        return clearance

    @staticmethod
    def add_tip(db: Session, booking: Booking, amount: int) -> None:
        """Tips go straight into the pending balance with the booking's earnings"""
        profile = BalanceService.get_professional_profile(db, booking.professional_id, lock=True)
        profile.pending_balance = (profile.pending_balance or 0) + amount
        profile.total_earnings = (profile.total_earnings or 0) + amount

        # One clearance row per booking; a settled one is reopened for the tip
        clearance = db.query(BalanceClearance).filter(
            BalanceClearance.booking_id == booking.id
        ).with_for_update().first()
        now = utcnow()
        if clearance and clearance.status == ClearanceStatus.PENDING:
            clearance.amount += amount
        elif clearance:
            logger.info(f"Reopening {clearance.status.value} clearance for booking {booking.id} to hold a tip")
            clearance.status = ClearanceStatus.PENDING
            clearance.amount = amount
            clearance.clearance_at = now + timedelta(hours=settings.BALANCE_CLEARANCE_HOURS)
            clearance.cleared_at = None
        else:
            db.add(BalanceClearance(
                booking_id=booking.id,
                professional_id=booking.professional_id,
                amount=amount,
                completed_at=booking.checked_out_at or now,
                clearance_at=now + timedelta(hours=settings.BALANCE_CLEARANCE_HOURS),
                status=ClearanceStatus.PENDING,
            ))

    @staticmethod
    def clear_pending_balance(db: Session, booking_id: int, now: Optional[datetime] = None) -> bool:
        """Move one booking's earnings from pending to available"""
        clearance = db.query(BalanceClearance).filter(
            BalanceClearance.booking_id == booking_id
        ).with_for_update().first()
        if not clearance:
            logger.warning(f"Clearance record not found for booking {booking_id}")
            return False
        if clearance.status != ClearanceStatus.PENDING:
            logger.info(f"Booking {booking_id} clearance already processed (status: {clearance.status.value})")
            return False

        profile = BalanceService.get_professional_profile(db, clearance.professional_id, lock=True)
        profile.pending_balance = max((profile.pending_balance or 0) - clearance.amount, 0)
        profile.available_balance = (profile.available_balance or 0) + clearance.amount
        clearance.status = ClearanceStatus.CLEARED
        clearance.cleared_at = now or utcnow()
        logger.info(f"Cleared {clearance.amount} to available balance for booking {booking_id}")
        return True

    @staticmethod
    def process_due_clearances(db: Session, now: Optional[datetime] = None) -> Dict:
        """Clear every pending clearance past its hold, skipping bookings under dispute"""
        now = now or utcnow()
        due = db.query(BalanceClearance).join(Booking, Booking.id == BalanceClearance.booking_id).filter(
            BalanceClearance.status == ClearanceStatus.PENDING,
            BalanceClearance.clearance_at <= now
        ).order_by(BalanceClearance.clearance_at.asc()).all()

        processed, skipped = 0, 0
        for clearance in due:
            if clearance.booking.status == BookingStatus.DISPUTED:
                skipped += 1
                continue
            if BalanceService.clear_pending_balance(db, clearance.booking_id, now):
                processed += 1
        db.commit()

        logger.info(f"Processed {processed} clearances, skipped {skipped} under dispute")
        return {"processed": processed, "skipped": skipped}

    @staticmethod
    def cancel_clearance(db: Session, booking_id: int) -> None:
        """Drop a pending clearance after a full refund"""
        clearance = db.query(BalanceClearance).filter(BalanceClearance.booking_id == booking_id).first()
        if not clearance or clearance.status != ClearanceStatus.PENDING:
            return
        profile = BalanceService.get_professional_profile(db, clearance.professional_id, lock=True)
        profile.pending_balance = max((profile.pending_balance or 0) - clearance.amount, 0)
        profile.total_earnings = max((profile.total_earnings or 0) - clearance.amount, 0)
        clearance.status = ClearanceStatus.CANCELLED
        logger.info(f"Cancelled clearance for booking {booking_id}")

    @staticmethod
    def reduce_clearance(db: Session, booking_id: int, amount: int) -> None:
        """Subtract a partial refund from a pending clearance, which stays queued"""
        clearance = db.query(BalanceClearance).filter(BalanceClearance.booking_id == booking_id).first()
        if not clearance or clearance.status != ClearanceStatus.PENDING or amount <= 0:
            return
        reduction = min(amount, clearance.amount)
        profile = BalanceService.get_professional_profile(db, clearance.professional_id, lock=True)
        profile.pending_balance = max((profile.pending_balance or 0) - reduction, 0)
        profile.total_earnings = max((profile.total_earnings or 0) - reduction, 0)
        clearance.amount -= reduction
        if clearance.amount == 0:
            clearance.status = ClearanceStatus.CANCELLED
        logger.info(f"Reduced clearance for booking {booking_id} by {reduction}")

    @staticmethod
    def get_daily_payout_count(db: Session, professional_id: int, now: Optional[datetime] = None) -> int:
        today = (now or utcnow()).date()
        row = db.query(PayoutRateLimit).filter(
            PayoutRateLimit.professional_id == professional_id,
            PayoutRateLimit.payout_date == today
        ).first()
        return row.instant_payout_count if row else 0

    @staticmethod
    def validate_instant_payout(
        db: Session,
        professional_id: int,
        amount: int,
        include_rate_limit: bool = True
    ) -> InstantPayoutValidation:
        errors: List[str] = []
        warnings: List[str] = []
        currency = BalanceService.currency_for(db, professional_id)

        profile = db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional_id).first()
        if not profile:
            return InstantPayoutValidation(False, 0, amount, 0, 0, currency, ["Professional profile not found"])

        available = profile.available_balance or 0

        if not profile.instant_payout_enabled:
            errors.append("Instant payouts are disabled for your account. Please contact support.")
        if not profile.stripe_account_id:
            errors.append("Please complete your payout setup before requesting an instant payout.")

        if amount < settings.MINIMUM_INSTANT_PAYOUT:
            errors.append(f"Minimum instant payout is {format_amount(settings.MINIMUM_INSTANT_PAYOUT, currency)}")
        if amount > settings.MAXIMUM_INSTANT_PAYOUT:
            errors.append(f"Maximum instant payout is {format_amount(settings.MAXIMUM_INSTANT_PAYOUT, currency)}")
        if amount > available:
            errors.append(
                f"Insufficient balance. You have {format_amount(available, currency)} available, "
                f"but requested {format_amount(amount, currency)}."
            )

        fee = calculate_instant_payout_fee(amount)

        used_today = BalanceService.get_daily_payout_count(db, professional_id)
        limit = settings.INSTANT_PAYOUT_DAILY_LIMIT
        if used_today >= limit and include_rate_limit:
            errors.append(
                f"Daily limit reached. You can request up to {limit} instant payouts per day. Please try again tomorrow."
            )
        elif used_today == limit - 1:
            warnings.append(f"This will be your last instant payout for today ({used_today + 1}/{limit}).")

        return InstantPayoutValidation(
            is_valid=not errors,
            available_balance=available,
            requested_amount=amount,
            fee_amount=fee,
            net_amount=amount - fee,
            currency=currency,
            errors=errors,
            warnings=warnings,
        )

    @staticmethod
    def deduct_for_payout(db: Session, professional_id: int, amount: int) -> int:
        """Deduct from available balance under a row lock; returns the new balance"""
        profile = BalanceService.get_professional_profile(db, professional_id, lock=True)
        if (profile.available_balance or 0) < amount:
            raise ValidationFailedError(
                "Insufficient available balance",
                {"available_balance": profile.available_balance or 0, "requested_amount": amount}
            )
        profile.available_balance -= amount
        return profile.available_balance

    @staticmethod
    def refund_failed_payout(db: Session, professional_id: int, amount: int) -> int:
        profile = BalanceService.get_professional_profile(db, professional_id, lock=True)
        profile.available_balance = (profile.available_balance or 0) + amount
        logger.info(f"Refunded {amount} to available balance of professional {professional_id} after failed payout")
        return profile.available_balance


# Global instance
balance_service = BalanceService()
