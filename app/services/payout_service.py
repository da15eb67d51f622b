"""
Instant payout service and processor status updates shared with scheduled batches

Flow for POST /api/pro/payouts/instant:
validate -> daily rate limit -> deduct balance -> processing transfer ->
Stripe instant payout on the connected account (pending) or failure (failed + refund).
"""
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import PaymentProcessorError, RateLimitExceededError, ValidationFailedError
from app.core.logging_config import logger
from app.db.models import (
    CurrencyCode, PaymentProcessor, PayoutRateLimit, PayoutStatus, PayoutTransfer, PayoutType, utcnow
)
from app.services.balance_service import balance_service, calculate_instant_payout_fee
from app.services.stripe_gateway import stripe_gateway
from app.utils.price_utils import format_amount

FINAL_PAYOUT_STATUSES = (
    PayoutStatus.COMPLETED,
    PayoutStatus.FAILED,
    PayoutStatus.RETURNED,
)


class PayoutService:
    """Service for professional payouts"""

    @staticmethod
    def get_instant_payout_overview(db: Session, professional_id: int) -> Dict:
        """Balance, eligibility, fee info and an estimate for cashing out everything available"""
        breakdown = balance_service.get_balance_breakdown(db, professional_id)
        profile = balance_service.get_professional_profile(db, professional_id)
        available = breakdown["available_balance"]
        currency = breakdown["currency"]
        used_today = balance_service.get_daily_payout_count(db, professional_id)
        daily_limit = settings.INSTANT_PAYOUT_DAILY_LIMIT
        minimum = settings.MINIMUM_INSTANT_PAYOUT

        reasons = []
        if available < minimum:
            reasons.append(f"Minimum balance is {format_amount(minimum, currency)}")
        if used_today >= daily_limit:
            reasons.append(f"Daily limit reached ({daily_limit} payouts per day)")
        if not profile.stripe_account_id:
            reasons.append("Stripe Connect account not set up")
        if not profile.instant_payout_enabled:
            reasons.append("Instant payouts disabled for your account")

        fee = calculate_instant_payout_fee(available)
        return {
            "balance": {
                "available": available,
                "pending": breakdown["pending_balance"],
                "total": breakdown["total_balance"],
                "currency": currency,
            },
            "eligibility": {"is_eligible": not reasons, "reasons": reasons},
            "fee_info": {
                "fee_percentage": settings.INSTANT_PAYOUT_FEE_PERCENTAGE,
                "min_threshold": minimum,
                "daily_limit": daily_limit,
                "used_today": used_today,
                "remaining_today": max(0, daily_limit - used_today),
            },
            "estimate": {
                "gross_amount": available,
                "fee_amount": fee,
                "net_amount": available - fee,
            },
            "pending_clearances": breakdown["pending_clearances"],
        }

    @staticmethod
    def consume_daily_rate_limit(db: Session, professional_id: int) -> int:
        """
        Increment today's instant payout counter.
        The row is unique per (professional, date), so concurrent requests share one counter.
        """
        today = utcnow().date()
        query = db.query(PayoutRateLimit).filter(
            PayoutRateLimit.professional_id == professional_id,
            PayoutRateLimit.payout_date == today
        )
        row = query.with_for_update().first()
        if row is None:
            try:
                with db.begin_nested():
                    row = PayoutRateLimit(professional_id=professional_id, payout_date=today, instant_payout_count=0)
                    db.add(row)
            except IntegrityError:
                row = query.with_for_update().first()

        limit = settings.INSTANT_PAYOUT_DAILY_LIMIT
        if row.instant_payout_count >= limit:
            raise RateLimitExceededError(
                f"Rate limit exceeded. Maximum {limit} instant payouts per day.",
                {"daily_limit": limit, "used_today": row.instant_payout_count}
            )
        row.instant_payout_count += 1
        return row.instant_payout_count

    @staticmethod
    def request_instant_payout(db: Session, professional_id: int, amount: int) -> PayoutTransfer:
        validation = balance_service.validate_instant_payout(db, professional_id, amount, include_rate_limit=False)
        if not validation.is_valid:
            logger.warning(f"Instant payout validation failed for professional {professional_id}: {validation.errors}")
            raise ValidationFailedError(
                "Instant payout validation failed",
                {"errors": validation.errors, "warnings": validation.warnings}
            )

        PayoutService.consume_daily_rate_limit(db, professional_id)
        balance_service.deduct_for_payout(db, professional_id, amount)

        transfer = PayoutTransfer(
            professional_id=professional_id,
            payout_type=PayoutType.INSTANT,
            processor=PaymentProcessor.STRIPE,
            gross_amount=amount,
            fee_amount=validation.fee_amount,
            fee_percentage=settings.INSTANT_PAYOUT_FEE_PERCENTAGE,
            amount=validation.net_amount,
            currency=CurrencyCode(validation.currency),
            status=PayoutStatus.PROCESSING,
        )
        db.add(transfer)
        db.flush()

        profile = balance_service.get_professional_profile(db, professional_id)
        try:
            payout = stripe_gateway.create_instant_payout(
                stripe_account_id=profile.stripe_account_id,
                amount=validation.net_amount,
                currency=validation.currency,
                idempotency_key=f"instant-payout-{transfer.id}",
                metadata={
                    "transfer_id": str(transfer.id),
                    "professional_id": str(professional_id),
                    "payout_type": "instant",
                    "fee_amount": str(validation.fee_amount),
                },
            )
        except PaymentProcessorError as e:
            transfer.status = PayoutStatus.FAILED
            transfer.error_message = e.message
            balance_service.refund_failed_payout(db, professional_id, amount)
            # Keep the failed transfer and the refunded balance
            db.commit()
            logger.error(f"Instant payout {transfer.id} failed for professional {professional_id}: {e.message}")
            raise

        transfer.stripe_payout_id = payout.id
        transfer.status = PayoutStatus.PENDING
        db.commit()
        db.refresh(transfer)
        logger.info(
            f"Instant payout {transfer.id} created: gross={amount} fee={validation.fee_amount} "
            f"net={validation.net_amount} stripe={payout.id}"
        )
        return transfer

    @staticmethod
    def list_payouts_query(db: Session, professional_id: int, status: Optional[PayoutStatus] = None):
        query = db.query(PayoutTransfer).filter(PayoutTransfer.professional_id == professional_id)
        if status:
            query = query.filter(PayoutTransfer.status == status)
        return query.order_by(PayoutTransfer.requested_at.desc(), PayoutTransfer.id.desc())

    @staticmethod
    def apply_status(db: Session, transfer: PayoutTransfer, status: PayoutStatus, error_message: Optional[str] = None) -> bool:
        """
        Apply a processor-reported status. Failed and returned payouts refund the gross amount.
        Returns False when the transfer was already final.
        """
        if transfer.status in FINAL_PAYOUT_STATUSES:
            logger.info(f"Payout {transfer.id} already {transfer.status.value}, ignoring {status.value}")
            return False

        transfer.status = status
        if error_message:
            transfer.error_message = error_message
        if status == PayoutStatus.COMPLETED:
            transfer.completed_at = utcnow()
        if status in (PayoutStatus.FAILED, PayoutStatus.RETURNED):
            balance_service.refund_failed_payout(db, transfer.professional_id, transfer.gross_amount)
            # Bookings go back to the next scheduled batch
            for booking in transfer.bookings:
                booking.payout_transfer_id = None
        logger.info(f"Payout {transfer.id} -> {status.value}")
        return True


# Global instance
payout_service = PayoutService()
