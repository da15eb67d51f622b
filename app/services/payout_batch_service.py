"""
Scheduled payout batches

Tuesday and Friday runs pay every professional's available balance: a Stripe
transfer to the connected account where Stripe operates, a PayPal payout to
the professional's PayPal email elsewhere. The batch id comes from the run
date, so a repeated cron call resumes an interrupted batch or returns the
finished one instead of paying twice.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import PaymentProcessorError
from app.core.logging_config import logger
from app.db.models import (
    BalanceClearance, Booking, BookingStatus, ClearanceStatus, CurrencyCode, PaymentProcessor,
    PayoutBatch, PayoutBatchStatus, PayoutStatus, PayoutTransfer, PayoutType, ProfessionalProfile,
    Profile, utcnow
)
from app.services.balance_service import balance_service
from app.services.payment_calculation import payment_calculation_service
from app.services.paypal_client import paypal_client
from app.services.stripe_gateway import stripe_gateway
from app.utils.price_utils import get_currency_for_country, is_payment_processor_supported

WEEKDAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
NO_PAYOUT_METHOD = "No payout method configured"


@dataclass
class PlannedPayout:
    professional_id: int
    processor: Optional[PaymentProcessor]
    amount: int
    currency: str
    booking_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "professional_id": self.professional_id,
            "processor": self.processor.value if self.processor else None,
            "amount": self.amount,
            "currency": self.currency,
            "booking_ids": self.booking_ids,
        }


def _totals(rows) -> Dict[str, int]:
    totals: Dict[str, int] = {}
    for currency, amount in rows:
        key = currency.value if isinstance(currency, CurrencyCode) else str(currency)
        totals[key] = totals.get(key, 0) + amount
    return totals


class PayoutBatchService:
    """Service for the twice-weekly batch payout run"""

    @staticmethod
    def batch_id_for(now: datetime) -> str:
        return f"payout-{now:%Y-%m-%d}-{WEEKDAYS[now.weekday()]}"

    @staticmethod
    def choose_processor(user: Profile, profile: ProfessionalProfile) -> Optional[PaymentProcessor]:
        """Stripe where the market supports it and the account is connected, PayPal otherwise"""
        if profile.stripe_account_id and is_payment_processor_supported(PaymentProcessor.STRIPE, user.country):
            return PaymentProcessor.STRIPE
        if profile.paypal_email and is_payment_processor_supported(PaymentProcessor.PAYPAL, user.country):
            return PaymentProcessor.PAYPAL
        return None

    @staticmethod
    def unpaid_bookings(db: Session, professional_id: int) -> List[Booking]:
        """Completed bookings whose earnings have cleared and are not yet in a batch transfer"""
        return db.query(Booking).join(
            BalanceClearance, BalanceClearance.booking_id == Booking.id
        ).filter(
            Booking.professional_id == professional_id,
            Booking.status == BookingStatus.COMPLETED,
            Booking.payout_transfer_id.is_(None),
            BalanceClearance.status == ClearanceStatus.CLEARED,
        ).order_by(Booking.checked_out_at.asc(), Booking.id.asc()).all()

    @staticmethod
    def plan(db: Session) -> List[PlannedPayout]:
        """One payout per active professional with an available balance"""
        rows = db.query(ProfessionalProfile, Profile).join(
            Profile, Profile.id == ProfessionalProfile.profile_id
        ).filter(
            ProfessionalProfile.available_balance > 0,
            Profile.is_active == True
        ).order_by(Profile.id.asc()).all()

        planned = []
        for profile, user in rows:
            planned.append(PlannedPayout(
                professional_id=user.id,
                processor=PayoutBatchService.choose_processor(user, profile),
                amount=profile.available_balance,
                currency=get_currency_for_country(user.country).value,
                booking_ids=[b.id for b in PayoutBatchService.unpaid_bookings(db, user.id)],
            ))
        return planned

    @staticmethod
    def _start_batch(db: Session, now: datetime) -> PayoutBatch:
        batch_id = PayoutBatchService.batch_id_for(now)
        query = db.query(PayoutBatch).filter(PayoutBatch.batch_id == batch_id)
        batch = query.first()
        if batch:
            return batch

        period = payment_calculation_service.get_current_payout_period(now)
        batch = PayoutBatch(
            batch_id=batch_id,
            run_date=now.date(),
            period_start=period["period_start"],
            period_end=period["period_end"],
            status=PayoutBatchStatus.PROCESSING,
        )
        try:
            with db.begin_nested():
                db.add(batch)
        except IntegrityError:
            # Another scheduler call started the same batch
            batch = query.first()
        db.commit()
        logger.info(f"Payout batch {batch_id} started")
        return batch

    @staticmethod
    def _pay(db: Session, batch: PayoutBatch, planned: PlannedPayout) -> Optional[PayoutTransfer]:
        professional_id = planned.professional_id
        profile = balance_service.get_professional_profile(db, professional_id, lock=True)
        already_paid = db.query(PayoutTransfer).filter(
            PayoutTransfer.batch_id == batch.id,
            PayoutTransfer.professional_id == professional_id
        ).first()
        amount = profile.available_balance or 0
        if already_paid or amount <= 0:
            db.commit()
            return None

        balance_service.deduct_for_payout(db, professional_id, amount)
        transfer = PayoutTransfer(
            professional_id=professional_id,
            payout_type=PayoutType.BATCH,
            batch_id=batch.id,
            processor=planned.processor,
            gross_amount=amount,
            fee_amount=0,
            fee_percentage=0.0,
            amount=amount,
            currency=CurrencyCode(planned.currency),
            status=PayoutStatus.PROCESSING,
        )
        db.add(transfer)
        db.flush()

        bookings = PayoutBatchService.unpaid_bookings(db, professional_id)
        for booking in bookings:
            booking.payout_transfer_id = transfer.id

        # Same key for the same professional in the same batch, so a resumed run cannot pay twice
        idempotency_key = f"payout-batch-{batch.batch_id}-professional-{professional_id}"
        try:
            if planned.processor == PaymentProcessor.STRIPE:
                stripe_transfer = stripe_gateway.create_transfer(
                    destination_account_id=profile.stripe_account_id,
                    amount=amount,
                    currency=planned.currency,
                    idempotency_key=idempotency_key,
                    metadata={
                        "transfer_id": str(transfer.id),
                        "professional_id": str(professional_id),
                        "batch_id": batch.batch_id,
                        "booking_count": str(len(bookings)),
                    },
                )
                transfer.stripe_transfer_id = stripe_transfer.id
                transfer.status = PayoutStatus.COMPLETED
                transfer.completed_at = utcnow()
            else:
                paypal_client.create_payout(
                    sender_batch_id=idempotency_key,
                    sender_item_id=f"payout-{transfer.id}",
                    receiver_email=profile.paypal_email,
                    amount=amount,
                    currency=planned.currency,
                    note=f"Casaora payout {batch.batch_id}",
                )
                # Final status arrives through the PAYMENT.PAYOUTS-ITEM webhooks
                transfer.status = PayoutStatus.PENDING
        except PaymentProcessorError as e:
            transfer.status = PayoutStatus.FAILED
            transfer.error_message = e.message
            for booking in bookings:
                booking.payout_transfer_id = None
            balance_service.refund_failed_payout(db, professional_id, amount)
            db.commit()
            logger.error(f"Batch payout {transfer.id} failed for professional {professional_id}: {e.message}")
            return transfer

        db.commit()
        logger.info(
            f"Batch payout {transfer.id} {transfer.status.value}: professional={professional_id} "
            f"amount={amount} {planned.currency} via {planned.processor.value} bookings={len(bookings)}"
        )
        return transfer

    @staticmethod
    def _finish(db: Session, batch: PayoutBatch) -> None:
        transfers = db.query(PayoutTransfer).filter(PayoutTransfer.batch_id == batch.id).all()
        sent = [t for t in transfers if t.status != PayoutStatus.FAILED]
        batch.total_transfers = len(transfers)
        batch.successful_transfers = len(sent)
        batch.failed_transfers = len(transfers) - len(sent)
        batch.totals = _totals((t.currency, t.amount) for t in sent)
        batch.status = PayoutBatchStatus.COMPLETED
        batch.completed_at = utcnow()
        db.commit()
        logger.info(
            f"Payout batch {batch.batch_id} completed: {batch.successful_transfers} sent, "
            f"{batch.failed_transfers} failed, totals {batch.totals}"
        )

    @staticmethod
    def summarize(db: Session, batch: PayoutBatch) -> Dict:
        failed = db.query(PayoutTransfer).filter(
            PayoutTransfer.batch_id == batch.id,
            PayoutTransfer.status == PayoutStatus.FAILED
        ).order_by(PayoutTransfer.id.asc()).all()
        return {
            "batch_id": batch.batch_id,
            "status": batch.status.value,
            "period_start": batch.period_start.isoformat(),
            "period_end": batch.period_end.isoformat(),
            "total_transfers": batch.total_transfers,
            "successful_transfers": batch.successful_transfers,
            "failed_transfers": batch.failed_transfers,
            "totals": batch.totals or {},
            "errors": [
                {"professional_id": t.professional_id, "transfer_id": t.id, "error": t.error_message}
                for t in failed
            ],
        }

    @staticmethod
    def run(db: Session, now: Optional[datetime] = None, dry_run: bool = False) -> Dict:
        """
        Run (or resume) today's batch

        Args:
            now: run time, defaults to the current UTC time
            dry_run: return the planned payouts without writing or calling processors

        Returns:
            Batch summary; professionals without a payout method are listed under "skipped"
        """
        now = now or utcnow()
        planned = PayoutBatchService.plan(db)
        payable = [p for p in planned if p.processor]
        skipped = [
            {"professional_id": p.professional_id, "amount": p.amount, "reason": NO_PAYOUT_METHOD}
            for p in planned if not p.processor
        ]
        for entry in skipped:
            logger.warning(f"Professional {entry['professional_id']} skipped in payout batch: {NO_PAYOUT_METHOD}")

        if dry_run:
            period = payment_calculation_service.get_current_payout_period(now)
            return {
                "batch_id": PayoutBatchService.batch_id_for(now),
                "dry_run": True,
                "period_start": period["period_start"].isoformat(),
                "period_end": period["period_end"].isoformat(),
                "total_transfers": len(payable),
                "totals": _totals((p.currency, p.amount) for p in payable),
                "payouts": [p.to_dict() for p in payable],
                "skipped": skipped,
            }

        batch = PayoutBatchService._start_batch(db, now)
        if batch.status == PayoutBatchStatus.COMPLETED:
            logger.info(f"Payout batch {batch.batch_id} already completed")
            return {**PayoutBatchService.summarize(db, batch), "already_processed": True, "skipped": []}

        for payout in payable:
            PayoutBatchService._pay(db, batch, payout)
        PayoutBatchService._finish(db, batch)
        return {**PayoutBatchService.summarize(db, batch), "already_processed": False, "skipped": skipped}


# Global instance
payout_batch_service = PayoutBatchService()
