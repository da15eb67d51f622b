"""
Rebook nudges sent 24h or 72h after a completed booking (A/B test)
"""
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.core.logging_config import logger
from app.db.models import Booking, BookingStatus, utcnow
from app.services.notification_service import notification_service

REBOOK_VARIANTS = {"24h": 24, "72h": 72}
WINDOW = timedelta(hours=1)


def rebook_variant_for(booking_id: int) -> str:
    """Stable 50/50 split on the booking id"""
    return "24h" if booking_id % 2 == 0 else "72h"


class RebookNudgeService:

    @staticmethod
    def send_due_nudges(db: Session, now: Optional[datetime] = None) -> Dict[str, Dict[str, int]]:
        now = now or utcnow()
        results = {}

        for variant, hours in REBOOK_VARIANTS.items():
            target = now - timedelta(hours=hours)
            bookings = db.query(Booking).filter(
                Booking.status == BookingStatus.COMPLETED,
                Booking.rebook_nudge_sent == False,
                Booking.checked_out_at.isnot(None),
                Booking.checked_out_at >= target - WINDOW,
                Booking.checked_out_at <= target + WINDOW
            ).all()

            stats = {"total_processed": 0, "sent": 0, "skipped": 0}
            for booking in bookings:
                assigned = booking.rebook_nudge_variant or rebook_variant_for(booking.id)
                if assigned != variant:
                    continue
                stats["total_processed"] += 1
                if not (booking.customer and booking.professional):
                    logger.warning(f"Rebook nudge skipped, missing profiles on booking {booking.id}")
                    stats["skipped"] += 1
                    continue

                notification_service.notify_rebook_nudge(db, booking)
                booking.rebook_nudge_variant = assigned
                booking.rebook_nudge_sent = True
                booking.rebook_nudge_sent_at = now
                stats["sent"] += 1

            results[variant] = stats

        db.commit()
        logger.info(f"Rebook nudges processed: {results}")
        return results


# Global instance
rebook_nudge_service = RebookNudgeService()
