"""
Analytics service for admin dashboard statistics
"""
from typing import Dict, List, Optional
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import func

from app.db.models import (
    BackgroundCheck, BackgroundCheckStatus, Booking, BookingStatus, Dispute, DisputeStatus,
    PayoutStatus, PayoutTransfer, Profile, utcnow
)
from app.schemas.analytics import BookingSummary, DashboardStats, RevenueSummary
from app.services.moderation_service import moderation_service


class AnalyticsService:
    """Service for analytics and dashboard data"""

    @staticmethod
    def get_booking_summary(db: Session) -> BookingSummary:
        rows = db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
        by_status = {s.value: 0 for s in BookingStatus}
        for booking_status, count in rows:
            by_status[booking_status.value] = count
        return BookingSummary(total=sum(by_status.values()), by_status=by_status)

    @staticmethod
    def get_revenue_summary(
        db: Session,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> RevenueSummary:
        """Captured, refunded and fee totals grouped by currency"""
        query = db.query(
            Booking.currency,
            func.coalesce(func.sum(Booking.amount_captured), 0),
            func.coalesce(func.sum(Booking.amount_refunded), 0),
            func.coalesce(func.sum(Booking.service_fee), 0),
        ).filter(Booking.amount_captured.isnot(None))

        if start_date:
            query = query.filter(Booking.checked_out_at >= start_date)
        if end_date:
            query = query.filter(Booking.checked_out_at <= end_date)

        gmv, refunded, fees = {}, {}, {}
        for currency, captured, refund_total, fee_total in query.group_by(Booking.currency).all():
            gmv[currency.value] = int(captured)
            refunded[currency.value] = int(refund_total)
            fees[currency.value] = int(fee_total)

        return RevenueSummary(
            gmv_captured=gmv,
            refunded=refunded,
            platform_fees=fees,
            period_start=start_date,
            period_end=end_date,
        )

    @staticmethod
    def get_recent_bookings(db: Session, limit: int = 10) -> List[Dict]:
        bookings = db.query(Booking).order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).all()
        return [
            {
                "id": b.id,
                "service_name": b.service_name,
                "status": b.status.value,
                "scheduled_start": b.scheduled_start.isoformat(),
                "amount": b.amount_estimated + b.service_fee,
                "currency": b.currency.value,
            }
            for b in bookings
        ]

    @staticmethod
    def get_dashboard_stats(db: Session, days: int = 30) -> DashboardStats:
        now = utcnow()
        start_date = now - timedelta(days=days)

        open_disputes = db.query(func.count(Dispute.id)).filter(
            Dispute.status == DisputeStatus.OPEN
        ).scalar() or 0
        pending_payouts = db.query(func.count(PayoutTransfer.id)).filter(
            PayoutTransfer.status.in_([PayoutStatus.PROCESSING, PayoutStatus.PENDING])
        ).scalar() or 0
        pending_checks = db.query(func.count(BackgroundCheck.id)).filter(
            BackgroundCheck.status.in_([BackgroundCheckStatus.PENDING, BackgroundCheckStatus.IN_PROGRESS])
        ).scalar() or 0
        new_users = db.query(func.count(Profile.id)).filter(Profile.created_at >= start_date).scalar() or 0

        return DashboardStats(
            bookings=AnalyticsService.get_booking_summary(db),
            revenue=AnalyticsService.get_revenue_summary(db, start_date, now),
            open_disputes=open_disputes,
            active_suspensions=moderation_service.active_suspensions_query(db, now).count(),
            pending_payouts=pending_payouts,
            pending_background_checks=pending_checks,
            new_users=new_users,
            recent_bookings=AnalyticsService.get_recent_bookings(db),
        )


# Global instance
analytics_service = AnalyticsService()
