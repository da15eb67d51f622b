"""
Professional dashboard stats and urgent task list
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.models import Booking, BookingStatus, Profile, utcnow
from app.services.balance_service import balance_service, professional_earnings
from app.services.payment_calculation import payment_calculation_service

PENDING_ACCEPTANCE_HOURS = 2
UPCOMING_WINDOW_HOURS = 24


class ProDashboardService:

    @staticmethod
    def get_stats(db: Session, professional: Profile, now: Optional[datetime] = None) -> Dict:
        now = now or utcnow()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        completed_this_month = db.query(Booking).filter(
            Booking.professional_id == professional.id,
            Booking.status == BookingStatus.COMPLETED,
            Booking.checked_out_at >= month_start
        ).all()

        upcoming_count = db.query(func.count(Booking.id)).filter(
            Booking.professional_id == professional.id,
            Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED]),
            Booking.scheduled_start >= now
        ).scalar() or 0

        pro_profile = balance_service.get_professional_profile(db, professional.id)
        balance = balance_service.get_balance_breakdown(db, professional.id, now)
        period = payment_calculation_service.get_current_payout_period(now)

        return {
            "month_earnings": sum(professional_earnings(b) + (b.tip_amount or 0) for b in completed_this_month),
            "completed_this_month": len(completed_this_month),
            "upcoming_bookings": upcoming_count,
            "rating": pro_profile.rating,
            "review_count": pro_profile.review_count,
            "total_bookings": pro_profile.total_bookings,
            "available_balance": balance["available_balance"],
            "pending_balance": balance["pending_balance"],
            "currency": balance["currency"],
            "next_payout_date": period["next_payout_date"],
        }

    @staticmethod
    def get_urgent_tasks(db: Session, professional: Profile, now: Optional[datetime] = None) -> List[Dict]:
        """
        Tasks needing attention, most urgent first:
        - pending bookings waiting for acceptance longer than 2 hours
        - confirmed bookings starting within 24 hours
        - in-progress bookings past their scheduled end (check-out missing)
        """
        now = now or utcnow()
        tasks = []

        awaiting = db.query(Booking).filter(
            Booking.professional_id == professional.id,
            Booking.status == BookingStatus.PENDING,
            Booking.created_at <= now - timedelta(hours=PENDING_ACCEPTANCE_HOURS)
        ).order_by(Booking.created_at.asc()).all()
        for booking in awaiting:
            tasks.append({
                "type": "accept_booking",
                "priority": "high",
                "booking_id": booking.id,
                "service_name": booking.service_name,
                "scheduled_start": booking.scheduled_start,
                "message": "Booking waiting for your response",
            })

        upcoming = db.query(Booking).filter(
            Booking.professional_id == professional.id,
            Booking.status == BookingStatus.CONFIRMED,
            Booking.scheduled_start >= now,
            Booking.scheduled_start <= now + timedelta(hours=UPCOMING_WINDOW_HOURS)
        ).order_by(Booking.scheduled_start.asc()).all()
        for booking in upcoming:
            tasks.append({
                "type": "upcoming_service",
                "priority": "medium",
                "booking_id": booking.id,
                "service_name": booking.service_name,
                "scheduled_start": booking.scheduled_start,
                "message": "Service starts within 24 hours",
            })

        overdue = db.query(Booking).filter(
            Booking.professional_id == professional.id,
            Booking.status == BookingStatus.IN_PROGRESS,
            Booking.scheduled_end < now
        ).order_by(Booking.scheduled_end.asc()).all()
        for booking in overdue:
            tasks.append({
                "type": "check_out",
                "priority": "high",
                "booking_id": booking.id,
                "service_name": booking.service_name,
                "scheduled_start": booking.scheduled_start,
                "message": "Service past its scheduled end; check out to get paid",
            })

        order = {"high": 0, "medium": 1}
        tasks.sort(key=lambda t: order[t["priority"]])
        return tasks


# Global instance
pro_dashboard_service = ProDashboardService()
