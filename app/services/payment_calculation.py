"""
Payment calculation service
Handles checkout totals, payout aggregation and the twice-weekly payout schedule
"""
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional

from app.db.models import Booking, CountryCode, CurrencyCode
from app.utils.price_utils import calculate_commission, CURRENCY_COUNTRY

# Payout weekdays (Monday=0): Tuesday and Friday at 10:00
TUESDAY = 1
FRIDAY = 4
PAYOUT_HOUR = 10


class PaymentCalculationService:
    """Service for booking and payout calculations"""

    @staticmethod
    def calculate_checkout(amount: int, country: CountryCode, is_direct_hire: bool = False) -> Dict[str, int]:
        """
        Customer-facing checkout breakdown.
        Professionals keep the full service amount; the platform fee is charged on top.

        Returns:
            Dict with service_amount, service_fee and total
        """
        service_fee = calculate_commission(amount, country, is_direct_hire)
        return {
            "service_amount": amount,
            "service_fee": service_fee,
            "total": amount + service_fee,
        }

    @staticmethod
    def calculate_payout_from_bookings(bookings: Iterable[Booking]) -> Dict:
        """
        Aggregate captured amounts of completed bookings into a payout.
        Commission uses each booking's country rate.
        """
        bookings = list(bookings)
        if not bookings:
            return {
                "gross_amount": 0,
                "commission_amount": 0,
                "net_amount": 0,
                "currency": CurrencyCode.COP,
                "booking_ids": [],
                "booking_count": 0,
            }

        currency = CurrencyCode(bookings[0].currency)
        gross = 0
        commission = 0
        for booking in bookings:
            amount = booking.amount_captured or 0
            country = booking.country or CURRENCY_COUNTRY.get(currency, CountryCode.CO)
            gross += amount
            commission += calculate_commission(amount, country)

        return {
            "gross_amount": gross,
            "commission_amount": commission,
            "net_amount": gross - commission,
            "currency": currency,
            "booking_ids": [b.id for b in bookings],
            "booking_count": len(bookings),
        }

    @staticmethod
    def get_current_payout_period(now: Optional[datetime] = None) -> Dict[str, datetime]:
        """
        Twice-weekly payout schedule.
        Tuesday payouts cover Friday-Monday, Friday payouts cover Tuesday-Thursday.
        """
        now = now or datetime.now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        weekday = now.weekday()

        if weekday in (6, 0, 1):  # Sunday, Monday, Tuesday -> Tuesday payout
            days_since_friday = (weekday - FRIDAY) % 7
            days_until_tuesday = (TUESDAY - weekday) % 7
            period_start = today - timedelta(days=days_since_friday)
            period_end = today + timedelta(days=days_until_tuesday)
        else:  # Wednesday-Saturday -> Friday payout
            days_since_tuesday = (weekday - TUESDAY) % 7
            days_until_friday = (FRIDAY - weekday) % 7
            period_start = today - timedelta(days=days_since_tuesday)
            period_end = today + timedelta(days=days_until_friday)

        return {
            "period_start": period_start,
            "period_end": period_end,
            "next_payout_date": period_end.replace(hour=PAYOUT_HOUR),
        }


# Global instance
payment_calculation_service = PaymentCalculationService()
