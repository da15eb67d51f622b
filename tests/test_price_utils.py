from datetime import datetime
from types import SimpleNamespace

import pytest

from app.db.models import CountryCode, CurrencyCode, PaymentProcessor
from app.services.payment_calculation import payment_calculation_service
from app.utils.price_utils import (
    calculate_commission, format_amount, from_major_units, get_currency_for_country,
    get_pricing_config, get_primary_payment_processor, is_payment_processor_supported,
    is_valid_price, to_major_units
)


def test_currency_per_country():
    assert get_currency_for_country(CountryCode.CO) == CurrencyCode.COP
    assert get_currency_for_country("PY") == CurrencyCode.PYG
    assert get_currency_for_country(CountryCode.UY) == CurrencyCode.UYU
    assert get_currency_for_country(CountryCode.AR) == CurrencyCode.ARS


def test_unknown_country_raises():
    with pytest.raises(ValueError):
        get_pricing_config("BR")


def test_commission_rates():
    assert calculate_commission(10_000_000, CountryCode.CO) == 1_500_000
    assert calculate_commission(10_000_000, CountryCode.CO, is_direct_hire=True) == 2_000_000
    # 15% of 33 = 4.95 -> 5
    assert calculate_commission(33, CountryCode.CO) == 5


def test_price_bounds():
    assert is_valid_price(2_000_000, CountryCode.CO)
    assert not is_valid_price(1_999_999, CountryCode.CO)
    assert not is_valid_price(200_000_001, CountryCode.CO)


def test_paypal_only_markets():
    assert get_primary_payment_processor(CountryCode.CO) == PaymentProcessor.STRIPE
    assert get_primary_payment_processor(CountryCode.PY) == PaymentProcessor.PAYPAL
    assert not is_payment_processor_supported(PaymentProcessor.STRIPE, CountryCode.PY)
    assert is_payment_processor_supported("paypal", CountryCode.CO)


def test_major_unit_conversion():
    assert to_major_units(12_345) == "123.45"
    assert to_major_units(5) == "0.05"
    assert from_major_units("123.45") == 12_345
    assert from_major_units(0.1) == 10


def test_format_amount():
    assert format_amount(12_345_600, CurrencyCode.COP) == "$123.456"
    assert format_amount(123_456, CurrencyCode.USD) == "US$1,234.56"
    assert format_amount(1_975_000, CurrencyCode.UYU) == "$U19,750.00"


def test_checkout_adds_fee_on_top():
    checkout = payment_calculation_service.calculate_checkout(10_000_000, CountryCode.CO)
    assert checkout == {"service_amount": 10_000_000, "service_fee": 1_500_000, "total": 11_500_000}


def test_payout_from_bookings_uses_captured_amounts():
    bookings = [
        SimpleNamespace(id=1, amount_captured=1_000_000, currency=CurrencyCode.COP, country=CountryCode.CO),
        SimpleNamespace(id=2, amount_captured=2_000_000, currency=CurrencyCode.COP, country=CountryCode.CO),
    ]
    payout = payment_calculation_service.calculate_payout_from_bookings(bookings)
    assert payout["gross_amount"] == 3_000_000
    assert payout["commission_amount"] == 450_000
    assert payout["net_amount"] == 2_550_000
    assert payout["booking_ids"] == [1, 2]


def test_empty_payout():
    payout = payment_calculation_service.calculate_payout_from_bookings([])
    assert payout["gross_amount"] == 0
    assert payout["booking_count"] == 0


@pytest.mark.parametrize("now,payout_day", [
    (datetime(2026, 3, 9, 15), datetime(2026, 3, 10, 10)),   # Monday -> Tuesday
    (datetime(2026, 3, 11, 9), datetime(2026, 3, 13, 10)),   # Wednesday -> Friday
    (datetime(2026, 3, 14, 9), datetime(2026, 3, 20, 10)),   # Saturday -> next Friday
])
def test_payout_schedule(now, payout_day):
    period = payment_calculation_service.get_current_payout_period(now)
    assert period["next_payout_date"] == payout_day
    assert period["period_start"] <= now
