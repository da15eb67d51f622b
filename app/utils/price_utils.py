"""
Multi-country pricing configuration and money helpers

All monetary values are integer minor currency units (cents/centavos).
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Union

from app.db.models import CountryCode, CurrencyCode, PaymentProcessor

COUNTRY_PRICING: Dict[CountryCode, Dict[str, Any]] = {
    # Colombia - launch market
    CountryCode.CO: {
        "currency": CurrencyCode.COP,
        "commission": {"marketplace_rate": 0.15, "direct_hire_rate": 0.20},
        "constraints": {
            "min_price": 2_000_000,
            "max_price": 200_000_000,
            "background_check_fee": 10_000_000,
        },
        "payment_processors": {
            "primary": PaymentProcessor.STRIPE,
            "fallback": PaymentProcessor.PAYPAL,
            "supported": [PaymentProcessor.STRIPE, PaymentProcessor.PAYPAL],
        },
        "formatting": {"decimal_places": 0, "thousands_separator": ".", "decimal_separator": ","},
    },
    CountryCode.PY: {
        "currency": CurrencyCode.PYG,
        "commission": {"marketplace_rate": 0.15, "direct_hire_rate": 0.20},
        "constraints": {
            "min_price": 3_650_000,
            "max_price": 365_000_000,
            "background_check_fee": 18_250_000,
        },
        # Stripe does not support PYG
        "payment_processors": {
            "primary": PaymentProcessor.PAYPAL,
            "fallback": None,
            "supported": [PaymentProcessor.PAYPAL],
        },
        "formatting": {"decimal_places": 0, "thousands_separator": ",", "decimal_separator": "."},
    },
    CountryCode.UY: {
        "currency": CurrencyCode.UYU,
        "commission": {"marketplace_rate": 0.15, "direct_hire_rate": 0.20},
        "constraints": {
            "min_price": 19_750,
            "max_price": 1_975_000,
            "background_check_fee": 98_750,
        },
        "payment_processors": {
            "primary": PaymentProcessor.PAYPAL,
            "fallback": None,
            "supported": [PaymentProcessor.PAYPAL],
        },
        "formatting": {"decimal_places": 2, "thousands_separator": ",", "decimal_separator": "."},
    },
    CountryCode.AR: {
        "currency": CurrencyCode.ARS,
        "commission": {"marketplace_rate": 0.15, "direct_hire_rate": 0.20},
        "constraints": {
            "min_price": 475_000,
            "max_price": 47_500_000,
            "background_check_fee": 2_375_000,
        },
        "payment_processors": {
            "primary": PaymentProcessor.PAYPAL,
            "fallback": None,
            "supported": [PaymentProcessor.PAYPAL],
        },
        "formatting": {"decimal_places": 2, "thousands_separator": ",", "decimal_separator": "."},
    },
}

CURRENCY_COUNTRY: Dict[CurrencyCode, CountryCode] = {
    CurrencyCode.COP: CountryCode.CO,
    CurrencyCode.PYG: CountryCode.PY,
    CurrencyCode.UYU: CountryCode.UY,
    CurrencyCode.ARS: CountryCode.AR,
    CurrencyCode.USD: CountryCode.CO,
}

CURRENCY_SYMBOLS: Dict[CurrencyCode, str] = {
    CurrencyCode.COP: "$",
    CurrencyCode.PYG: "₲",
    CurrencyCode.UYU: "$U",
    CurrencyCode.ARS: "$",
    CurrencyCode.USD: "US$",
}


def get_pricing_config(country: Union[CountryCode, str]) -> Dict[str, Any]:
    """Pricing configuration for a country; raises ValueError for unsupported markets"""
    try:
        return COUNTRY_PRICING[CountryCode(country)]
    except (KeyError, ValueError):
        raise ValueError(f"No pricing configuration found for country: {country}")


def get_currency_for_country(country: Union[CountryCode, str]) -> CurrencyCode:
    return get_pricing_config(country)["currency"]


def is_valid_price(price: int, country: Union[CountryCode, str]) -> bool:
    constraints = get_pricing_config(country)["constraints"]
    return constraints["min_price"] <= price <= constraints["max_price"]


def round_half_up(value: Union[Decimal, float, int]) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_commission(price: int, country: Union[CountryCode, str], is_direct_hire: bool = False) -> int:
    """Platform commission on a booking price"""
    commission = get_pricing_config(country)["commission"]
    rate = commission["direct_hire_rate"] if is_direct_hire else commission["marketplace_rate"]
    return round_half_up(Decimal(price) * Decimal(str(rate)))


def get_primary_payment_processor(country: Union[CountryCode, str]) -> PaymentProcessor:
    return get_pricing_config(country)["payment_processors"]["primary"]


def is_payment_processor_supported(processor: Union[PaymentProcessor, str], country: Union[CountryCode, str]) -> bool:
    return PaymentProcessor(processor) in get_pricing_config(country)["payment_processors"]["supported"]


def to_major_units(amount: int) -> str:
    """Minor units to a two-decimal string as processors expect ("12345" -> "123.45")"""
    return str((Decimal(amount) / Decimal(100)).quantize(Decimal("0.01")))


def from_major_units(value: Union[str, float]) -> int:
    return round_half_up(Decimal(str(value)) * 100)


def format_amount(amount: int, currency: Union[CurrencyCode, str] = CurrencyCode.COP) -> str:
    """
    Human readable amount, e.g. 12_345_600 COP -> "$123.456"
    """
    currency = CurrencyCode(currency)
    country = CURRENCY_COUNTRY.get(currency, CountryCode.CO)
    formatting = COUNTRY_PRICING[country]["formatting"]
    if currency == CurrencyCode.USD:
        formatting = {"decimal_places": 2, "thousands_separator": ",", "decimal_separator": "."}

    places = formatting["decimal_places"]
    major = Decimal(amount) / Decimal(100)
    quantum = Decimal(1).scaleb(-places) if places else Decimal("1")
    major = major.quantize(quantum, rounding=ROUND_HALF_UP)

    integer_part, _, fraction = f"{major:.{places}f}".partition(".")
    sign = ""
    if integer_part.startswith("-"):
        sign, integer_part = "-", integer_part[1:]
    grouped = f"{int(integer_part):,}".replace(",", formatting["thousands_separator"])
    text = grouped + (formatting["decimal_separator"] + fraction if places else "")
    return f"{sign}{CURRENCY_SYMBOLS[currency]}{text}"
