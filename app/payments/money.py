"""
Decimal helpers for KES amounts.

All amounts are Decimal with two places, rounded half-up. Floats never
enter the arithmetic: inputs are converted through str().

Usage:
    from payments.money import platform_fee, gross_from_net, seller_fee_rate

    fee = platform_fee(Decimal("1000"), seller_fee_rate())    # Decimal("30.00")
    gross = gross_from_net(Decimal("940"), event_fee_rate())  # Decimal("1000.00")
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

from core.exceptions import ValidationError

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value, field: str = "amount") -> Decimal:
    """
    Convert user or provider input to Decimal.

    Raises:
        ValidationError: Value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationError(
                f"Invalid {field}: {value!r}",
                error_code="INVALID_AMOUNT",
                details={"field": field},
            )
    if not result.is_finite():
        raise ValidationError(
            f"Invalid {field}: {value!r}",
            error_code="INVALID_AMOUNT",
            details={"field": field},
        )
    return result


def round2(value) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def seller_fee_rate() -> Decimal:
    return to_decimal(settings.SELLER_PLATFORM_FEE_RATE, "SELLER_PLATFORM_FEE_RATE")


def event_fee_rate() -> Decimal:
    return to_decimal(settings.EVENT_PLATFORM_FEE_RATE, "EVENT_PLATFORM_FEE_RATE")


def platform_fee(total, rate) -> Decimal:
    return round2(to_decimal(total) * to_decimal(rate))


def gross_from_net(net, rate) -> Decimal:
    """Amount that, after the platform fee, leaves net: net / (1 - rate)."""
    return round2(to_decimal(net) / (Decimal("1") - to_decimal(rate)))
