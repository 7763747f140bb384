"""Decimal money helpers shared by aggregation and payouts.

All amounts are ``Decimal`` values with exactly two places. The store keeps
integer cents; conversion happens at the adapter boundary.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated, Any

from pydantic import PlainSerializer

from backoffice.services.errors import PrecisionLoss

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Any) -> Decimal:
    """Return *value* as a two-place ``Decimal``.

    Raises ``PrecisionLoss`` when the value is not finite or carries
    sub-cent digits that would be lost.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise PrecisionLoss(f"Amount {value!r} is not a decimal number") from exc
    if not amount.is_finite():
        raise PrecisionLoss(f"Amount {value!r} is not finite")
    quantized = amount.quantize(CENT)
    if quantized != amount:
        raise PrecisionLoss(f"Amount {value!r} has more than two decimal places")
    return quantized


def round_money(value: Decimal) -> Decimal:
    """Round a computed amount (e.g. after applying a rate) half-up to cents."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def cents_to_money(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def format_money(value: Decimal) -> str:
    return f"{value:.2f}"


# Monetary fields on response schemas render as fixed two-decimal strings.
Money = Annotated[Decimal, PlainSerializer(format_money, return_type=str, when_used="json")]
