"""
Decimal helpers shared by the estimation engine and the API layer.

Every monetary value is a ``Decimal``. Floats coming from JSON or the
database are converted through ``str()`` so that ``0.1`` stays ``0.1``.
"""

from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation
from typing import Optional, Union

from .errors import EstimateValidationError

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO_PLACES = Decimal("0.01")


def to_decimal(value: Optional[Number], field_name: str = "value") -> Optional[Decimal]:
    """Convert a number-like value to Decimal, passing ``None`` through."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise EstimateValidationError(f"{field_name} must be a number, got {value!r}")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise EstimateValidationError(f"{field_name} must be a number, got {value!r}")
    if not result.is_finite():
        raise EstimateValidationError(f"{field_name} must be finite, got {value!r}")
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 places using banker's rounding."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_EVEN)


def format_money(value: Optional[Decimal]) -> Optional[str]:
    """Wire format: decimal string with exactly two fraction digits."""
    if value is None:
        return None
    return str(quantize_money(value))
