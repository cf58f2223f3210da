"""
Numeric boundary handling.

Raw records arrive from the database export with numeric columns as
strings ("182.50", "$1,200.00") or as numbers. Everything is parsed once
here, so the calculators only ever see floats or None.

Derived values that cannot be computed are reported as NOT_AVAILABLE
rather than 0, NaN or infinity.
"""

import math
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any

from pydantic import BeforeValidator

from cidery_common.exceptions import NumericParseError


class Unavailable(str, Enum):
    """Sentinel type for a derived metric that cannot be computed."""

    NOT_AVAILABLE = "n/a"

    def __bool__(self) -> bool:
        return False


NOT_AVAILABLE = Unavailable.NOT_AVAILABLE


def is_available(value: Any) -> bool:
    """True if value is a usable number (not None and not NOT_AVAILABLE)."""
    return value is not None and value is not NOT_AVAILABLE


def parse_numeric(value: Any, field_name: str = "value") -> float | None:
    """
    Parse a numeric field from a raw record.

    Strings may carry currency symbols, thousands separators and
    surrounding whitespace. None means absent and is returned unchanged.

    Args:
        value: Raw value (str, int, float, Decimal or None)
        field_name: Field name used in error messages

    Returns:
        Parsed float, or None if the value was absent

    Raises:
        NumericParseError: If the value is present but not a finite number

    Example:
        >>> parse_numeric("$1,200.50", "unit_price")
        1200.5
    """
    if value is None:
        return None

    if isinstance(value, bool):
        raise NumericParseError(field_name, value, "must be a number, not a boolean")

    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.replace("$", "").replace(",", "").strip()
        if not cleaned:
            raise NumericParseError(field_name, value, "cannot be empty")
        try:
            number = float(Decimal(cleaned))
        except InvalidOperation as e:
            raise NumericParseError(field_name, value, "must be a valid number") from e
    else:
        raise NumericParseError(field_name, value, "must be a string or number")

    if not math.isfinite(number):
        raise NumericParseError(field_name, value, "must be a finite number")

    return number


def _coerce_numeric(value: Any) -> Any:
    return parse_numeric(value, "numeric field")


# Pydantic field type: accepts numbers or numeric strings, raises
# NumericParseError for anything else.
Numeric = Annotated[float, BeforeValidator(_coerce_numeric)]
OptionalNumeric = Annotated[float | None, BeforeValidator(_coerce_numeric)]


def safe_divide(
    numerator: float | Unavailable | None,
    denominator: float | Unavailable | None,
) -> float | Unavailable:
    """
    Divide, or return NOT_AVAILABLE.

    Every ratio in the package goes through here. Missing inputs, a zero
    denominator and non-finite results all yield NOT_AVAILABLE.
    """
    if not is_available(numerator) or not is_available(denominator):
        return NOT_AVAILABLE
    if denominator == 0:
        return NOT_AVAILABLE
    result = numerator / denominator
    if not math.isfinite(result):
        return NOT_AVAILABLE
    return result


def percentage(
    part: float | Unavailable | None,
    whole: float | Unavailable | None,
) -> float | Unavailable:
    """part / whole * 100, or NOT_AVAILABLE."""
    if not is_available(part):
        return NOT_AVAILABLE
    # Scale first so whole-number inputs give exact percentages
    return safe_divide(part * 100, whole)


def round_to(value: float, places: int = 2) -> float:
    """Round half away from zero, as the reporting screens do."""
    factor = 10**places
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value) if rounded else 0.0
