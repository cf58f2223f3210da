"""
Exception types for cidery-common.

All exceptions inherit from CideryCommonError for easy catching
of any library-related errors.
"""

from typing import Any


class CideryCommonError(Exception):
    """Base exception for all cidery-common errors."""

    pass


class UnitConversionError(CideryCommonError):
    """Raised when a unit conversion fails."""

    pass


class MatchingError(CideryCommonError):
    """Raised when variety or inventory matching fails."""

    pass


class ValidationError(CideryCommonError):
    """Raised when data validation fails."""

    pass


class NumericParseError(ValidationError):
    """
    Raised when a numeric field arrives as something that is not a number.

    Kept distinct from a zero value so callers can tell "0" apart from
    absent or malformed data.
    """

    def __init__(self, field_name: str, value: Any, reason: str):
        self.field_name = field_name
        self.value = value
        super().__init__(f"{field_name} {reason}: {value!r}")


class PackagingValidationError(ValidationError):
    """
    Raised when a packaging run fails a business rule.

    Carries a user-facing message and a details dict alongside the
    technical message.
    """

    def __init__(
        self,
        message: str,
        user_message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.user_message = user_message
        self.details = details or {}


class PressValidationError(ValidationError):
    """Raised when a press run cannot be completed as requested."""

    pass


class InventoryError(CideryCommonError):
    """Raised when an inventory movement would leave stock inconsistent."""

    pass


class ConfigurationError(CideryCommonError):
    """Raised when configuration is invalid or missing."""

    pass


class NotFoundError(CideryCommonError):
    """Raised when a requested record is not found."""

    pass
