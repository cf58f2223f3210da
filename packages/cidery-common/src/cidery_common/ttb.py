"""
TTB Form 5120.17 calculations for hard cider.

Wine gallon conversions, federal excise tax with the small producer
credit, and the inventory reconciliation the form must balance.

See: https://www.ttb.gov/forms/f512017.pdf
"""

import calendar
import logging
from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict

from cidery_common.exceptions import ValidationError
from cidery_common.numeric import round_to
from cidery_common.units import GALLONS_PER_LITRE, LITRES_PER_GALLON

logger = logging.getLogger(__name__)

# Hard cider under 8.5% ABV, per wine gallon
HARD_CIDER_TAX_RATE = 0.226
SMALL_PRODUCER_CREDIT_PER_GALLON = 0.056
SMALL_PRODUCER_CREDIT_LIMIT_GALLONS = 30_000
EFFECTIVE_TAX_RATE = HARD_CIDER_TAX_RATE - SMALL_PRODUCER_CREDIT_PER_GALLON

# Reconciliation tolerance in wine gallons
RECONCILIATION_TOLERANCE_GALLONS = 0.1


class PeriodType(str, Enum):
    """TTB reporting period."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class TaxCalculation(BaseModel):
    """Excise tax breakdown for a quantity of taxable cider."""

    model_config = ConfigDict(frozen=True)

    taxable_gallons: float
    gross_tax: float
    small_producer_credit: float
    credit_eligible_gallons: float
    net_tax_owed: float
    effective_rate: float


class Reconciliation(BaseModel):
    """
    Form balance check.

    Beginning + produced + receipts should equal tax-paid removals +
    other removals + ending inventory.
    """

    model_config = ConfigDict(frozen=True)

    total_available: float
    total_accounted_for: float
    variance: float
    balanced: bool


def litres_to_wine_gallons(litres: float) -> float:
    """Litres to wine gallons; negative volumes count as zero."""
    if litres < 0:
        return 0.0
    return litres * GALLONS_PER_LITRE


def wine_gallons_to_litres(gallons: float) -> float:
    """Wine gallons to litres; negative volumes count as zero."""
    if gallons < 0:
        return 0.0
    return gallons * LITRES_PER_GALLON


def ml_to_wine_gallons(ml: float) -> float:
    return litres_to_wine_gallons(ml / 1000)


def round_gallons(gallons: float) -> float:
    """Round to 3 decimal places, as reported on the form."""
    return round_to(gallons, 3)


def calculate_hard_cider_tax(
    taxable_gallons: float,
    prior_credit_gallons_used: float = 0.0,
) -> TaxCalculation:
    """
    Federal excise tax with the small producer credit.

    The credit applies to the first 30,000 gallons removed in a
    calendar year.

    Args:
        taxable_gallons: Wine gallons removed tax-paid in this period
        prior_credit_gallons_used: Gallons already credited earlier in the year

    Example:
        >>> calculate_hard_cider_tax(1000).net_tax_owed
        170.0
    """
    if taxable_gallons <= 0:
        return TaxCalculation(
            taxable_gallons=0.0,
            gross_tax=0.0,
            small_producer_credit=0.0,
            credit_eligible_gallons=0.0,
            net_tax_owed=0.0,
            effective_rate=0.0,
        )

    gross_tax = taxable_gallons * HARD_CIDER_TAX_RATE
    remaining_credit = max(0.0, SMALL_PRODUCER_CREDIT_LIMIT_GALLONS - prior_credit_gallons_used)
    eligible = min(taxable_gallons, remaining_credit)
    credit = eligible * SMALL_PRODUCER_CREDIT_PER_GALLON
    net_tax = gross_tax - credit

    return TaxCalculation(
        taxable_gallons=taxable_gallons,
        gross_tax=round_to(gross_tax, 2),
        small_producer_credit=round_to(credit, 2),
        credit_eligible_gallons=eligible,
        net_tax_owed=round_to(net_tax, 2),
        effective_rate=round_to(net_tax / taxable_gallons, 4),
    )


def calculate_reconciliation(
    beginning_inventory: float,
    wine_produced: float,
    receipts: float,
    tax_paid_removals: float,
    other_removals: float,
    ending_inventory: float,
) -> Reconciliation:
    """Check that the period's gallons balance; all inputs in wine gallons."""
    total_available = beginning_inventory + wine_produced + receipts
    total_accounted = tax_paid_removals + other_removals + ending_inventory
    variance = round_gallons(total_available - total_accounted)
    balanced = abs(variance) < RECONCILIATION_TOLERANCE_GALLONS

    if not balanced:
        logger.warning("TTB reconciliation out of balance by %.3f gal", variance)

    return Reconciliation(
        total_available=round_gallons(total_available),
        total_accounted_for=round_gallons(total_accounted),
        variance=variance,
        balanced=balanced,
    )


def _check_period(period_type: PeriodType, period_number: int) -> None:
    if period_type == PeriodType.MONTHLY and not 1 <= period_number <= 12:
        raise ValidationError(f"Month must be 1-12, got {period_number}")
    if period_type == PeriodType.QUARTERLY and not 1 <= period_number <= 4:
        raise ValidationError(f"Quarter must be 1-4, got {period_number}")


def period_date_range(
    period_type: PeriodType | str,
    year: int,
    period_number: int = 1,
) -> tuple[date, date]:
    """
    First and last day of a reporting period.

    Args:
        period_type: monthly, quarterly or annual
        year: Calendar year
        period_number: Month (1-12) or quarter (1-4); ignored for annual
    """
    period_type = PeriodType(period_type)
    _check_period(period_type, period_number)

    if period_type == PeriodType.MONTHLY:
        last_day = calendar.monthrange(year, period_number)[1]
        return date(year, period_number, 1), date(year, period_number, last_day)

    if period_type == PeriodType.QUARTERLY:
        start_month = (period_number - 1) * 3 + 1
        end_month = start_month + 2
        last_day = calendar.monthrange(year, end_month)[1]
        return date(year, start_month, 1), date(year, end_month, last_day)

    return date(year, 1, 1), date(year, 12, 31)


def format_period_label(
    period_type: PeriodType | str,
    year: int,
    period_number: int = 1,
) -> str:
    """Human label such as "March 2025", "Q2 2025" or "2025"."""
    period_type = PeriodType(period_type)
    _check_period(period_type, period_number)

    if period_type == PeriodType.MONTHLY:
        return f"{calendar.month_name[period_number]} {year}"
    if period_type == PeriodType.QUARTERLY:
        return f"Q{period_number} {year}"
    return str(year)
