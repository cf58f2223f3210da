"""
Derived batch and packaging metrics.

Pure functions turning raw volumes, weights and costs into the figures
shown on batch, packaging and inventory screens. None of them raise on
missing or zero inputs; they return NOT_AVAILABLE instead.
"""

import logging
import math
from collections.abc import Iterable
from datetime import date, datetime
from typing import Protocol

from cidery_common.models import (
    Batch,
    BatchMetrics,
    LossSeverity,
    Measurement,
    PackagingMetrics,
    PackagingRun,
)
from cidery_common.numeric import (
    NOT_AVAILABLE,
    Unavailable,
    is_available,
    percentage,
    safe_divide,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400

# Loss bands, upper bounds inclusive
LOSS_GOOD_MAX_PERCENT = 2.0
LOSS_WARNING_MAX_PERCENT = 5.0


class PricedQuantity(Protocol):
    """Anything with a quantity and a unit price."""

    quantity: float
    unit_price: float | None


def _as_datetime(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def days_active(
    start_date: datetime | date,
    end_date: datetime | date | None = None,
    now: datetime | None = None,
) -> int:
    """
    Whole days a batch has been (or was) active.

    Args:
        start_date: Batch start
        end_date: Batch end, None while still active
        now: Reference time used when end_date is None (defaults to now)

    Returns:
        floor(end - start) in days, clamped to 0

    Example:
        >>> days_active(date(2024, 1, 1), now=datetime(2024, 1, 13))
        12
    """
    start = _as_datetime(start_date)
    if end_date is not None:
        end = _as_datetime(end_date)
    elif now is not None:
        end = now
    else:
        end = datetime.now(tz=start.tzinfo)

    # Mixed naive/aware inputs compare on wall-clock time
    if (start.tzinfo is None) != (end.tzinfo is None):
        start = start.replace(tzinfo=None)
        end = end.replace(tzinfo=None)

    elapsed = (end - start).total_seconds()
    if elapsed <= 0:
        return 0
    return math.floor(elapsed / SECONDS_PER_DAY)


def extraction_rate_percent(
    juice_volume_l: float | None,
    apple_weight_kg: float | None,
) -> float | Unavailable:
    """
    Juice yielded per kilogram of pressed fruit, as a percentage.

    Returns NOT_AVAILABLE when the weight is zero or either input is missing.
    """
    return percentage(juice_volume_l, apple_weight_kg)


def loss_percentage(
    loss_l: float | None,
    volume_taken_l: float | None,
) -> float | Unavailable:
    """Packaging loss as a percentage of the volume drawn from the batch."""
    return percentage(loss_l, volume_taken_l)


def loss_severity(loss_percent: float | Unavailable | None) -> LossSeverity | Unavailable:
    """
    Display band for a loss percentage.

    ≤2% is good, above 2% up to and including 5% is a warning, above 5% is bad.
    """
    if not is_available(loss_percent):
        return NOT_AVAILABLE
    if loss_percent <= LOSS_GOOD_MAX_PERCENT:
        return LossSeverity.GOOD
    if loss_percent <= LOSS_WARNING_MAX_PERCENT:
        return LossSeverity.WARNING
    return LossSeverity.BAD


def cost_per_unit(
    total_cost: float | None,
    units_produced: float | None,
) -> float | Unavailable:
    """Total cost spread over units produced."""
    return safe_divide(total_cost, units_produced)


def weighted_average_cost(purchases: Iterable[PricedQuantity]) -> float | Unavailable:
    """
    Σ(quantity × unit_price) / Σquantity.

    Purchases without a unit price count as free. An empty list or zero
    total quantity gives NOT_AVAILABLE.
    """
    total_cost = 0.0
    total_quantity = 0.0
    for purchase in purchases:
        total_cost += purchase.quantity * (purchase.unit_price or 0.0)
        total_quantity += purchase.quantity
    return safe_divide(total_cost, total_quantity)


def latest_measurement(measurements: Iterable[Measurement]) -> Measurement | None:
    """The measurement with the greatest measurement_date, if any."""
    return max(measurements, key=lambda m: m.measurement_date, default=None)


def compute_batch_metrics(batch: Batch, now: datetime | None = None) -> BatchMetrics:
    """
    Derive the batch summary figures.

    Args:
        batch: The batch to summarise
        now: Reference time for still-active batches

    Returns:
        BatchMetrics with days active, latest measurement, totals and
        extraction rate
    """
    total_weight_kg = sum(c.weight_kg for c in batch.compositions)
    total_volume_l = sum(c.juice_volume_l for c in batch.compositions)

    fraction_total = batch.composition_fraction_total
    if fraction_total is not None and abs(fraction_total - 1.0) > 0.01:
        logger.debug(
            "Batch %s composition fractions sum to %.3f", batch.id, fraction_total
        )

    return BatchMetrics(
        days_active=days_active(batch.start_date, batch.end_date, now=now),
        latest_measurement=latest_measurement(batch.measurements),
        total_weight_kg=total_weight_kg,
        total_volume_l=total_volume_l,
        extraction_rate_percent=extraction_rate_percent(total_volume_l, total_weight_kg),
    )


def compute_packaging_metrics(run: PackagingRun) -> PackagingMetrics:
    """Derive loss, severity, packaged volume and unit cost for a run."""
    loss_pct = loss_percentage(run.loss_l, run.volume_taken_l)
    return PackagingMetrics(
        volume_taken_l=run.volume_taken_l,
        loss_l=run.loss_l,
        loss_percentage=loss_pct,
        loss_severity=loss_severity(loss_pct),
        units_produced=run.units_produced,
        packaged_volume_l=run.units_produced * run.package_size_ml / 1000,
        cost_per_unit=cost_per_unit(run.total_cost, run.units_produced),
    )
