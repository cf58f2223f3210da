"""
Cost of goods sold calculations.

Costs flow from fruit purchases through pressing into batches and on to
packaged units. Domain errors (negative costs, impossible volumes) raise
ValidationError; report helpers that only lack a denominator return
NOT_AVAILABLE.
"""

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from cidery_common.exceptions import NotFoundError, ValidationError
from cidery_common.numeric import (
    NOT_AVAILABLE,
    Unavailable,
    round_to,
    safe_divide,
)


class CogsPerformance(str, Enum):
    """Actual cost compared with budget."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    ON_TARGET = "On Target"
    OVER_BUDGET = "Over Budget"
    SIGNIFICANTLY_OVER_BUDGET = "Significantly Over Budget"


class FruitPurchaseLine(BaseModel):
    """A purchased fruit line as used for costing."""

    model_config = ConfigDict(frozen=True)

    id: str
    quantity_kg: float | None = Field(default=None, ge=0)
    price_per_kg: float | None = Field(default=None, ge=0)
    total_cost: float | None = Field(default=None, ge=0)


class PressRunUsage(BaseModel):
    """Fruit drawn from one purchase line in a press run."""

    model_config = ConfigDict(frozen=True)

    purchase_item_id: str
    quantity_used_kg: float = Field(..., ge=0)
    juice_produced_l: float = Field(default=0.0, ge=0)


class AppleCostLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    purchase_item_id: str
    quantity_used_kg: float
    unit_cost: float
    total_cost: float
    is_free: bool


class AppleCostBreakdown(BaseModel):
    """Fruit cost of a press run split into free and paid fruit."""

    model_config = ConfigDict(frozen=True)

    total_cost: float
    average_cost_per_kg: float | Unavailable
    free_apple_kg: float
    paid_apple_kg: float
    breakdown: list[AppleCostLine]


def cost_per_litre(total_cogs: float, final_volume_l: float) -> float | Unavailable:
    """COGS per litre of finished product, 4 decimal places."""
    if total_cogs < 0:
        raise ValidationError("Total COGS must be non-negative")
    result = safe_divide(total_cogs, final_volume_l)
    return NOT_AVAILABLE if result is NOT_AVAILABLE else round_to(result, 4)


def cost_per_bottle(total_cogs: float, bottle_count: int) -> float | Unavailable:
    """COGS per bottle, 2 decimal places."""
    if total_cogs < 0:
        raise ValidationError("Total COGS must be non-negative")
    result = safe_divide(total_cogs, bottle_count)
    return NOT_AVAILABLE if result is NOT_AVAILABLE else round_to(result, 2)


def gross_margin(selling_price: float, unit_cost: float) -> float:
    """
    Gross margin percentage. Negative when selling below cost.

    Raises:
        ValidationError: If the price is not positive or cost is negative
    """
    if selling_price <= 0:
        raise ValidationError("Selling price must be positive")
    if unit_cost < 0:
        raise ValidationError("COGS cost must be non-negative")
    return round_to((selling_price - unit_cost) / selling_price * 100, 2)


def markup(selling_price: float, unit_cost: float) -> float:
    """Markup percentage over cost."""
    if selling_price <= 0:
        raise ValidationError("Selling price must be positive")
    if unit_cost <= 0:
        raise ValidationError("COGS cost must be positive for markup calculation")
    return round_to((selling_price - unit_cost) / unit_cost * 100, 2)


def allocate_shared_costs(
    shared_cost: float,
    batch_volumes: dict[str, float],
) -> dict[str, float]:
    """
    Split a shared cost (overhead, labour) across batches by volume.

    Args:
        shared_cost: Amount to allocate
        batch_volumes: Batch id -> volume in litres

    Returns:
        Batch id -> allocated cost, 2 decimal places

    Raises:
        ValidationError: If the cost is negative, no batches are given or a
            volume is not positive
    """
    if shared_cost < 0:
        raise ValidationError("Shared cost must be non-negative")
    if not batch_volumes:
        raise ValidationError("At least one batch is required for cost allocation")
    for batch_id, volume in batch_volumes.items():
        if volume <= 0:
            raise ValidationError(f"Batch {batch_id} volume must be positive")

    total_volume = sum(batch_volumes.values())
    return {
        batch_id: round_to(shared_cost * volume / total_volume, 2)
        for batch_id, volume in batch_volumes.items()
    }


def yield_variance_cost_impact(
    expected_yield: float,
    actual_yield: float,
    base_cost_per_l: float,
) -> float:
    """Cost per litre adjusted for a yield above or below expectation."""
    if expected_yield <= 0 or actual_yield <= 0:
        raise ValidationError("Yield values must be positive")
    if base_cost_per_l < 0:
        raise ValidationError("Base cost per liter must be non-negative")
    return round_to(base_cost_per_l * expected_yield / actual_yield, 4)


def cogs_performance_category(actual_cogs: float, budgeted_cogs: float) -> CogsPerformance:
    """Qualitative band for actual cost against budget."""
    if actual_cogs < 0 or budgeted_cogs <= 0:
        raise ValidationError("COGS values must be positive")

    variance = (actual_cogs - budgeted_cogs) / budgeted_cogs * 100
    if variance <= -10:
        return CogsPerformance.EXCELLENT
    if variance <= -5:
        return CogsPerformance.GOOD
    if variance <= 5:
        return CogsPerformance.ON_TARGET
    if variance <= 15:
        return CogsPerformance.OVER_BUDGET
    return CogsPerformance.SIGNIFICANTLY_OVER_BUDGET


def inventory_value(units_on_hand: int, cost_per_unit: float) -> float:
    """Value of stock on hand at the latest unit cost."""
    if units_on_hand < 0:
        raise ValidationError("Inventory units must be non-negative")
    if cost_per_unit < 0:
        raise ValidationError("Cost per unit must be non-negative")
    return round_to(units_on_hand * cost_per_unit, 2)


def weighted_average_cost_per_kg(lines: Iterable[FruitPurchaseLine]) -> float | Unavailable:
    """
    Average fruit cost per kg across purchase lines.

    Lines without a weight are ignored; lines without a cost are free.
    """
    total_cost = 0.0
    total_weight = 0.0
    for line in lines:
        weight = line.quantity_kg or 0.0
        if weight > 0:
            total_cost += line.total_cost or 0.0
            total_weight += weight

    result = safe_divide(total_cost, total_weight)
    return NOT_AVAILABLE if result is NOT_AVAILABLE else round_to(result, 4)


def apple_cost_from_purchases(
    usages: Iterable[PressRunUsage],
    purchase_lines: Iterable[FruitPurchaseLine],
) -> AppleCostBreakdown:
    """
    Fruit cost for a press run from the purchase lines it drew on.

    Raises:
        NotFoundError: If a usage references an unknown purchase line
    """
    by_id = {line.id: line for line in purchase_lines}
    total_cost = 0.0
    free_kg = 0.0
    paid_kg = 0.0
    breakdown: list[AppleCostLine] = []

    for usage in usages:
        line = by_id.get(usage.purchase_item_id)
        if line is None:
            raise NotFoundError(f"Purchase item {usage.purchase_item_id} not found")

        unit_cost = line.price_per_kg or 0.0
        is_free = unit_cost == 0
        item_cost = usage.quantity_used_kg * unit_cost
        if is_free:
            free_kg += usage.quantity_used_kg
        else:
            paid_kg += usage.quantity_used_kg
        total_cost += item_cost

        breakdown.append(
            AppleCostLine(
                purchase_item_id=usage.purchase_item_id,
                quantity_used_kg=usage.quantity_used_kg,
                unit_cost=unit_cost,
                total_cost=round_to(item_cost, 2),
                is_free=is_free,
            )
        )

    average = safe_divide(total_cost, free_kg + paid_kg)
    return AppleCostBreakdown(
        total_cost=round_to(total_cost, 2),
        average_cost_per_kg=average if average is NOT_AVAILABLE else round_to(average, 4),
        free_apple_kg=free_kg,
        paid_apple_kg=paid_kg,
        breakdown=breakdown,
    )
