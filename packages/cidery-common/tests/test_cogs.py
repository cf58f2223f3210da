"""
Tests for cost of goods sold calculations.
"""

import pytest
from cidery_common.cogs import (
    CogsPerformance,
    FruitPurchaseLine,
    PressRunUsage,
    allocate_shared_costs,
    apple_cost_from_purchases,
    cogs_performance_category,
    cost_per_bottle,
    cost_per_litre,
    gross_margin,
    inventory_value,
    markup,
    weighted_average_cost_per_kg,
    yield_variance_cost_impact,
)
from cidery_common.exceptions import NotFoundError, ValidationError
from cidery_common.numeric import NOT_AVAILABLE


class TestUnitCosts:
    """Tests for per-litre and per-bottle cost."""

    def test_cost_per_litre(self):
        assert cost_per_litre(100.0, 40.0) == 2.5

    def test_cost_per_litre_zero_volume(self):
        assert cost_per_litre(100.0, 0.0) is NOT_AVAILABLE

    def test_cost_per_bottle(self):
        assert cost_per_bottle(50.0, 20) == 2.5

    def test_negative_cost(self):
        with pytest.raises(ValidationError):
            cost_per_bottle(-1.0, 20)


class TestMargins:
    """Tests for margin and markup."""

    def test_gross_margin(self):
        assert gross_margin(10.0, 4.0) == 60.0

    def test_selling_below_cost(self):
        assert gross_margin(4.0, 5.0) == -25.0

    def test_markup(self):
        assert markup(10.0, 4.0) == 150.0

    def test_markup_needs_cost(self):
        with pytest.raises(ValidationError):
            markup(10.0, 0.0)


class TestAllocation:
    """Tests for shared cost allocation."""

    def test_by_volume(self):
        assert allocate_shared_costs(300.0, {"a": 100.0, "b": 200.0}) == {"a": 100.0, "b": 200.0}

    def test_no_batches(self):
        with pytest.raises(ValidationError, match="At least one batch"):
            allocate_shared_costs(300.0, {})

    def test_zero_volume_batch(self):
        with pytest.raises(ValidationError, match="volume must be positive"):
            allocate_shared_costs(300.0, {"a": 0.0})

    def test_yield_variance(self):
        assert yield_variance_cost_impact(100.0, 80.0, 2.0) == 2.5


class TestPerformance:
    """Tests for budget performance bands."""

    @pytest.mark.parametrize(
        "actual,category",
        [
            (85.0, CogsPerformance.EXCELLENT),
            (93.0, CogsPerformance.GOOD),
            (100.0, CogsPerformance.ON_TARGET),
            (110.0, CogsPerformance.OVER_BUDGET),
            (120.0, CogsPerformance.SIGNIFICANTLY_OVER_BUDGET),
        ],
    )
    def test_bands(self, actual, category):
        assert cogs_performance_category(actual, 100.0) == category

    def test_inventory_value(self):
        assert inventory_value(24, 2.155) == 51.72


class TestAppleCost:
    """Tests for fruit cost from purchase lines."""

    @pytest.fixture
    def lines(self):
        return [
            FruitPurchaseLine(id="L1", quantity_kg=500, price_per_kg=0.5, total_cost=250),
            FruitPurchaseLine(id="L2", quantity_kg=200),
        ]

    def test_weighted_average_per_kg(self, lines):
        assert weighted_average_cost_per_kg(lines) == pytest.approx(250 / 700, abs=1e-4)

    def test_weighted_average_no_lines(self):
        assert weighted_average_cost_per_kg([]) is NOT_AVAILABLE

    def test_free_and_paid(self, lines):
        breakdown = apple_cost_from_purchases(
            [
                PressRunUsage(purchase_item_id="L1", quantity_used_kg=100),
                PressRunUsage(purchase_item_id="L2", quantity_used_kg=50),
            ],
            lines,
        )
        assert breakdown.total_cost == 50.0
        assert breakdown.paid_apple_kg == 100
        assert breakdown.free_apple_kg == 50
        assert breakdown.average_cost_per_kg == pytest.approx(0.3333, abs=1e-4)
        assert [line.is_free for line in breakdown.breakdown] == [False, True]

    def test_unknown_purchase_line(self, lines):
        with pytest.raises(NotFoundError):
            apple_cost_from_purchases([PressRunUsage(purchase_item_id="L9", quantity_used_kg=1)], lines)
