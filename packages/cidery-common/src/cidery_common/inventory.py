"""
Inventory view-models and finished goods stock movements.

Raw-material purchases are consolidated into one row per material for
display. Finished goods stock is created from a packaging run and then
only moved by distributions and adjustments.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from cidery_common.exceptions import InventoryError, ValidationError
from cidery_common.metrics import weighted_average_cost
from cidery_common.models import (
    ConsolidatedInventoryRow,
    FinishedGoodsItem,
    InventoryMovement,
    MovementKind,
    PackagingRun,
    PurchaseDetail,
)

logger = logging.getLogger(__name__)

GroupKey = Callable[[PurchaseDetail], tuple[str, str | None]]


def by_material(purchase: PurchaseDetail) -> tuple[str, str | None]:
    """Group purchases by material name only."""
    return (purchase.material_key.strip().lower(), None)


def by_material_and_vendor(purchase: PurchaseDetail) -> tuple[str, str | None]:
    """Group purchases by material name and vendor."""
    return (purchase.material_key.strip().lower(), purchase.vendor_name)


def compute_inventory_consolidation(
    purchases: list[PurchaseDetail],
    vendor_name: str | None = None,
) -> ConsolidatedInventoryRow:
    """
    Fold purchases that share a material key into one display row.

    Args:
        purchases: Purchase records for the same material
        vendor_name: Vendor to show on the row, when grouped by vendor

    Returns:
        ConsolidatedInventoryRow with totals, weighted average cost and
        purchase details sorted oldest first

    Raises:
        ValidationError: If purchases is empty or mixes materials or units
    """
    if not purchases:
        raise ValidationError("Cannot consolidate an empty purchase list")

    keys = {p.material_key.strip().lower() for p in purchases}
    if len(keys) > 1:
        raise ValidationError(f"Purchases span several materials: {sorted(keys)}")

    units = {p.unit for p in purchases}
    if len(units) > 1:
        raise ValidationError(
            f"Purchases of {purchases[0].material_key} use mixed units: {sorted(units)}"
        )

    details = sorted(purchases, key=lambda p: (p.purchase_date, p.purchase_id))
    return ConsolidatedInventoryRow(
        material_key=details[0].material_key,
        vendor_name=vendor_name,
        unit=details[0].unit,
        total_quantity=sum(p.quantity for p in details),
        total_cost=sum(p.line_cost for p in details),
        average_cost=weighted_average_cost(details),
        purchase_count=len(details),
        purchase_details=details,
    )


def consolidate_purchases(
    purchases: Iterable[PurchaseDetail],
    key: GroupKey = by_material,
) -> list[ConsolidatedInventoryRow]:
    """
    Group purchases into consolidated inventory rows.

    Records are not modified. Rows come back sorted by material name.

    Args:
        purchases: All purchase records
        key: Grouping function, by material (default) or material and vendor

    Returns:
        One ConsolidatedInventoryRow per group
    """
    groups: dict[tuple[str, str | None], list[PurchaseDetail]] = {}
    for purchase in purchases:
        groups.setdefault(key(purchase), []).append(purchase)

    rows = [
        compute_inventory_consolidation(group, vendor_name=group_key[1])
        for group_key, group in groups.items()
    ]
    logger.debug("Consolidated %d purchase groups", len(rows))
    return sorted(rows, key=lambda r: (r.material_key.lower(), r.vendor_name or ""))


# ==================== Finished goods ====================


def create_finished_goods(
    run: PackagingRun,
    item_id: str | None = None,
) -> FinishedGoodsItem:
    """Create the finished goods record when a packaging run completes."""
    creation = InventoryMovement(
        kind=MovementKind.CREATION,
        quantity_delta=run.units_produced,
        occurred_at=run.package_date,
        reason="Packaging run completed",
    )
    return FinishedGoodsItem(
        id=item_id or f"fg-{run.id}",
        packaging_run_id=run.id,
        initial_quantity=run.units_produced,
        current_quantity=run.units_produced,
        history=[creation],
    )


def _apply(item: FinishedGoodsItem, movement: InventoryMovement) -> FinishedGoodsItem:
    new_quantity = item.current_quantity + movement.quantity_delta
    if new_quantity < 0:
        raise InventoryError(
            f"{movement.kind.value.capitalize()} of {abs(movement.quantity_delta)} "
            f"exceeds on-hand quantity {item.current_quantity} for {item.id}"
        )
    return item.model_copy(
        update={
            "current_quantity": new_quantity,
            "history": [*item.history, movement],
        }
    )


def apply_distribution(
    item: FinishedGoodsItem,
    quantity: int,
    occurred_at: datetime | None = None,
    reason: str | None = None,
) -> FinishedGoodsItem:
    """
    Remove distributed units from stock.

    Raises:
        InventoryError: If quantity is not positive or exceeds stock on hand
    """
    if quantity <= 0:
        raise InventoryError(f"Distribution quantity must be positive, got {quantity}")
    movement = InventoryMovement(
        kind=MovementKind.DISTRIBUTION,
        quantity_delta=-quantity,
        occurred_at=occurred_at or datetime.now(),
        reason=reason,
    )
    return _apply(item, movement)


def apply_adjustment(
    item: FinishedGoodsItem,
    delta: int,
    reason: str,
    occurred_at: datetime | None = None,
) -> FinishedGoodsItem:
    """
    Correct stock up or down, for breakage, recounts and the like.

    Raises:
        InventoryError: If delta is zero, reason is blank, or stock would go
            negative
    """
    if delta == 0:
        raise InventoryError("Adjustment delta cannot be zero")
    if not reason or not reason.strip():
        raise InventoryError("Adjustments require a reason")
    movement = InventoryMovement(
        kind=MovementKind.ADJUSTMENT,
        quantity_delta=delta,
        occurred_at=occurred_at or datetime.now(),
        reason=reason,
    )
    return _apply(item, movement)


def replay_movements(
    item_id: str,
    packaging_run_id: str,
    movements: Iterable[InventoryMovement],
) -> FinishedGoodsItem:
    """
    Rebuild a finished goods record from its movement history.

    Movements are applied in time order. Exactly one creation movement
    must be present and it must come first.

    Raises:
        InventoryError: If the history is inconsistent
    """
    ordered = sorted(movements, key=lambda m: m.occurred_at)
    if not ordered or ordered[0].kind != MovementKind.CREATION:
        raise InventoryError(f"History for {item_id} does not start with a creation")
    if sum(1 for m in ordered if m.kind == MovementKind.CREATION) > 1:
        raise InventoryError(f"History for {item_id} has more than one creation")

    creation = ordered[0]
    item = FinishedGoodsItem(
        id=item_id,
        packaging_run_id=packaging_run_id,
        initial_quantity=creation.quantity_delta,
        current_quantity=creation.quantity_delta,
        history=[creation],
    )
    for movement in ordered[1:]:
        item = _apply(item, movement)
    return item
