"""
Dashboard and report aggregation.

Rolls batches, packaging runs and inventory rows up into the summary
figures shown on the dashboard and the monthly packaging report.
"""

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, ConfigDict

from cidery_common.fermentation import AlertPriority, alert_priority, analyze_fermentation
from cidery_common.metrics import loss_percentage, loss_severity
from cidery_common.models import (
    Batch,
    BatchStatus,
    ConsolidatedInventoryRow,
    LossSeverity,
    PackageType,
    PackagingRun,
)
from cidery_common.numeric import Unavailable, round_to

# Statuses where liquid is still in a vessel
CELLAR_STATUSES = frozenset(
    {BatchStatus.ACTIVE, BatchStatus.CONDITIONING, BatchStatus.AGING, BatchStatus.COMPLETED}
)


class PackagingSummaryRow(BaseModel):
    """Packaging totals for one month and package type."""

    model_config = ConfigDict(frozen=True)

    month: str
    package_type: PackageType
    run_count: int
    units_produced: int
    volume_taken_l: float
    loss_l: float
    loss_percentage: float | Unavailable
    loss_severity: LossSeverity | Unavailable


class InventoryValuation(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_value: float
    by_material: dict[str, float]
    row_count: int


class FermentationAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    batch_id: str
    batch_name: str
    priority: AlertPriority
    message: str


class DashboardSummary(BaseModel):
    """Headline figures for the dashboard."""

    model_config = ConfigDict(frozen=True)

    status_counts: dict[str, int]
    active_batch_count: int
    cellar_volume_l: float
    packaging_run_count: int
    units_packaged: int
    overall_loss_percentage: float | Unavailable
    inventory_value: float
    fermentation_alerts: list[FermentationAlert]


def batch_status_counts(batches: Iterable[Batch]) -> dict[str, int]:
    """Number of batches in each status, including empty statuses."""
    counts = {status.value: 0 for status in BatchStatus}
    for batch in batches:
        counts[batch.status.value] += 1
    return counts


def packaging_summary(runs: Iterable[PackagingRun]) -> list[PackagingSummaryRow]:
    """
    Group packaging runs by month and package type.

    Returns:
        Rows sorted by month, then package type
    """
    groups: dict[tuple[str, PackageType], list[PackagingRun]] = {}
    for run in runs:
        month = f"{run.package_date:%Y-%m}"
        groups.setdefault((month, run.package_type), []).append(run)

    rows = []
    for (month, package_type), group in sorted(groups.items(), key=lambda g: (g[0][0], g[0][1].value)):
        taken = sum(r.volume_taken_l for r in group)
        loss = sum(r.loss_l for r in group)
        loss_pct = loss_percentage(loss, taken)
        rows.append(
            PackagingSummaryRow(
                month=month,
                package_type=package_type,
                run_count=len(group),
                units_produced=sum(r.units_produced for r in group),
                volume_taken_l=round_to(taken, 2),
                loss_l=round_to(loss, 2),
                loss_percentage=loss_pct if isinstance(loss_pct, Unavailable) else round_to(loss_pct, 2),
                loss_severity=loss_severity(loss_pct),
            )
        )
    return rows


def inventory_valuation(rows: Iterable[ConsolidatedInventoryRow]) -> InventoryValuation:
    """Total cost of purchased materials, per material and overall."""
    by_material: dict[str, float] = {}
    count = 0
    for row in rows:
        by_material[row.material_key] = round_to(
            by_material.get(row.material_key, 0.0) + row.total_cost, 2
        )
        count += 1
    return InventoryValuation(
        total_value=round_to(sum(by_material.values()), 2),
        by_material=by_material,
        row_count=count,
    )


def fermentation_alerts(
    batches: Iterable[Batch],
    now: datetime | None = None,
) -> list[FermentationAlert]:
    """
    Alerts for active batches, highest priority first.

    Original gravity and target final gravity are read from the batch
    metadata keys "original_gravity" and "target_final_gravity".
    """
    order = {AlertPriority.HIGH: 0, AlertPriority.MEDIUM: 1, AlertPriority.LOW: 2}
    alerts = []
    for batch in batches:
        if batch.status != BatchStatus.ACTIVE:
            continue
        progress = analyze_fermentation(
            batch.metadata.get("original_gravity"),
            batch.metadata.get("target_final_gravity"),
            batch.measurements,
            now=now,
        )
        priority = alert_priority(progress)
        if priority is None:
            continue
        alerts.append(
            FermentationAlert(
                batch_id=batch.id,
                batch_name=batch.name,
                priority=priority,
                message=progress.recommended_action,
            )
        )
    return sorted(alerts, key=lambda a: (order[a.priority], a.batch_name))


def dashboard_summary(
    batches: list[Batch],
    runs: list[PackagingRun],
    inventory_rows: list[ConsolidatedInventoryRow],
    now: datetime | None = None,
) -> DashboardSummary:
    """Build the dashboard headline figures."""
    counts = batch_status_counts(batches)
    cellar_volume = sum(
        b.current_volume_l or 0.0 for b in batches if b.status in CELLAR_STATUSES
    )
    overall_loss = loss_percentage(
        sum(r.loss_l for r in runs), sum(r.volume_taken_l for r in runs)
    )

    return DashboardSummary(
        status_counts=counts,
        active_batch_count=counts[BatchStatus.ACTIVE.value],
        cellar_volume_l=round_to(cellar_volume, 2),
        packaging_run_count=len(runs),
        units_packaged=sum(r.units_produced for r in runs),
        overall_loss_percentage=(
            overall_loss if isinstance(overall_loss, Unavailable) else round_to(overall_loss, 2)
        ),
        inventory_value=inventory_valuation(inventory_rows).total_value,
        fermentation_alerts=fermentation_alerts(batches, now=now),
    )
