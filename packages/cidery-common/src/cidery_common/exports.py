"""
CSV exports for batches, packaging runs and consolidated inventory.

Unavailable metrics are written as "n/a"; absent values as empty cells.
"""

import csv
import io
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from cidery_common.metrics import compute_batch_metrics, compute_packaging_metrics
from cidery_common.models import Batch, ConsolidatedInventoryRow, PackagingRun
from cidery_common.numeric import NOT_AVAILABLE, round_to

BATCH_COLUMNS = [
    "BatchId",
    "BatchName",
    "Status",
    "StartDate",
    "EndDate",
    "DaysActive",
    "TotalWeightKg",
    "TotalVolumeL",
    "ExtractionRatePercent",
    "LatestSG",
    "LatestABV",
]

PACKAGING_COLUMNS = [
    "RunId",
    "BatchId",
    "PackageDate",
    "PackageType",
    "PackageSizeMl",
    "UnitsProduced",
    "VolumeTakenL",
    "LossL",
    "LossPercent",
    "LossSeverity",
    "CostPerUnit",
]

INVENTORY_COLUMNS = [
    "Material",
    "Vendor",
    "Unit",
    "TotalQuantity",
    "TotalCost",
    "AverageCost",
    "PurchaseCount",
]


def _cell(value: Any, places: int | None = None) -> Any:
    if value is None:
        return ""
    if value is NOT_AVAILABLE:
        return NOT_AVAILABLE.value
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if places is not None and isinstance(value, float):
        return round_to(value, places)
    return value


def _write(header: list[str], rows: Iterable[list[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def export_batches_csv(batches: Iterable[Batch], now: datetime | None = None) -> str:
    """One row per batch with its derived metrics."""
    rows = []
    for batch in batches:
        metrics = compute_batch_metrics(batch, now=now)
        latest = metrics.latest_measurement
        rows.append([
            batch.id,
            batch.name,
            _cell(batch.status),
            _cell(batch.start_date),
            _cell(batch.end_date),
            metrics.days_active,
            _cell(metrics.total_weight_kg, 2),
            _cell(metrics.total_volume_l, 2),
            _cell(metrics.extraction_rate_percent, 2),
            _cell(latest.specific_gravity if latest else None),
            _cell(latest.abv if latest else None),
        ])
    return _write(BATCH_COLUMNS, rows)


def export_packaging_runs_csv(runs: Iterable[PackagingRun]) -> str:
    """One row per packaging run with loss and unit cost."""
    rows = []
    for run in runs:
        metrics = compute_packaging_metrics(run)
        rows.append([
            run.id,
            run.batch_id,
            _cell(run.package_date),
            _cell(run.package_type),
            _cell(run.package_size_ml),
            run.units_produced,
            _cell(run.volume_taken_l, 2),
            _cell(run.loss_l, 2),
            _cell(metrics.loss_percentage, 2),
            _cell(metrics.loss_severity),
            _cell(metrics.cost_per_unit, 2),
        ])
    return _write(PACKAGING_COLUMNS, rows)


def export_inventory_csv(rows: Iterable[ConsolidatedInventoryRow]) -> str:
    """One line per consolidated inventory row."""
    return _write(
        INVENTORY_COLUMNS,
        (
            [
                row.material_key,
                _cell(row.vendor_name),
                row.unit,
                _cell(row.total_quantity, 3),
                _cell(row.total_cost, 2),
                _cell(row.average_cost, 4),
                row.purchase_count,
            ]
            for row in rows
        ),
    )
