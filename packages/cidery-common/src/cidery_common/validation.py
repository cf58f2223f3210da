"""
Packaging validation guards.

Ensures a packaging run never draws more than the batch has left and
that its counts, sizes and QA readings are plausible.
"""

import re
from datetime import datetime

from cidery_common.exceptions import PackagingValidationError
from cidery_common.models import Batch, BatchStatus, PackagingRun
from cidery_common.units import VOLUME_TO_LITRES, VolumeUnit

PACKAGEABLE_STATUSES = frozenset(
    {BatchStatus.CONDITIONING, BatchStatus.AGING, BatchStatus.COMPLETED}
)

MAX_PACKAGING_ABV = 20.0

# Unit count × size may differ from the recorded volume by 50 mL
FILL_TOLERANCE_L = 0.05

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z ]*)\s*$")


def parse_package_size(size: str) -> float:
    """
    Parse a package size label into litres.

    Accepts "750ml", "500 mL", "1L", "12oz", "16 fl oz". A bare number is
    taken as millilitres.

    Raises:
        PackagingValidationError: If the label cannot be read
    """
    match = _SIZE_PATTERN.match(size)
    if not match:
        raise PackagingValidationError(
            f"Invalid package size format: {size}",
            f'Package size "{size}" is not in a valid format. '
            'Please use a format like "750ml", "500mL" or "12oz".',
            {"package_size": size},
        )

    amount = float(match.group(1))
    unit = match.group(2).strip().lower().replace(" ", "")
    if unit in ("", "ml"):
        return amount * VOLUME_TO_LITRES[VolumeUnit.ML]
    if unit == "l":
        return amount
    if unit in ("oz", "floz"):
        return amount * VOLUME_TO_LITRES[VolumeUnit.FL_OZ]

    raise PackagingValidationError(
        f"Unknown package size unit: {size}",
        f'Package size "{size}" uses an unknown unit. Use mL, L or oz.',
        {"package_size": size},
    )


def validate_batch_ready(batch: Batch, available_volume_l: float) -> None:
    """Batch must be in a packageable status and hold some liquid."""
    if batch.status not in PACKAGEABLE_STATUSES:
        raise PackagingValidationError(
            f"Batch {batch.name} is not ready for packaging",
            f'Batch "{batch.name}" must be conditioning, aging or completed to be '
            f"packaged. Current status: {batch.status.value}",
            {"batch_id": batch.id, "status": batch.status.value},
        )
    if available_volume_l <= 0:
        raise PackagingValidationError(
            f"Batch {batch.name} has no volume available",
            f'Batch "{batch.name}" has no volume available for packaging '
            f"({available_volume_l}L).",
            {"batch_id": batch.id, "current_volume_l": available_volume_l},
        )


def validate_packaging_date(package_date: datetime, now: datetime | None = None) -> None:
    """Packaging cannot be dated in the future."""
    now = now or datetime.now(tz=package_date.tzinfo)
    if package_date > now:
        raise PackagingValidationError(
            f"Packaging date cannot be in the future: {package_date.isoformat()}",
            "Packaging date cannot be in the future. Please select today's date "
            "or an earlier date.",
            {"package_date": package_date.isoformat(), "current_date": now.isoformat()},
        )


def validate_packaging_volume(
    batch: Batch,
    run: PackagingRun,
    available_volume_l: float,
    previously_packaged_l: float = 0.0,
) -> None:
    """Volume taken must be positive and within what the batch has left."""
    if run.volume_taken_l <= 0:
        raise PackagingValidationError(
            f"Packaging volume must be positive: {run.volume_taken_l}L",
            "Packaging volume must be greater than zero.",
            {"batch_id": batch.id, "volume_taken_l": run.volume_taken_l},
        )

    remaining = available_volume_l - previously_packaged_l
    if run.volume_taken_l > remaining + 1e-9:
        raise PackagingValidationError(
            f"Packaging volume {run.volume_taken_l}L exceeds remaining batch volume "
            f"{remaining}L",
            f'Cannot package {run.volume_taken_l}L from batch "{batch.name}". Only '
            f"{remaining}L remains available (batch volume: {available_volume_l}L, "
            f"previously packaged: {previously_packaged_l}L).",
            {
                "batch_id": batch.id,
                "batch_volume_l": available_volume_l,
                "previously_packaged_l": previously_packaged_l,
                "remaining_volume_l": remaining,
                "requested_volume_l": run.volume_taken_l,
                "excess_volume_l": run.volume_taken_l - remaining,
            },
        )


def validate_unit_consistency(run: PackagingRun) -> None:
    """
    Units × size must match the volume actually filled.

    Filled volume is volume taken minus loss.
    """
    if run.units_produced <= 0:
        raise PackagingValidationError(
            f"Unit count must be positive: {run.units_produced}",
            "Units produced must be at least 1.",
            {"units_produced": run.units_produced},
        )

    expected_l = run.units_produced * run.package_size_ml / 1000
    filled_l = run.volume_taken_l - run.loss_l
    difference = abs(expected_l - filled_l)
    if difference > FILL_TOLERANCE_L:
        raise PackagingValidationError(
            f"Volume mismatch: {run.units_produced} × {run.package_size_ml}mL "
            f"!= {filled_l}L",
            f"{run.units_produced} units of {run.package_size_ml:g}mL should hold about "
            f"{expected_l:.2f}L, but {filled_l:.2f}L was filled. Please verify "
            "the count, size, volume and loss.",
            {
                "units_produced": run.units_produced,
                "package_size_ml": run.package_size_ml,
                "expected_volume_l": expected_l,
                "filled_volume_l": filled_l,
                "difference_l": difference,
                "tolerance_l": FILL_TOLERANCE_L,
            },
        )


def validate_packaging_abv(abv: float | None) -> None:
    """ABV at packaging, when recorded, must be 0-20%."""
    if abv is None:
        return
    if abv < 0:
        raise PackagingValidationError(
            f"ABV cannot be negative: {abv}%",
            "ABV at packaging cannot be negative. Please enter a value between 0% "
            "and 20%.",
            {"abv": abv},
        )
    if abv > MAX_PACKAGING_ABV:
        raise PackagingValidationError(
            f"ABV exceeds maximum: {abv}%",
            f"ABV at packaging of {abv}% exceeds the maximum allowed for cider "
            f"({MAX_PACKAGING_ABV:g}%). Please verify your measurement.",
            {"abv": abv, "max_allowed": MAX_PACKAGING_ABV},
        )


def validate_packaging(
    batch: Batch,
    run: PackagingRun,
    available_volume_l: float | None = None,
    previously_packaged_l: float = 0.0,
    now: datetime | None = None,
) -> None:
    """
    Run every packaging check in order, raising on the first failure.

    Args:
        batch: Source batch
        run: Proposed packaging run
        available_volume_l: Batch volume; defaults to the latest measured volume
        previously_packaged_l: Volume already packaged from this batch
        now: Reference time for the date check

    Raises:
        PackagingValidationError: On the first failed rule
    """
    if available_volume_l is None:
        available_volume_l = batch.current_volume_l or 0.0

    validate_batch_ready(batch, available_volume_l)
    validate_packaging_date(run.package_date, now)
    validate_packaging_volume(batch, run, available_volume_l, previously_packaged_l)
    validate_unit_consistency(run)
    validate_packaging_abv(run.abv_at_packaging)
