"""
Press run completion.

Turns the fruit loads of a finished press run and the juice produced
into planned batches, one per receiving vessel, with composition and
cost carried over in proportion to each load's share.
"""

import logging
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from cidery_common.exceptions import PressValidationError
from cidery_common.metrics import extraction_rate_percent
from cidery_common.models import Batch, BatchStatus, Composition
from cidery_common.numeric import Unavailable

logger = logging.getLogger(__name__)

# 1 mL slack on volume checks
VOLUME_TOLERANCE_L = 0.001


class AllocationMode(str, Enum):
    """How juice is attributed back to fruit loads."""

    WEIGHT = "weight"
    SUGAR = "sugar"


class FruitLoad(BaseModel):
    """One load of fruit pressed in the run."""

    model_config = ConfigDict(frozen=True)

    purchase_item_id: str
    variety_name: str
    vendor_name: str | None = None
    weight_kg: float = Field(..., gt=0)
    unit_cost: float = Field(default=0.0, ge=0)
    brix: float | None = Field(default=None, ge=0)


class VesselAssignment(BaseModel):
    """Juice sent to one vessel."""

    model_config = ConfigDict(frozen=True)

    vessel_id: str
    volume_l: float
    capacity_l: float | None = None


class PressRunCompletion(BaseModel):
    """Result of completing a press run."""

    model_config = ConfigDict(frozen=True)

    press_run_id: str
    total_weight_kg: float
    juice_volume_l: float
    extraction_rate_percent: float | Unavailable
    unassigned_volume_l: float
    allocation_fractions: dict[str, float]
    batches: list[Batch]


def allocation_fractions(
    loads: list[FruitLoad],
    mode: AllocationMode = AllocationMode.WEIGHT,
) -> dict[str, float]:
    """
    Share of the juice attributed to each load.

    By weight, each load's share is its weight over the total. By sugar,
    it is weight × brix over the total sugar weight.

    Raises:
        PressValidationError: If two loads share a purchase item id, or
            the total weight or sugar is zero
    """
    item_ids = [load.purchase_item_id for load in loads]
    duplicates = sorted({item_id for item_id in item_ids if item_ids.count(item_id) > 1})
    if duplicates:
        raise PressValidationError(f"Duplicate fruit loads for purchase items: {duplicates}")

    if mode == AllocationMode.WEIGHT:
        weights = {load.purchase_item_id: load.weight_kg for load in loads}
    else:
        weights = {
            load.purchase_item_id: load.weight_kg * (load.brix or 0.0) / 100
            for load in loads
        }

    total = sum(weights.values())
    if total <= 0:
        raise PressValidationError(
            f"Total {'input weight' if mode == AllocationMode.WEIGHT else 'sugar weight'} "
            "must be greater than zero"
        )
    return {item_id: weight / total for item_id, weight in weights.items()}


def _validate_assignments(
    juice_volume_l: float,
    assignments: list[VesselAssignment],
) -> None:
    if not assignments:
        raise PressValidationError("At least one vessel assignment is required")

    total_assigned = 0.0
    for assignment in assignments:
        if assignment.volume_l <= 0:
            raise PressValidationError(
                f"Invalid volume assignment: {assignment.volume_l}L"
            )
        if (
            assignment.capacity_l is not None
            and assignment.volume_l > assignment.capacity_l + VOLUME_TOLERANCE_L
        ):
            raise PressValidationError(
                f"Assignment volume ({assignment.volume_l}L) exceeds vessel capacity "
                f"({assignment.capacity_l}L) for vessel {assignment.vessel_id}"
            )
        total_assigned += assignment.volume_l

    if total_assigned > juice_volume_l + VOLUME_TOLERANCE_L:
        raise PressValidationError(
            f"Total assigned volume ({total_assigned}L) exceeds available juice "
            f"({juice_volume_l}L)"
        )


def complete_press_run(
    press_run_id: str,
    loads: list[FruitLoad],
    juice_volume_l: float,
    assignments: list[VesselAssignment],
    mode: AllocationMode = AllocationMode.WEIGHT,
    completed_at: datetime | None = None,
) -> PressRunCompletion:
    """
    Complete a press run and plan the batches it fills.

    Each assignment becomes a planned batch whose compositions are the
    press loads scaled by the assignment's share of the total juice.

    Args:
        press_run_id: Press run identifier
        loads: Fruit loads pressed
        juice_volume_l: Total juice produced
        assignments: Vessels receiving juice
        mode: Allocate by weight or by sugar content
        completed_at: Completion time, used as batch start date

    Raises:
        PressValidationError: If there are no loads, no juice was produced,
            or assignments are invalid
    """
    if not loads:
        raise PressValidationError(f"No fruit loads recorded for press run {press_run_id}")
    if juice_volume_l <= 0:
        raise PressValidationError("Juice volume must be greater than zero")
    _validate_assignments(juice_volume_l, assignments)

    fractions = allocation_fractions(loads, mode)
    total_weight = sum(load.weight_kg for load in loads)
    started = completed_at or datetime.now()

    batches = []
    for index, assignment in enumerate(assignments, start=1):
        share_of_run = assignment.volume_l / juice_volume_l
        compositions = [
            Composition(
                variety_name=load.variety_name,
                vendor_name=load.vendor_name,
                weight_kg=load.weight_kg * share_of_run,
                juice_volume_l=assignment.volume_l * fractions[load.purchase_item_id],
                fraction=fractions[load.purchase_item_id],
                cost=load.weight_kg * share_of_run * load.unit_cost,
            )
            for load in loads
        ]
        batches.append(
            Batch(
                id=f"{press_run_id}-{index}",
                name=f"{started:%Y-%m-%d} {assignment.vessel_id}",
                status=BatchStatus.PLANNED,
                start_date=started,
                vessel_id=assignment.vessel_id,
                compositions=compositions,
                metadata={"origin_press_run_id": press_run_id},
            )
        )

    unassigned = max(0.0, juice_volume_l - sum(a.volume_l for a in assignments))
    logger.info(
        "Press run %s completed: %d batch(es), %.1fL unassigned",
        press_run_id,
        len(batches),
        unassigned,
    )

    return PressRunCompletion(
        press_run_id=press_run_id,
        total_weight_kg=total_weight,
        juice_volume_l=juice_volume_l,
        extraction_rate_percent=extraction_rate_percent(juice_volume_l, total_weight),
        unassigned_volume_l=unassigned,
        allocation_fractions=fractions,
        batches=batches,
    )
