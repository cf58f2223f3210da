"""
Fermentation progress and ABV calculations.

Tracks how far a batch has fermented from its specific gravity
readings, flags stalls, confirms terminal gravity and recommends how
often to measure.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict

from cidery_common.exceptions import ValidationError
from cidery_common.models import Measurement, MeasurementMethod
from cidery_common.numeric import round_to

ABV_FACTOR = 131.25
MIN_GRAVITY = 0.980
MAX_GRAVITY = 1.200

DEFAULT_TERMINAL_CONFIRMATION_HOURS = 48

# Typical target FG by cider style
DEFAULT_TARGET_FG_BY_STYLE: dict[str, float] = {
    "dry": 0.998,
    "semi-dry": 1.005,
    "semi-sweet": 1.012,
    "sweet": 1.020,
}


class FermentationStage(str, Enum):
    """Stage of fermentation derived from percent fermented."""

    EARLY = "early"
    MID = "mid"
    APPROACHING_DRY = "approaching_dry"
    TERMINAL = "terminal"
    UNKNOWN = "unknown"


class AlertPriority(str, Enum):
    """Dashboard alert priority."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class StageThresholds:
    """Upper percent-fermented bounds for each stage."""

    early_max: float = 70.0
    mid_max: float = 90.0
    approaching_dry_max: float = 98.0


@dataclass(frozen=True)
class StallSettings:
    """A stall is less than `threshold` SG change over at least `days`."""

    enabled: bool = True
    days: float = 3.0
    threshold: float = 0.001


@dataclass(frozen=True)
class MeasurementFrequency:
    min_days: int
    max_days: int
    description: str


_FREQUENCIES: dict[FermentationStage, MeasurementFrequency] = {
    FermentationStage.EARLY: MeasurementFrequency(
        1, 2, "Active fermentation - measure frequently"
    ),
    FermentationStage.MID: MeasurementFrequency(
        2, 3, "Fermentation slowing - moderate frequency"
    ),
    FermentationStage.APPROACHING_DRY: MeasurementFrequency(
        3, 4, "Nearly complete - reduce frequency"
    ),
    FermentationStage.TERMINAL: MeasurementFrequency(
        7, 14, "Monitoring only - weekly checks"
    ),
    FermentationStage.UNKNOWN: MeasurementFrequency(
        1, 3, "Take initial measurement to establish stage"
    ),
}


class FermentationProgress(BaseModel):
    """Complete fermentation analysis for a batch."""

    model_config = ConfigDict(frozen=True)

    percent_fermented: float
    stage: FermentationStage
    is_stalled: bool
    days_since_last_measurement: int | None
    recommended_action: str
    next_measurement_due: datetime | None
    is_terminal_confirmed: bool


# ==================== ABV ====================


def _check_gravity(value: float, label: str) -> None:
    if value <= 0:
        raise ValidationError("Specific gravity readings must be positive numbers")
    if not MIN_GRAVITY <= value <= MAX_GRAVITY:
        raise ValidationError(
            f"{label} must be between {MIN_GRAVITY:.3f} and {MAX_GRAVITY:.3f}"
        )


def calculate_abv(original_gravity: float, final_gravity: float) -> float:
    """
    ABV from original and final gravity, (OG - FG) × 131.25.

    Returns:
        ABV percentage rounded to 2 decimal places

    Raises:
        ValidationError: On non-positive or out-of-range gravities, or FG > OG

    Example:
        >>> calculate_abv(1.050, 1.000)
        6.56
    """
    if original_gravity <= 0 or final_gravity <= 0:
        raise ValidationError("Specific gravity readings must be positive numbers")
    _check_gravity(original_gravity, "Original gravity")
    _check_gravity(final_gravity, "Final gravity")
    if final_gravity > original_gravity:
        raise ValidationError(
            "Original gravity must be greater than or equal to final gravity"
        )
    return round_to((original_gravity - final_gravity) * ABV_FACTOR, 2)


def calculate_potential_abv(original_gravity: float) -> float:
    """ABV assuming fermentation all the way down to 1.000."""
    _check_gravity(original_gravity, "Original gravity")
    return round_to(max(0.0, original_gravity - 1.0) * ABV_FACTOR, 2)


def brix_to_sg(brix: float) -> float:
    """
    Convert degrees Brix to specific gravity.

    Only accurate for unfermented juice.
    """
    if brix < 0:
        raise ValidationError("Brix must be non-negative")
    return round_to(brix / (258.6 - (brix / 258.2) * 227.1) + 1, 3)


def calculate_attenuation(original_gravity: float, final_gravity: float) -> float:
    """Apparent attenuation percentage."""
    _check_gravity(original_gravity, "Original gravity")
    _check_gravity(final_gravity, "Final gravity")
    if original_gravity <= 1.0:
        raise ValidationError("Original gravity must be above 1.000 for attenuation")
    return round_to(
        (original_gravity - final_gravity) / (original_gravity - 1.0) * 100, 1
    )


# ==================== Progress ====================


def percent_fermented(
    original_gravity: float,
    current_gravity: float,
    target_final_gravity: float,
) -> float:
    """
    Share of the expected gravity drop already achieved.

    Can exceed 100 when gravity drops below the target FG.

    Example:
        >>> percent_fermented(1.050, 1.020, 0.998)
        57.7
    """
    if original_gravity <= 0 or current_gravity <= 0 or target_final_gravity <= 0:
        raise ValidationError("Gravity readings must be positive numbers")
    if original_gravity < current_gravity:
        return 0.0
    if original_gravity <= target_final_gravity:
        return 0.0

    total_drop = original_gravity - target_final_gravity
    actual_drop = original_gravity - current_gravity
    return round_to(actual_drop / total_drop * 100, 1)


def determine_stage(
    percent: float,
    thresholds: StageThresholds = StageThresholds(),
) -> FermentationStage:
    """Map percent fermented to a stage."""
    if percent < 0:
        return FermentationStage.UNKNOWN
    if percent < thresholds.early_max:
        return FermentationStage.EARLY
    if percent < thresholds.mid_max:
        return FermentationStage.MID
    if percent < thresholds.approaching_dry_max:
        return FermentationStage.APPROACHING_DRY
    return FermentationStage.TERMINAL


def _gravity_readings(measurements: list[Measurement]) -> list[Measurement]:
    """Readings with an SG value, newest first."""
    readings = [m for m in measurements if m.specific_gravity is not None]
    return sorted(readings, key=lambda m: m.measurement_date, reverse=True)


def detect_stall(
    measurements: list[Measurement],
    settings: StallSettings = StallSettings(),
) -> bool:
    """True if the two newest SG readings are far enough apart in time and barely differ."""
    if not settings.enabled:
        return False
    readings = _gravity_readings(measurements)
    if len(readings) < 2:
        return False

    latest, previous = readings[0], readings[1]
    days_between = abs(
        (latest.measurement_date - previous.measurement_date).total_seconds()
    ) / 86_400
    if days_between < settings.days:
        return False

    return abs(latest.specific_gravity - previous.specific_gravity) < settings.threshold


def is_terminal_confirmed(
    measurements: list[Measurement],
    confirmation_hours: float = DEFAULT_TERMINAL_CONFIRMATION_HOURS,
) -> bool:
    """Two identical hydrometer readings at least `confirmation_hours` apart."""
    readings = [
        m
        for m in _gravity_readings(measurements)
        if m.method in (None, MeasurementMethod.HYDROMETER)
    ]
    if len(readings) < 2:
        return False

    latest, previous = readings[0], readings[1]
    if latest.specific_gravity != previous.specific_gravity:
        return False

    hours_between = abs(
        (latest.measurement_date - previous.measurement_date).total_seconds()
    ) / 3600
    return hours_between >= confirmation_hours


def recommended_measurement_frequency(stage: FermentationStage) -> MeasurementFrequency:
    return _FREQUENCIES[stage]


def days_since(moment: datetime | None, now: datetime | None = None) -> int | None:
    """Whole days since a moment, None if there is no moment."""
    if moment is None:
        return None
    now = now or datetime.now(tz=moment.tzinfo)
    return int((now - moment).total_seconds() // 86_400)


def next_measurement_due(
    last_measurement: datetime | None,
    stage: FermentationStage,
    now: datetime | None = None,
) -> datetime:
    """When the next reading should be taken; now if there is none yet."""
    if last_measurement is None:
        return now or datetime.now()
    return last_measurement + timedelta(days=recommended_measurement_frequency(stage).max_days)


def analyze_fermentation(
    original_gravity: float | None,
    target_final_gravity: float | None,
    measurements: list[Measurement],
    thresholds: StageThresholds = StageThresholds(),
    stall_settings: StallSettings = StallSettings(),
    terminal_confirmation_hours: float = DEFAULT_TERMINAL_CONFIRMATION_HOURS,
    now: datetime | None = None,
) -> FermentationProgress:
    """
    Full fermentation analysis for a batch.

    Current gravity is taken from the newest SG reading. Missing OG,
    target FG or readings give an "unknown" stage with a prompt to record
    them rather than an error.
    """
    readings = _gravity_readings(measurements)
    last_date = readings[0].measurement_date if readings else None
    since = days_since(last_date, now)
    current_gravity = readings[0].specific_gravity if readings else None

    if not original_gravity or not current_gravity or not target_final_gravity:
        return FermentationProgress(
            percent_fermented=0.0,
            stage=FermentationStage.UNKNOWN,
            is_stalled=False,
            days_since_last_measurement=since,
            recommended_action="Record OG, current SG, and target FG to track progress",
            next_measurement_due=now or datetime.now(),
            is_terminal_confirmed=False,
        )

    percent = percent_fermented(original_gravity, current_gravity, target_final_gravity)
    stage = determine_stage(percent, thresholds)
    stalled = stage != FermentationStage.TERMINAL and detect_stall(readings, stall_settings)
    confirmed = stage == FermentationStage.TERMINAL and is_terminal_confirmed(
        readings, terminal_confirmation_hours
    )
    frequency = recommended_measurement_frequency(stage)
    due = next_measurement_due(last_date, stage, now)

    if stalled:
        action = (
            "Fermentation may have stalled - consider temperature adjustment "
            "or yeast addition"
        )
    elif stage == FermentationStage.TERMINAL and not confirmed:
        action = "Take another hydrometer reading to confirm terminal gravity"
    elif since is None or since >= frequency.max_days:
        action = f"Measurement due - {frequency.description}"
    else:
        reference = now or datetime.now(tz=due.tzinfo)
        days_until = -(-(due - reference).total_seconds() // 86_400)
        action = (
            f"Next measurement in {int(days_until)} day(s)"
            if days_until > 0
            else frequency.description
        )

    return FermentationProgress(
        percent_fermented=percent,
        stage=stage,
        is_stalled=stalled,
        days_since_last_measurement=since,
        recommended_action=action,
        next_measurement_due=due,
        is_terminal_confirmed=confirmed,
    )


def alert_priority(progress: FermentationProgress) -> AlertPriority | None:
    """Dashboard alert priority, None when no alert is needed."""
    if progress.is_stalled:
        return AlertPriority.HIGH
    if progress.stage == FermentationStage.TERMINAL and progress.is_terminal_confirmed:
        return None
    if progress.days_since_last_measurement is None:
        return AlertPriority.MEDIUM

    frequency = recommended_measurement_frequency(progress.stage)
    if progress.days_since_last_measurement > frequency.max_days * 2:
        return AlertPriority.HIGH
    if progress.days_since_last_measurement > frequency.max_days:
        return AlertPriority.MEDIUM
    if progress.days_since_last_measurement >= frequency.min_days:
        return AlertPriority.LOW
    return None
