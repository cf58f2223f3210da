"""
Shared data models for cidery operations.

All models use Pydantic v2 for validation and serialisation.
Amounts are normalised to metric units (kilograms, litres, Celsius).
Numeric fields accept numeric strings as exported by the database and
raise NumericParseError on malformed values.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from cidery_common.numeric import Numeric, OptionalNumeric, Unavailable, percentage


class BatchStatus(str, Enum):
    """Lifecycle status of a fermentation batch."""

    PLANNED = "planned"
    ACTIVE = "active"
    CONDITIONING = "conditioning"
    AGING = "aging"
    COMPLETED = "completed"
    PACKAGED = "packaged"


class PackageType(str, Enum):
    """Kind of finished package."""

    BOTTLE = "bottle"
    CAN = "can"
    KEG = "keg"


class LossSeverity(str, Enum):
    """Display band for packaging loss."""

    GOOD = "good"
    WARNING = "warning"
    BAD = "bad"


class MeasurementMethod(str, Enum):
    """How a gravity reading was taken."""

    HYDROMETER = "hydrometer"
    REFRACTOMETER = "refractometer"
    CALCULATED = "calculated"


class MovementKind(str, Enum):
    """Finished goods inventory movement."""

    CREATION = "creation"
    DISTRIBUTION = "distribution"
    ADJUSTMENT = "adjustment"


class Measurement(BaseModel):
    """A timestamped snapshot of one or more batch readings."""

    model_config = ConfigDict(frozen=True)

    measurement_date: datetime = Field(..., description="When the reading was taken")
    specific_gravity: OptionalNumeric = Field(default=None, gt=0)
    abv: OptionalNumeric = Field(default=None, ge=0, le=100)
    ph: OptionalNumeric = Field(default=None, ge=0, le=14)
    temperature_c: OptionalNumeric = Field(default=None)
    volume_l: OptionalNumeric = Field(default=None, ge=0)
    method: MeasurementMethod | None = Field(default=None)
    notes: str | None = Field(default=None)


class Composition(BaseModel):
    """One fruit source contributing to a batch."""

    model_config = ConfigDict(frozen=True)

    variety_name: str = Field(..., description="Apple or fruit variety")
    vendor_name: str | None = Field(default=None)
    weight_kg: Numeric = Field(..., ge=0, description="Input fruit weight in kg")
    juice_volume_l: Numeric = Field(..., ge=0, description="Juice volume in litres")
    fraction: OptionalNumeric = Field(
        default=None,
        ge=0,
        le=1,
        description="Share of batch volume (0-1)",
    )
    cost: OptionalNumeric = Field(default=None, ge=0)


class Additive(BaseModel):
    """An additive dosed into a batch."""

    model_config = ConfigDict(frozen=True)

    name: str
    amount: Numeric = Field(..., ge=0)
    unit: str
    added_at: datetime


class Transfer(BaseModel):
    """Movement of liquid between vessels."""

    model_config = ConfigDict(frozen=True)

    transferred_at: datetime
    from_vessel_id: str | None = None
    to_vessel_id: str | None = None
    volume_l: Numeric = Field(..., ge=0)
    loss_l: Numeric = Field(default=0.0, ge=0)


class Batch(BaseModel):
    """
    One fermentation run.

    Status is informational; transitions are not enforced here.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Batch identifier")
    name: str = Field(..., description="Batch name/number")
    status: BatchStatus = Field(default=BatchStatus.PLANNED)
    start_date: datetime
    end_date: datetime | None = None
    vessel_id: str | None = None
    compositions: list[Composition] = Field(default_factory=list)
    measurements: list[Measurement] = Field(default_factory=list)
    additives: list[Additive] = Field(default_factory=list)
    transfers: list[Transfer] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def latest_measurement(self) -> Measurement | None:
        """Most recent measurement by date."""
        if not self.measurements:
            return None
        return max(self.measurements, key=lambda m: m.measurement_date)

    @property
    def current_volume_l(self) -> float | None:
        """Volume from the latest measurement that recorded one."""
        with_volume = [m for m in self.measurements if m.volume_l is not None]
        if not with_volume:
            return None
        return max(with_volume, key=lambda m: m.measurement_date).volume_l

    @property
    def composition_fraction_total(self) -> float | None:
        """Sum of declared composition fractions, None if none declared."""
        fractions = [c.fraction for c in self.compositions if c.fraction is not None]
        if not fractions:
            return None
        return sum(fractions)


class BatchMetrics(BaseModel):
    """Derived display metrics for a batch."""

    model_config = ConfigDict(frozen=True)

    days_active: int = Field(..., ge=0)
    latest_measurement: Measurement | None
    total_weight_kg: float
    total_volume_l: float
    extraction_rate_percent: float | Unavailable


class PackagingRun(BaseModel):
    """One packaging event drawing liquid from a batch."""

    model_config = ConfigDict(frozen=True)

    id: str
    batch_id: str
    package_date: datetime
    package_type: PackageType = PackageType.BOTTLE
    package_size_ml: Numeric = Field(..., gt=0)
    units_produced: int = Field(..., ge=0)
    volume_taken_l: Numeric = Field(..., ge=0)
    loss_l: Numeric = Field(default=0.0, ge=0)
    total_cost: OptionalNumeric = Field(default=None, ge=0)

    # QA fields
    fill_check: Literal["passed", "failed", "not_tested"] | None = None
    abv_at_packaging: OptionalNumeric = Field(default=None)
    carbonation_level: Literal["still", "petillant", "sparkling"] | None = None
    notes: str | None = None

    @property
    def loss_percentage(self) -> float | Unavailable:
        """Loss as a percentage of volume taken."""
        return percentage(self.loss_l, self.volume_taken_l)


class PackagingMetrics(BaseModel):
    """Derived display metrics for a packaging run."""

    model_config = ConfigDict(frozen=True)

    volume_taken_l: float
    loss_l: float
    loss_percentage: float | Unavailable
    loss_severity: LossSeverity | Unavailable
    units_produced: int
    packaged_volume_l: float
    cost_per_unit: float | Unavailable


class InventoryMovement(BaseModel):
    """A single change to finished goods stock."""

    model_config = ConfigDict(frozen=True)

    kind: MovementKind
    quantity_delta: int
    occurred_at: datetime
    reason: str | None = None


class FinishedGoodsItem(BaseModel):
    """
    On-hand finished goods for one packaging run.

    Stock is only ever zeroed, never deleted.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    packaging_run_id: str
    initial_quantity: int = Field(..., ge=0)
    current_quantity: int = Field(..., ge=0)
    history: list[InventoryMovement] = Field(default_factory=list)

    @property
    def is_depleted(self) -> bool:
        return self.current_quantity == 0


class PurchaseDetail(BaseModel):
    """One purchase line of raw material."""

    model_config = ConfigDict(frozen=True)

    purchase_id: str
    purchase_date: date
    vendor_name: str
    material_key: str = Field(..., description="Variety or material name")
    quantity: Numeric = Field(..., ge=0)
    unit: str = "kg"
    unit_price: OptionalNumeric = Field(
        default=None,
        ge=0,
        description="Price per unit; None means free fruit",
    )

    @property
    def line_cost(self) -> float:
        """quantity × unit price, free lines cost nothing."""
        return self.quantity * (self.unit_price or 0.0)


class ConsolidatedInventoryRow(BaseModel):
    """
    View-model grouping all purchases of one material.

    Not a stored entity; built on demand from PurchaseDetail records.
    """

    model_config = ConfigDict(frozen=True)

    material_key: str
    vendor_name: str | None = None
    unit: str = "kg"
    total_quantity: float
    total_cost: float
    average_cost: float | Unavailable
    purchase_count: int = Field(..., ge=0)
    purchase_details: list[PurchaseDetail] = Field(default_factory=list)

    @property
    def is_consolidated(self) -> bool:
        return self.purchase_count > 1

    @property
    def display_mode(self) -> Literal["single_purchase", "purchase_history"]:
        """Which detail view the inventory screen should show."""
        return "purchase_history" if self.is_consolidated else "single_purchase"


CiderCategory = Literal["sweet", "bittersweet", "sharp", "bittersharp"]
Intensity = Literal["low", "low-medium", "medium", "medium-high", "high"]
HarvestWindow = Literal[
    "very-early", "early", "early-mid", "mid", "mid-late", "late", "very-late"
]


class AppleVariety(BaseModel):
    """
    Reference apple variety.

    Archiving flips is_active; renaming keeps the id so historical
    references stay valid.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(..., min_length=1)
    cider_category: CiderCategory | None = None
    tannin: Intensity | None = None
    acid: Intensity | None = None
    sugar_brix: Intensity | None = None
    harvest_window: HarvestWindow | None = None
    variety_notes: str | None = None
    is_active: bool = True

    def archived(self) -> "AppleVariety":
        """Copy of this variety marked inactive."""
        return self.model_copy(update={"is_active": False})

    def restored(self) -> "AppleVariety":
        """Copy of this variety marked active again."""
        return self.model_copy(update={"is_active": True})

    def renamed(self, name: str) -> "AppleVariety":
        """Copy with a new name and the same id."""
        return AppleVariety.model_validate({**self.model_dump(), "name": name})

    def with_patch(self, patch: dict[str, Any]) -> "AppleVariety":
        """Copy with the given field values applied and re-validated."""
        return AppleVariety.model_validate({**self.model_dump(), **patch, "id": self.id})
