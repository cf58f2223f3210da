"""
cidery-common: Shared calculation library for cidery operations.

Provides typed models, derived batch and packaging metrics, inventory
consolidation, unit conversion and fuzzy matching.
"""

from cidery_common.models import (
    BatchStatus,
    PackageType,
    LossSeverity,
    Measurement,
    Composition,
    Batch,
    BatchMetrics,
    PackagingRun,
    PackagingMetrics,
    FinishedGoodsItem,
    PurchaseDetail,
    ConsolidatedInventoryRow,
    AppleVariety,
)
from cidery_common.numeric import (
    NOT_AVAILABLE,
    Unavailable,
    is_available,
    parse_numeric,
    safe_divide,
)
from cidery_common.metrics import (
    days_active,
    extraction_rate_percent,
    loss_percentage,
    loss_severity,
    cost_per_unit,
    weighted_average_cost,
    compute_batch_metrics,
    compute_packaging_metrics,
)
from cidery_common.inventory import (
    compute_inventory_consolidation,
    consolidate_purchases,
)
from cidery_common.units import (
    MassUnit,
    VolumeUnit,
    TemperatureUnit,
    convert_mass,
    convert_volume,
    convert_temperature,
    litres_to_gallons,
    gallons_to_litres,
    kg_to_lb,
    lb_to_kg,
)
from cidery_common.matching import (
    match_string,
    match_objects,
    normalise_variety_name,
    search_inventory,
)
from cidery_common.exceptions import (
    CideryCommonError,
    UnitConversionError,
    MatchingError,
    ValidationError,
    NumericParseError,
    PackagingValidationError,
    PressValidationError,
    InventoryError,
    ConfigurationError,
    NotFoundError,
)

__version__ = "0.1.0"

__all__ = [
    # Models
    "BatchStatus",
    "PackageType",
    "LossSeverity",
    "Measurement",
    "Composition",
    "Batch",
    "BatchMetrics",
    "PackagingRun",
    "PackagingMetrics",
    "FinishedGoodsItem",
    "PurchaseDetail",
    "ConsolidatedInventoryRow",
    "AppleVariety",
    # Numeric
    "NOT_AVAILABLE",
    "Unavailable",
    "is_available",
    "parse_numeric",
    "safe_divide",
    # Metrics
    "days_active",
    "extraction_rate_percent",
    "loss_percentage",
    "loss_severity",
    "cost_per_unit",
    "weighted_average_cost",
    "compute_batch_metrics",
    "compute_packaging_metrics",
    # Inventory
    "compute_inventory_consolidation",
    "consolidate_purchases",
    # Units
    "MassUnit",
    "VolumeUnit",
    "TemperatureUnit",
    "convert_mass",
    "convert_volume",
    "convert_temperature",
    "litres_to_gallons",
    "gallons_to_litres",
    "kg_to_lb",
    "lb_to_kg",
    # Matching
    "match_string",
    "match_objects",
    "normalise_variety_name",
    "search_inventory",
    # Exceptions
    "CideryCommonError",
    "UnitConversionError",
    "MatchingError",
    "ValidationError",
    "NumericParseError",
    "PackagingValidationError",
    "PressValidationError",
    "InventoryError",
    "ConfigurationError",
    "NotFoundError",
]
