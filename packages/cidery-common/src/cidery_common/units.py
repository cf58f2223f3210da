"""
Unit conversion utilities for cidery measurements.

Supports mass, volume and temperature conversions. All internal
representations use metric base units:
- Mass: kilograms
- Volume: litres
- Temperature: Celsius

Each imperial factor is defined once and its inverse is always taken as
the exact reciprocal, so converting there and back is stable to within
floating point epsilon.
"""

import math
from enum import Enum

from cidery_common.exceptions import UnitConversionError


class MassUnit(str, Enum):
    """Mass/weight units."""

    KG = "kg"
    G = "g"
    LB = "lb"
    OZ = "oz"


class VolumeUnit(str, Enum):
    """Volume units."""

    L = "l"
    ML = "ml"
    GAL = "gal"  # US liquid gallon (also the TTB wine gallon)
    FL_OZ = "fl_oz"  # US fluid ounce


class TemperatureUnit(str, Enum):
    """Temperature units."""

    C = "c"
    F = "f"


# Canonical factors
LB_PER_KG = 2.20462
KG_PER_LB = 1 / LB_PER_KG

LITRES_PER_GALLON = 3.785411784
GALLONS_PER_LITRE = 1 / LITRES_PER_GALLON

# Conversion constants to base units
MASS_TO_KG: dict[MassUnit, float] = {
    MassUnit.KG: 1.0,
    MassUnit.G: 0.001,
    MassUnit.LB: KG_PER_LB,
    MassUnit.OZ: KG_PER_LB / 16,
}

VOLUME_TO_LITRES: dict[VolumeUnit, float] = {
    VolumeUnit.L: 1.0,
    VolumeUnit.ML: 0.001,
    VolumeUnit.GAL: LITRES_PER_GALLON,
    VolumeUnit.FL_OZ: LITRES_PER_GALLON / 128,
}

# Common spellings seen in purchase records and exports
_UNIT_ALIASES: dict[str, str] = {
    "kgs": "kg",
    "lbs": "lb",
    "pound": "lb",
    "pounds": "lb",
    "litre": "l",
    "litres": "l",
    "liter": "l",
    "liters": "l",
    "gallon": "gal",
    "gallons": "gal",
    "floz": "fl_oz",
    "fl oz": "fl_oz",
    "oz_fl": "fl_oz",
}


def _normalise_unit_name(unit: str) -> str:
    name = unit.strip().lower()
    return _UNIT_ALIASES.get(name, name)


def parse_mass_unit(unit: MassUnit | str) -> MassUnit:
    """Resolve a mass unit from an enum member or a string."""
    if isinstance(unit, MassUnit):
        return unit
    try:
        return MassUnit(_normalise_unit_name(unit))
    except ValueError as e:
        raise UnitConversionError(f"Unknown mass unit: {unit}") from e


def parse_volume_unit(unit: VolumeUnit | str) -> VolumeUnit:
    """Resolve a volume unit from an enum member or a string."""
    if isinstance(unit, VolumeUnit):
        return unit
    try:
        return VolumeUnit(_normalise_unit_name(unit))
    except ValueError as e:
        raise UnitConversionError(f"Unknown volume unit: {unit}") from e


def parse_temperature_unit(unit: TemperatureUnit | str) -> TemperatureUnit:
    """Resolve a temperature unit from an enum member or a string."""
    if isinstance(unit, TemperatureUnit):
        return unit
    try:
        return TemperatureUnit(_normalise_unit_name(unit))
    except ValueError as e:
        raise UnitConversionError(f"Unknown temperature unit: {unit}") from e


def convert_mass(
    value: float,
    from_unit: MassUnit | str,
    to_unit: MassUnit | str,
) -> float:
    """
    Convert between mass units.

    Args:
        value: The value to convert
        from_unit: Source unit
        to_unit: Target unit

    Returns:
        Converted value

    Raises:
        UnitConversionError: If units are invalid
    """
    source = parse_mass_unit(from_unit)
    target = parse_mass_unit(to_unit)
    if source == target:
        return value

    # Convert via kilograms as intermediate
    kg = value * MASS_TO_KG[source]
    return kg / MASS_TO_KG[target]


def convert_volume(
    value: float,
    from_unit: VolumeUnit | str,
    to_unit: VolumeUnit | str,
) -> float:
    """
    Convert between volume units.

    Args:
        value: The value to convert
        from_unit: Source unit
        to_unit: Target unit

    Returns:
        Converted value

    Raises:
        UnitConversionError: If units are invalid
    """
    source = parse_volume_unit(from_unit)
    target = parse_volume_unit(to_unit)
    if source == target:
        return value

    # Convert via litres as intermediate
    litres = value * VOLUME_TO_LITRES[source]
    return litres / VOLUME_TO_LITRES[target]


def convert_temperature(
    value: float,
    from_unit: TemperatureUnit | str,
    to_unit: TemperatureUnit | str,
) -> float:
    """
    Convert between temperature units.

    Raises:
        UnitConversionError: If units are invalid
    """
    source = parse_temperature_unit(from_unit)
    target = parse_temperature_unit(to_unit)

    celsius = (value - 32) * 5 / 9 if source == TemperatureUnit.F else value

    if target == TemperatureUnit.F:
        return celsius * 9 / 5 + 32
    return celsius


def convert(value: float, from_unit: str, to_unit: str) -> tuple[float, str]:
    """
    Convert between any two compatible units, detecting the quantity kind.

    Args:
        value: The value to convert
        from_unit: Source unit name
        to_unit: Target unit name

    Returns:
        (converted value, kind) where kind is "mass", "volume" or "temperature"

    Raises:
        UnitConversionError: If the units are unknown or of different kinds
    """
    parsers = (
        ("mass", parse_mass_unit, convert_mass),
        ("volume", parse_volume_unit, convert_volume),
        ("temperature", parse_temperature_unit, convert_temperature),
    )
    for kind, parse, converter in parsers:
        try:
            source = parse(from_unit)
        except UnitConversionError:
            continue
        try:
            target = parse(to_unit)
        except UnitConversionError as e:
            raise UnitConversionError(
                f"Cannot convert {kind} unit {from_unit} to {to_unit}"
            ) from e
        return converter(value, source, target), kind

    raise UnitConversionError(f"Unknown unit: {from_unit}")


# Convenience functions for common conversions
def kg_to_lb(kg: float) -> float:
    """Convert kilograms to pounds."""
    return kg * LB_PER_KG


def lb_to_kg(lb: float) -> float:
    """Convert pounds to kilograms."""
    return lb * KG_PER_LB


def litres_to_gallons(litres: float) -> float:
    """Convert litres to US gallons."""
    return litres * GALLONS_PER_LITRE


def gallons_to_litres(gallons: float) -> float:
    """Convert US gallons to litres."""
    return gallons * LITRES_PER_GALLON


def f_to_c(f: float) -> float:
    """Convert Fahrenheit to Celsius."""
    return convert_temperature(f, TemperatureUnit.F, TemperatureUnit.C)


def c_to_f(c: float) -> float:
    """Convert Celsius to Fahrenheit."""
    return convert_temperature(c, TemperatureUnit.C, TemperatureUnit.F)


# Display formatting
_VOLUME_LABELS = {
    VolumeUnit.L: "L",
    VolumeUnit.ML: "mL",
    VolumeUnit.GAL: "gal",
    VolumeUnit.FL_OZ: "fl oz",
}


def format_volume(litres: float, unit: VolumeUnit | str = VolumeUnit.L, decimals: int = 2) -> str:
    """
    Format a volume held in litres for display in another unit.

    Example:
        >>> format_volume(3.785411784, "gal", 1)
        '1.0 gal'
    """
    target = parse_volume_unit(unit)
    converted = convert_volume(litres, VolumeUnit.L, target)
    return f"{converted:.{decimals}f} {_VOLUME_LABELS[target]}"


def format_weight(kg: float, unit: MassUnit | str = MassUnit.KG, decimals: int = 2) -> str:
    """Format a weight held in kilograms for display."""
    target = parse_mass_unit(unit)
    converted = convert_mass(kg, MassUnit.KG, target)
    return f"{converted:.{decimals}f} {target.value}"


def format_temperature(
    celsius: float,
    unit: TemperatureUnit | str = TemperatureUnit.C,
    decimals: int = 1,
) -> str:
    """Format a temperature held in Celsius for display."""
    target = parse_temperature_unit(unit)
    converted = convert_temperature(celsius, TemperatureUnit.C, target)
    return f"{converted:.{decimals}f}°{target.value.upper()}"


def is_valid_volume(value: float) -> bool:
    """True if the volume is positive and finite."""
    return math.isfinite(value) and value > 0


def is_valid_weight(value: float) -> bool:
    """True if the weight is positive and finite."""
    return math.isfinite(value) and value > 0
