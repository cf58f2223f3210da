"""
Adapter for converting cidery export records to cidery-common models.
"""

from datetime import date, datetime
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from cidery_common.exceptions import ValidationError
from cidery_common.models import (
    AppleVariety,
    Batch,
    Composition,
    InventoryMovement,
    Measurement,
    PackagingRun,
    PurchaseDetail,
)
from cidery_common.numeric import parse_numeric
from cidery_common.units import convert_mass, convert_temperature, convert_volume
from cidery_common.validation import parse_package_size

M = TypeVar("M", bound=BaseModel)


def parse_datetime(value: Any, field_name: str = "date") -> datetime | None:
    """
    Parse an ISO timestamp or date from the export.

    Timezone-aware values are converted to local time and made naive so
    all timestamps compare with each other and with datetime.now().
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(f"{field_name} is not an ISO date: {value!r}") from e

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class CideryAdapter:
    """
    Converts camelCase export records to cidery-common models.

    Volumes may come with a unit ("volume": 10, "volumeUnit": "gal") and
    are normalised to litres; weights likewise to kilograms.
    """

    def _build(self, model: type[M], data: dict[str, Any], label: str) -> M:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {label}: {e}") from e

    def _volume_l(self, record: dict[str, Any], key: str) -> float | None:
        value = parse_numeric(record.get(key), key)
        if value is None:
            return None
        unit = record.get(f"{key}Unit") or "L"
        return convert_volume(value, unit, "L")

    def _weight_kg(self, record: dict[str, Any], key: str) -> float | None:
        value = parse_numeric(record.get(key), key)
        if value is None:
            return None
        unit = record.get(f"{key}Unit") or "kg"
        return convert_mass(value, unit, "kg")

    def to_measurement(self, raw: dict[str, Any]) -> Measurement:
        temperature = parse_numeric(raw.get("temperature"), "temperature")
        if temperature is not None:
            temperature = convert_temperature(temperature, raw.get("temperatureUnit") or "C", "C")

        return self._build(
            Measurement,
            {
                "measurement_date": parse_datetime(raw.get("measurementDate"), "measurementDate"),
                "specific_gravity": raw.get("specificGravity"),
                "abv": raw.get("abv"),
                "ph": raw.get("ph"),
                "temperature_c": temperature,
                "volume_l": self._volume_l(raw, "volume"),
                "method": raw.get("measurementMethod"),
                "notes": raw.get("notes"),
            },
            "measurement",
        )

    def to_composition(self, raw: dict[str, Any]) -> Composition:
        return self._build(
            Composition,
            {
                "variety_name": raw.get("varietyName") or "Unknown",
                "vendor_name": raw.get("vendorName"),
                "weight_kg": self._weight_kg(raw, "inputWeight") or 0.0,
                "juice_volume_l": self._volume_l(raw, "juiceVolume") or 0.0,
                "fraction": raw.get("fractionOfBatch"),
                "cost": raw.get("materialCost"),
            },
            "composition",
        )

    def to_batch(self, raw: dict[str, Any]) -> Batch:
        """Convert a batch record with its nested histories."""
        metadata = {}
        for source, target in (
            ("originalGravity", "original_gravity"),
            ("targetFinalGravity", "target_final_gravity"),
        ):
            value = parse_numeric(raw.get(source), source)
            if value is not None:
                metadata[target] = value

        return self._build(
            Batch,
            {
                "id": str(raw.get("id")),
                "name": raw.get("name") or raw.get("batchNumber") or str(raw.get("id")),
                "status": raw.get("status", "planned"),
                "start_date": parse_datetime(raw.get("startDate"), "startDate"),
                "end_date": parse_datetime(raw.get("endDate"), "endDate"),
                "vessel_id": raw.get("vesselId"),
                "compositions": [self.to_composition(c) for c in raw.get("composition", [])],
                "measurements": [self.to_measurement(m) for m in raw.get("measurements", [])],
                "additives": [
                    {
                        "name": a.get("additiveName") or a.get("name"),
                        "amount": a.get("amount"),
                        "unit": a.get("unit", ""),
                        "added_at": parse_datetime(a.get("addedAt"), "addedAt"),
                    }
                    for a in raw.get("additives", [])
                ],
                "transfers": [
                    {
                        "transferred_at": parse_datetime(t.get("transferredAt"), "transferredAt"),
                        "from_vessel_id": t.get("fromVesselId"),
                        "to_vessel_id": t.get("toVesselId"),
                        "volume_l": self._volume_l(t, "volumeTransferred"),
                        "loss_l": self._volume_l(t, "loss") or 0.0,
                    }
                    for t in raw.get("transfers", [])
                ],
                "metadata": metadata,
            },
            f"batch {raw.get('id')}",
        )

    def to_packaging_run(self, raw: dict[str, Any]) -> PackagingRun:
        """Convert a packaging run; size may be "750ml"-style text or packageSizeML."""
        size_ml = parse_numeric(raw.get("packageSizeML"), "packageSizeML")
        if size_ml is None and raw.get("packageSize"):
            size_ml = parse_package_size(str(raw["packageSize"])) * 1000

        return self._build(
            PackagingRun,
            {
                "id": str(raw.get("id")),
                "batch_id": str(raw.get("batchId")),
                "package_date": parse_datetime(raw.get("packagedAt"), "packagedAt"),
                "package_type": raw.get("packageType", "bottle"),
                "package_size_ml": size_ml,
                "units_produced": raw.get("unitsProduced"),
                "volume_taken_l": self._volume_l(raw, "volumeTaken"),
                "loss_l": self._volume_l(raw, "loss") or 0.0,
                "total_cost": raw.get("totalCost"),
                "fill_check": raw.get("fillCheck"),
                "abv_at_packaging": raw.get("abvAtPackaging"),
                "carbonation_level": raw.get("carbonationLevel"),
                "notes": raw.get("productionNotes") or raw.get("notes"),
            },
            f"packaging run {raw.get('id')}",
        )

    def to_purchase(self, raw: dict[str, Any]) -> PurchaseDetail:
        """
        Convert a purchase line; price may be per unit or a line total.

        Quantities are stored in kilograms and the unit price rescaled to
        per-kg, so the line cost is unchanged and lines bought in other
        mass units consolidate with the rest.
        """
        kg_per_unit = convert_mass(1.0, raw.get("unit") or "kg", "kg")
        quantity = parse_numeric(raw.get("quantity"), "quantity")
        if quantity is not None:
            quantity *= kg_per_unit
        unit_price = parse_numeric(raw.get("pricePerUnit"), "pricePerUnit")
        if unit_price is not None:
            unit_price /= kg_per_unit
        total_cost = parse_numeric(raw.get("totalCost"), "totalCost")
        if unit_price is None and total_cost is not None and quantity:
            unit_price = total_cost / quantity

        purchase_date = parse_datetime(raw.get("purchaseDate"), "purchaseDate")
        return self._build(
            PurchaseDetail,
            {
                "purchase_id": str(raw.get("purchaseId") or raw.get("id")),
                "purchase_date": purchase_date.date() if purchase_date else None,
                "vendor_name": raw.get("vendorName") or "Unknown vendor",
                "material_key": raw.get("varietyName") or raw.get("materialName"),
                "quantity": quantity,
                "unit": "kg",
                "unit_price": unit_price,
            },
            f"purchase {raw.get('purchaseId') or raw.get('id')}",
        )

    def to_variety(self, raw: dict[str, Any]) -> AppleVariety:
        return self._build(
            AppleVariety,
            {
                "id": str(raw.get("id")),
                "name": raw.get("name"),
                "cider_category": raw.get("ciderCategory"),
                "tannin": raw.get("tannin"),
                "acid": raw.get("acid"),
                "sugar_brix": raw.get("sugarBrix"),
                "harvest_window": raw.get("harvestWindow"),
                "variety_notes": raw.get("varietyNotes"),
                "is_active": raw.get("isActive", True),
            },
            f"variety {raw.get('id')}",
        )

    def to_movement(self, raw: dict[str, Any]) -> InventoryMovement:
        return self._build(
            InventoryMovement,
            {
                "kind": raw.get("kind"),
                "quantity_delta": raw.get("quantityChange"),
                "occurred_at": parse_datetime(raw.get("occurredAt"), "occurredAt"),
                "reason": raw.get("reason"),
            },
            "inventory movement",
        )

    def variety_to_record(self, variety: AppleVariety) -> dict[str, Any]:
        """Back to the export's camelCase shape."""
        return {
            "id": variety.id,
            "name": variety.name,
            "ciderCategory": variety.cider_category,
            "tannin": variety.tannin,
            "acid": variety.acid,
            "sugarBrix": variety.sugar_brix,
            "harvestWindow": variety.harvest_window,
            "varietyNotes": variety.variety_notes,
            "isActive": variety.is_active,
        }
