"""MCP tool definitions for cidery operations."""

import logging
from datetime import datetime
from typing import Any

from fastmcp import FastMCP

from cidery_common.editing import EDITABLE_COLUMNS, can_edit, parse_cell_value
from cidery_common.exceptions import CideryCommonError, PackagingValidationError
from cidery_common.exports import (
    export_batches_csv,
    export_inventory_csv,
    export_packaging_runs_csv,
)
from cidery_common.fermentation import (
    DEFAULT_TARGET_FG_BY_STYLE,
    alert_priority,
    analyze_fermentation,
    calculate_abv as abv_from_gravity,
    calculate_attenuation,
    calculate_potential_abv,
)
from cidery_common.matching import match_objects, search_inventory as fuzzy_search_inventory
from cidery_common.metrics import (
    compute_batch_metrics,
    compute_packaging_metrics,
    days_active,
    extraction_rate_percent,
)
from cidery_common.models import PackageType, PackagingRun
from cidery_common.numeric import NOT_AVAILABLE, round_to
from cidery_common.press import AllocationMode, FruitLoad, VesselAssignment, complete_press_run
from cidery_common.reports import dashboard_summary
from cidery_common.ttb import calculate_hard_cider_tax, litres_to_wine_gallons, round_gallons
from cidery_common.units import convert, convert_mass, convert_volume
from cidery_common.validation import parse_package_size, validate_packaging

from mcp_cidery.adapter import CideryAdapter, parse_datetime
from mcp_cidery.state import AppState

logger = logging.getLogger(__name__)


def _error(e: CideryCommonError) -> dict:
    return {"error": str(e)}


def _rounded(value: Any, places: int = 2) -> Any:
    if isinstance(value, float):
        return round_to(value, places)
    return value


def register_tools(mcp: FastMCP, state: AppState) -> None:
    """Register all cidery MCP tools against the given state."""
    adapter = CideryAdapter()
    store = state.store

    # ==================== Batches ====================

    @mcp.tool()
    async def list_batches(status: str | None = None) -> list[dict] | dict:
        """
        List batches, newest first.

        Args:
            status: Optional filter (planned, active, conditioning, aging,
                completed, packaged)
        """
        try:
            batches = store.list_batches(status)
        except ValueError:
            return {"error": f"Unknown batch status '{status}'"}

        return [
            {
                "id": b.id,
                "name": b.name,
                "status": b.status.value,
                "start_date": b.start_date.isoformat(),
                "vessel_id": b.vessel_id,
                "days_active": days_active(b.start_date, b.end_date),
                "current_volume_l": b.current_volume_l,
            }
            for b in batches
        ]

    @mcp.tool()
    async def get_batch_metrics(batch: str) -> dict:
        """
        Get derived metrics for a batch.

        Args:
            batch: Batch id or name

        Returns days active, latest measurement, total fruit weight and juice
        volume, extraction rate and packaging totals. Values that cannot be
        computed are "n/a".
        """
        try:
            found = store.find_batch(batch)
        except CideryCommonError as e:
            return _error(e)

        metrics = compute_batch_metrics(found)
        runs = store.runs_for_batch(found.id)
        return {
            "id": found.id,
            "name": found.name,
            "status": found.status.value,
            **metrics.model_dump(mode="json"),
            "composition_fraction_total": found.composition_fraction_total,
            "packaging_run_count": len(runs),
            "packaged_volume_l": round_to(store.packaged_volume_l(found.id), 2),
        }

    # ==================== Packaging ====================

    @mcp.tool()
    async def get_packaging_metrics(
        run_id: str | None = None,
        batch: str | None = None,
    ) -> list[dict] | dict:
        """
        Get loss and cost metrics for packaging runs.

        Args:
            run_id: A single packaging run
            batch: All runs of a batch (id or name)

        Loss severity is good up to 2%, warning up to 5%, bad above.
        """
        try:
            if run_id:
                runs = [store.get_packaging_run(run_id)]
            elif batch:
                runs = store.runs_for_batch(store.find_batch(batch).id)
            else:
                return {"error": "Provide run_id or batch"}
        except CideryCommonError as e:
            return _error(e)

        return [
            {
                "run_id": run.id,
                "batch_id": run.batch_id,
                "package_date": run.package_date.isoformat(),
                "package_type": run.package_type.value,
                **compute_packaging_metrics(run).model_dump(mode="json"),
            }
            for run in runs
        ]

    @mcp.tool()
    async def validate_packaging_run(
        batch: str,
        volume_taken_l: float,
        units_produced: int,
        package_size: str = "750ml",
        loss_l: float = 0.0,
        package_type: str = "bottle",
        package_date: str | None = None,
        abv_at_packaging: float | None = None,
    ) -> dict:
        """
        Check a proposed packaging run before recording it.

        Args:
            batch: Batch id or name
            volume_taken_l: Volume drawn from the batch
            units_produced: Bottles, cans or kegs filled
            package_size: Size per unit, e.g. "750ml", "500mL", "12oz"
            loss_l: Volume lost during packaging
            package_type: bottle, can or keg
            package_date: ISO date, defaults to now
            abv_at_packaging: Measured ABV, if any

        Returns {"valid": true} or the first failed rule with a user message.
        """
        try:
            found = store.find_batch(batch)
            run = PackagingRun(
                id="proposed",
                batch_id=found.id,
                package_date=parse_datetime(package_date) or datetime.now(),
                package_type=PackageType(package_type),
                package_size_ml=parse_package_size(package_size) * 1000,
                units_produced=units_produced,
                volume_taken_l=volume_taken_l,
                loss_l=loss_l,
                abv_at_packaging=abv_at_packaging,
            )
            validate_packaging(
                found,
                run,
                previously_packaged_l=store.packaged_volume_l(found.id),
            )
        except PackagingValidationError as e:
            return {
                "valid": False,
                "error": str(e),
                "user_message": e.user_message,
                "details": e.details,
            }
        except CideryCommonError as e:
            return {"valid": False, **_error(e)}
        except ValueError as e:
            return {"valid": False, "error": str(e)}

        metrics = compute_packaging_metrics(run)
        return {
            "valid": True,
            "loss_percentage": _rounded(metrics.loss_percentage),
            "loss_severity": getattr(metrics.loss_severity, "value", NOT_AVAILABLE.value),
        }

    # ==================== Inventory ====================

    @mcp.tool()
    async def get_consolidated_inventory(
        group_by_vendor: bool = False,
        material: str | None = None,
    ) -> list[dict] | dict:
        """
        Get raw-material inventory with repeat purchases merged.

        Args:
            group_by_vendor: Keep each vendor's purchases of a material separate
            material: Optional exact material name filter

        Each row has total quantity, total cost, weighted average cost, the
        purchase count and the individual purchases. Rows with more than one
        purchase show a purchase history; single rows show the purchase itself.
        """
        try:
            rows = store.consolidated_inventory(group_by_vendor)
        except CideryCommonError as e:
            return _error(e)

        if material:
            rows = [r for r in rows if r.material_key.lower() == material.strip().lower()]

        return [
            {
                **row.model_dump(mode="json"),
                "is_consolidated": row.is_consolidated,
                "display_mode": row.display_mode,
            }
            for row in rows
        ]

    @mcp.tool()
    async def search_inventory(query: str, threshold: float = 0.6, limit: int = 10) -> list[dict] | dict:
        """
        Fuzzy search inventory by material or variety name.

        Args:
            query: Search text, e.g. "kingston blak" or "Bramley's Seedling"
            threshold: Minimum match confidence (0.0 to 1.0)
            limit: Maximum results
        """
        try:
            matches = fuzzy_search_inventory(
                query, store.consolidated_inventory(), threshold=threshold, limit=limit
            )
        except CideryCommonError as e:
            return _error(e)

        return [
            {
                "material": row.material_key,
                "confidence": round(confidence, 2),
                "total_quantity": row.total_quantity,
                "unit": row.unit,
                "average_cost": _rounded(row.average_cost, 4),
                "purchase_count": row.purchase_count,
            }
            for row, confidence in matches
        ]

    # ==================== Calculators ====================

    @mcp.tool()
    async def calculate_extraction_rate(
        juice_volume: float,
        apple_weight: float,
        volume_unit: str = "L",
        weight_unit: str = "kg",
    ) -> dict:
        """
        Calculate juice extraction rate.

        Args:
            juice_volume: Juice produced
            apple_weight: Fruit pressed
            volume_unit: Unit of juice_volume (L, mL, gal)
            weight_unit: Unit of apple_weight (kg, g, lb)

        Returns litres of juice per 100 kg of fruit as a percentage, or "n/a"
        when the weight is zero.
        """
        try:
            litres = convert_volume(juice_volume, volume_unit, "L")
            kg = convert_mass(apple_weight, weight_unit, "kg")
        except CideryCommonError as e:
            return _error(e)

        rate = extraction_rate_percent(litres, kg)
        return {
            "juice_volume_l": litres,
            "apple_weight_kg": kg,
            "extraction_rate_percent": _rounded(rate),
        }

    @mcp.tool()
    async def calculate_abv(original_gravity: float, final_gravity: float) -> dict:
        """
        Calculate ABV from original and final specific gravity.

        Args:
            original_gravity: OG, e.g. 1.055
            final_gravity: FG, e.g. 1.000

        Uses (OG - FG) × 131.25. Also returns apparent attenuation and the
        potential ABV if fermented to 1.000.
        """
        try:
            result = {
                "abv": abv_from_gravity(original_gravity, final_gravity),
                "potential_abv": calculate_potential_abv(original_gravity),
            }
            if original_gravity > 1.0:
                result["attenuation_percent"] = calculate_attenuation(
                    original_gravity, final_gravity
                )
        except CideryCommonError as e:
            return _error(e)
        return result

    @mcp.tool()
    async def convert_units(value: float, from_unit: str, to_unit: str) -> dict:
        """
        Convert between mass, volume or temperature units.

        Args:
            value: Value to convert
            from_unit: e.g. "kg", "lb", "L", "gal", "C", "F"
            to_unit: Target unit of the same kind
        """
        try:
            converted, kind = convert(value, from_unit, to_unit)
        except CideryCommonError as e:
            return _error(e)
        return {
            "value": value,
            "from_unit": from_unit,
            "to_unit": to_unit,
            "kind": kind,
            "result": round_to(converted, 6),
        }

    @mcp.tool()
    async def get_fermentation_progress(
        batch: str,
        target_final_gravity: float | None = None,
        style: str | None = None,
    ) -> dict:
        """
        Analyse fermentation progress for a batch.

        Args:
            batch: Batch id or name
            target_final_gravity: Overrides the batch's target FG
            style: dry, semi-dry, semi-sweet or sweet; used for the target
                FG when none is recorded

        Returns percent fermented, stage, stall detection, terminal
        confirmation, the next measurement due and an alert priority.
        """
        try:
            found = store.find_batch(batch)
        except CideryCommonError as e:
            return _error(e)

        target = target_final_gravity or found.metadata.get("target_final_gravity")
        if target is None and style:
            target = DEFAULT_TARGET_FG_BY_STYLE.get(style.lower())
            if target is None:
                return {"error": f"Unknown style '{style}'"}

        try:
            progress = analyze_fermentation(
                found.metadata.get("original_gravity"),
                target,
                found.measurements,
            )
        except CideryCommonError as e:
            return _error(e)

        priority = alert_priority(progress)
        return {
            "batch_id": found.id,
            "batch_name": found.name,
            "original_gravity": found.metadata.get("original_gravity"),
            "target_final_gravity": target,
            **progress.model_dump(mode="json"),
            "alert_priority": priority.value if priority else None,
        }

    @mcp.tool()
    async def calculate_excise_tax(
        volume: float,
        unit: str = "L",
        prior_credit_gallons_used: float = 0.0,
    ) -> dict:
        """
        Calculate federal excise tax for hard cider removed tax-paid.

        Args:
            volume: Volume removed
            unit: L, mL or gal (wine gallons)
            prior_credit_gallons_used: Small producer credit gallons already
                used this calendar year

        Applies $0.226/gal less the $0.056/gal small producer credit on the
        first 30,000 gallons of the year.
        """
        try:
            litres = convert_volume(volume, unit, "L")
        except CideryCommonError as e:
            return _error(e)

        gallons = round_gallons(litres_to_wine_gallons(litres))
        tax = calculate_hard_cider_tax(gallons, prior_credit_gallons_used)
        return {"volume_l": litres, **tax.model_dump(mode="json")}

    # ==================== Press ====================

    @mcp.tool()
    async def complete_press(
        press_run_id: str,
        loads: list[dict],
        juice_volume_l: float,
        assignments: list[dict],
        allocation: str = "weight",
    ) -> dict:
        """
        Complete a press run and create planned batches for each vessel.

        Args:
            press_run_id: Press run identifier
            loads: Fruit loads, each {"purchase_item_id", "variety_name",
                "vendor_name", "weight_kg", "unit_cost", "brix"}
            juice_volume_l: Total juice pressed
            assignments: Vessels filled, each {"vessel_id", "volume_l",
                "capacity_l"}
            allocation: Attribute juice to loads by "weight" or "sugar"
        """
        try:
            completion = complete_press_run(
                press_run_id,
                [FruitLoad.model_validate(load) for load in loads],
                juice_volume_l,
                [VesselAssignment.model_validate(a) for a in assignments],
                mode=AllocationMode(allocation),
            )
        except CideryCommonError as e:
            return _error(e)
        except ValueError as e:
            # pydantic ValidationError is a ValueError
            return {"error": str(e)}

        for batch in completion.batches:
            store.batches[batch.id] = batch
        return completion.model_dump(mode="json")

    # ==================== Varieties ====================

    @mcp.tool()
    async def list_varieties(include_inactive: bool = False, query: str | None = None) -> list[dict]:
        """
        List apple varieties.

        Args:
            include_inactive: Include archived varieties
            query: Optional fuzzy name filter
        """
        varieties = store.list_varieties(include_inactive)
        if query:
            varieties = [v for v, _ in match_objects(query, varieties, lambda v: v.name, 0.6, len(varieties))]
        editing = state.edit_state.current
        return [
            {
                **v.model_dump(mode="json"),
                "pending_changes": state.variety_updates.pending.get(v.id, {}),
                "editing_field": editing.column_id if editing and editing.row_id == v.id else None,
            }
            for v in varieties
        ]

    @mcp.tool()
    async def start_variety_edit(variety_id: str, field: str, role: str = "operator") -> dict:
        """
        Open one variety field for editing.

        Only one cell is open at a time; opening another closes the first.
        Values are entered with edit_variety.

        Args:
            variety_id: Variety id
            field: name, cider_category, tannin, acid, sugar_brix,
                harvest_window, variety_notes or is_active
            role: admin, operator or viewer (viewers cannot edit)
        """
        try:
            if not can_edit(role):
                return {"error": "Viewers cannot edit varieties"}
        except ValueError:
            return {"error": f"Unknown role '{role}'"}
        if field not in EDITABLE_COLUMNS:
            return {"error": f"Field '{field}' is not editable"}
        try:
            variety = store.get_variety(variety_id)
        except CideryCommonError as e:
            return _error(e)

        state.edit_state = state.edit_state.start(variety_id, field, role)
        return {
            "editing": {"variety_id": variety_id, "field": field},
            "current_value": variety.model_dump(mode="json")[field],
        }

    @mcp.tool()
    async def edit_variety(
        variety_id: str,
        field: str,
        value: str | bool | None = None,
    ) -> dict:
        """
        Enter a value into the variety field opened with start_variety_edit.

        A valid value is staged and closes the field; an invalid one leaves it
        open. Edits are batched and written after a short pause, or
        immediately with flush_variety_edits.

        Args:
            variety_id: Variety id
            field: Field being edited
            value: New value; empty or null clears optional fields
        """
        if not state.edit_state.is_editing(variety_id, field):
            return {"error": f"Field '{field}' of variety '{variety_id}' is not open for editing"}
        try:
            parsed = parse_cell_value(field, value)
        except CideryCommonError as e:
            return _error(e)

        state.edit_state = state.edit_state.cancel()
        state.variety_updates.stage(variety_id, field, parsed)
        return {
            "variety_id": variety_id,
            "staged": {field: parsed},
            "pending": state.variety_updates.pending.get(variety_id, {}),
            "flush_delay_seconds": state.variety_updates.delay,
        }

    @mcp.tool()
    async def cancel_variety_edit() -> dict:
        """Close the open variety field without staging anything."""
        current = state.edit_state.current
        state.edit_state = state.edit_state.cancel()
        if current is None:
            return {"cancelled": None}
        return {"cancelled": {"variety_id": current.row_id, "field": current.column_id}}

    @mcp.tool()
    async def archive_variety(variety_id: str, restore: bool = False, role: str = "operator") -> dict:
        """
        Archive an apple variety, or restore an archived one.

        Varieties are never deleted so past batches keep their references.
        """
        try:
            if not can_edit(role):
                return {"error": "Viewers cannot archive varieties"}
            variety = store.get_variety(variety_id)
            updated = variety.restored() if restore else variety.archived()
            store.put_variety(updated)
        except CideryCommonError as e:
            return _error(e)
        except ValueError:
            return {"error": f"Unknown role '{role}'"}

        action = "restored" if restore else "archived"
        state.notify("success", f"Variety {updated.name} {action} successfully")
        return adapter.variety_to_record(updated)

    @mcp.tool()
    async def flush_variety_edits() -> dict:
        """Write all pending variety edits now."""
        written = await state.variety_updates.flush()
        return {
            "written": written,
            "still_pending": state.variety_updates.pending,
        }

    @mcp.tool()
    async def get_notices() -> list[dict]:
        """Get and clear success and failure messages from recent writes."""
        return [notice.to_dict() for notice in state.drain_notices()]

    # ==================== Reports ====================

    @mcp.tool()
    async def get_dashboard_summary() -> dict:
        """
        Get dashboard headline figures.

        Batch counts by status, litres in the cellar, packaging totals and
        overall loss, inventory value and fermentation alerts.
        """
        try:
            summary = dashboard_summary(
                list(store.batches.values()),
                list(store.packaging_runs.values()),
                store.consolidated_inventory(),
            )
        except CideryCommonError as e:
            return _error(e)
        return summary.model_dump(mode="json")

    @mcp.tool()
    async def export_batch_report(report: str = "batches", batch: str | None = None) -> dict:
        """
        Export a CSV report.

        Args:
            report: "batches", "packaging" or "inventory"
            batch: Limit a batches or packaging report to one batch

        Returns the filename and CSV text. Unavailable values are "n/a".
        """
        try:
            if report == "batches":
                batches = [store.find_batch(batch)] if batch else store.list_batches()
                content = export_batches_csv(batches)
            elif report == "packaging":
                if batch:
                    runs = store.runs_for_batch(store.find_batch(batch).id)
                else:
                    runs = sorted(store.packaging_runs.values(), key=lambda r: r.package_date)
                content = export_packaging_runs_csv(runs)
            elif report == "inventory":
                content = export_inventory_csv(store.consolidated_inventory())
            else:
                return {"error": f"Unknown report '{report}'"}
        except CideryCommonError as e:
            return _error(e)

        filename = f"{report}_{datetime.now():%Y%m%d}.csv"
        logger.info("Exported %s report", report)
        return {"filename": filename, "content": content}
