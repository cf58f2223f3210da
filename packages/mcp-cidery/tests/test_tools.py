"""
Tests for the cidery MCP tools.
"""

import asyncio
import csv
import io

import pytest
from fastmcp import Client

from mcp_cidery.server import create_server
from mcp_cidery.state import AppState
from mcp_cidery.store import CideryStore


def call(server, name: str, **kwargs):
    async def run_tool():
        tools = await server.get_tools()
        return await tools[name].fn(**kwargs)

    return asyncio.run(run_tool())


class TestRegistration:
    """Tests for tool registration."""

    def test_tools_listed(self, server):
        async def list_names():
            async with Client(server) as client:
                return {tool.name for tool in await client.list_tools()}

        names = asyncio.run(list_names())
        assert {
            "list_batches",
            "get_batch_metrics",
            "get_packaging_metrics",
            "validate_packaging_run",
            "get_consolidated_inventory",
            "search_inventory",
            "calculate_extraction_rate",
            "calculate_abv",
            "convert_units",
            "get_fermentation_progress",
            "calculate_excise_tax",
            "complete_press",
            "list_varieties",
            "start_variety_edit",
            "edit_variety",
            "cancel_variety_edit",
            "archive_variety",
            "flush_variety_edits",
            "get_notices",
            "get_dashboard_summary",
            "export_batch_report",
        } <= names


class TestBatchTools:
    """Tests for batch and packaging tools."""

    def test_list_batches(self, server):
        result = call(server, "list_batches")
        assert [b["id"] for b in result] == ["b2", "b1"]
        assert result[1]["current_volume_l"] == 98

    def test_list_batches_unknown_status(self, server):
        result = call(server, "list_batches", status="bubbling")
        assert "Unknown batch status" in result["error"]

    def test_batch_metrics(self, server):
        result = call(server, "get_batch_metrics", batch="2024-DAB-01")
        assert result["total_weight_kg"] == 150
        assert result["total_volume_l"] == 100
        assert result["extraction_rate_percent"] == pytest.approx(66.67, abs=0.01)
        assert result["composition_fraction_total"] == pytest.approx(1.0)
        assert result["packaging_run_count"] == 1
        assert result["packaged_volume_l"] == 15.2

    def test_batch_metrics_unavailable(self, server):
        result = call(server, "get_batch_metrics", batch="b2")
        assert result["extraction_rate_percent"] == "n/a"
        assert result["composition_fraction_total"] is None

    def test_batch_not_found(self, server):
        result = call(server, "get_batch_metrics", batch="nope")
        assert result == {"error": "Batch 'nope' not found"}

    def test_packaging_metrics(self, server):
        result = call(server, "get_packaging_metrics", run_id="r1")
        assert result[0]["loss_percentage"] == pytest.approx(1.3158, abs=1e-4)
        assert result[0]["loss_severity"] == "good"
        assert result[0]["cost_per_unit"] == 1.5
        assert result[0]["packaged_volume_l"] == pytest.approx(15.0)

    def test_packaging_metrics_needs_filter(self, server):
        assert "error" in call(server, "get_packaging_metrics")


class TestValidatePackagingRun:
    """Tests for the packaging pre-check tool."""

    def test_valid(self, server):
        result = call(
            server,
            "validate_packaging_run",
            batch="2024-DAB-01",
            volume_taken_l=15.2,
            units_produced=20,
            loss_l=0.2,
            package_date="2024-11-06T12:00:00",
        )
        assert result == {"valid": True, "loss_percentage": 1.32, "loss_severity": "good"}

    def test_exceeds_remaining_volume(self, server):
        result = call(
            server,
            "validate_packaging_run",
            batch="b1",
            volume_taken_l=90,
            units_produced=120,
            package_date="2024-11-06T12:00:00",
        )
        assert result["valid"] is False
        assert result["details"]["previously_packaged_l"] == 15.2
        assert result["details"]["excess_volume_l"] == pytest.approx(7.2)
        assert "Only" in result["user_message"]

    def test_batch_not_ready(self, server):
        result = call(
            server,
            "validate_packaging_run",
            batch="b2",
            volume_taken_l=7.5,
            units_produced=10,
            package_date="2024-11-06T12:00:00",
        )
        assert result["valid"] is False
        assert result["details"]["status"] == "active"

    def test_bad_package_type(self, server):
        result = call(
            server,
            "validate_packaging_run",
            batch="b1",
            volume_taken_l=7.5,
            units_produced=10,
            package_type="crate",
        )
        assert result["valid"] is False


class TestInventoryTools:
    """Tests for inventory tools."""

    def test_consolidated(self, server):
        result = call(server, "get_consolidated_inventory", material="dabinett")
        assert len(result) == 1
        row = result[0]
        assert row["total_quantity"] == 175
        assert row["total_cost"] == pytest.approx(182.5)
        assert row["average_cost"] == pytest.approx(1.0429, abs=1e-4)
        assert row["is_consolidated"] is True
        assert row["display_mode"] == "purchase_history"
        assert [p["purchase_id"] for p in row["purchase_details"]] == ["p1", "p2", "p3"]

    def test_free_fruit_row(self, server):
        result = call(server, "get_consolidated_inventory", material="Bramley")
        assert result[0]["average_cost"] == 0.0
        assert result[0]["display_mode"] == "single_purchase"

    def test_search_alias(self, server):
        result = call(server, "search_inventory", query="Bramley's Seedling")
        assert result[0]["material"] == "Bramley"

    def test_search_bad_threshold(self, server):
        result = call(server, "search_inventory", query="dabinett", threshold=2)
        assert "Threshold" in result["error"]

    def test_purchases_in_pounds(self, sample_export, config):
        sample_export["purchases"].append(
            {
                "purchaseId": "p5",
                "purchaseDate": "2024-10-08",
                "vendorName": "Hillside Orchard",
                "varietyName": "Dabinett",
                "quantity": 220,
                "unit": "lb",
                "pricePerUnit": 0.5,
            }
        )
        server = create_server(state=AppState(CideryStore.from_export(sample_export), config))

        rows = call(server, "get_consolidated_inventory")
        assert [(r["material_key"], r["unit"]) for r in rows] == [("Bramley", "kg"), ("Dabinett", "kg")]
        assert rows[1]["purchase_count"] == 4
        assert rows[1]["total_cost"] == pytest.approx(292.5)

        summary = call(server, "get_dashboard_summary")
        assert summary["inventory_value"] == pytest.approx(292.5)


class TestCalculators:
    """Tests for calculator tools."""

    def test_extraction_rate(self, server):
        result = call(server, "calculate_extraction_rate", juice_volume=700, apple_weight=1000)
        assert result["extraction_rate_percent"] == 70.0

    def test_extraction_rate_zero_weight(self, server):
        result = call(server, "calculate_extraction_rate", juice_volume=700, apple_weight=0)
        assert result["extraction_rate_percent"] == "n/a"

    def test_extraction_rate_bad_unit(self, server):
        result = call(
            server, "calculate_extraction_rate", juice_volume=700, apple_weight=1000, weight_unit="stone"
        )
        assert "error" in result

    def test_abv(self, server):
        result = call(server, "calculate_abv", original_gravity=1.050, final_gravity=1.000)
        assert result == {"abv": 6.56, "potential_abv": 6.56, "attenuation_percent": 100.0}

    def test_abv_invalid(self, server):
        result = call(server, "calculate_abv", original_gravity=1.000, final_gravity=1.050)
        assert "error" in result

    def test_convert_units(self, server):
        result = call(server, "convert_units", value=1, from_unit="gal", to_unit="L")
        assert result["result"] == pytest.approx(3.785412)
        assert result["kind"] == "volume"

    def test_convert_incompatible(self, server):
        result = call(server, "convert_units", value=1, from_unit="kg", to_unit="L")
        assert "error" in result

    def test_excise_tax(self, server):
        result = call(server, "calculate_excise_tax", volume=1000, unit="gal")
        assert result["net_tax_owed"] == 170.0
        assert result["volume_l"] == pytest.approx(3785.41, abs=0.01)

    def test_fermentation_progress(self, server):
        result = call(server, "get_fermentation_progress", batch="2024-KB-02")
        assert result["stage"] == "mid"
        assert result["is_stalled"] is True
        assert result["alert_priority"] == "high"
        assert result["target_final_gravity"] == 0.998


class TestPressTool:
    """Tests for press run completion."""

    def test_creates_batches(self, server, store):
        result = call(
            server,
            "complete_press",
            press_run_id="pr-7",
            loads=[
                {"purchase_item_id": "p1", "variety_name": "Dabinett", "weight_kg": 600, "unit_cost": 1.0},
                {"purchase_item_id": "p4", "variety_name": "Bramley", "weight_kg": 400},
            ],
            juice_volume_l=700,
            assignments=[{"vessel_id": "T4", "volume_l": 700, "capacity_l": 1000}],
        )
        assert result["extraction_rate_percent"] == 70.0
        assert result["batches"][0]["id"] == "pr-7-1"
        assert store.get_batch("pr-7-1").status.value == "planned"

    def test_bad_allocation(self, server):
        result = call(
            server,
            "complete_press",
            press_run_id="pr-7",
            loads=[{"purchase_item_id": "p1", "variety_name": "Dabinett", "weight_kg": 600}],
            juice_volume_l=400,
            assignments=[{"vessel_id": "T4", "volume_l": 400}],
            allocation="volume",
        )
        assert "error" in result

    def test_over_assigned(self, server):
        result = call(
            server,
            "complete_press",
            press_run_id="pr-7",
            loads=[{"purchase_item_id": "p1", "variety_name": "Dabinett", "weight_kg": 600}],
            juice_volume_l=400,
            assignments=[{"vessel_id": "T4", "volume_l": 500}],
        )
        assert "exceeds available juice" in result["error"]


class TestVarietyTools:
    """Tests for variety editing tools."""

    def edit(self, server, variety_id, field, value):
        call(server, "start_variety_edit", variety_id=variety_id, field=field)
        return call(server, "edit_variety", variety_id=variety_id, field=field, value=value)

    def test_edit_is_buffered_until_flush(self, server, store):
        result = self.edit(server, "v1", "tannin", "Medium")
        assert result["staged"] == {"tannin": "medium"}
        assert store.get_variety("v1").tannin == "high"

        flushed = call(server, "flush_variety_edits")
        assert flushed == {"written": {"v1": {"tannin": "medium"}}, "still_pending": {}}
        assert store.get_variety("v1").tannin == "medium"

        notices = call(server, "get_notices")
        assert notices[0]["level"] == "success"
        assert notices[0]["message"] == "Variety Dabinett updated successfully"
        assert call(server, "get_notices") == []

    def test_edits_merge_per_row(self, server):
        self.edit(server, "v2", "tannin", "high")
        result = self.edit(server, "v2", "acid", "high")
        assert result["pending"] == {"tannin": "high", "acid": "high"}

        varieties = call(server, "list_varieties")
        kingston = next(v for v in varieties if v["id"] == "v2")
        assert kingston["pending_changes"] == {"tannin": "high", "acid": "high"}
        call(server, "flush_variety_edits")

    def test_start_opens_one_cell(self, server, state):
        opened = call(server, "start_variety_edit", variety_id="v1", field="tannin")
        assert opened == {"editing": {"variety_id": "v1", "field": "tannin"}, "current_value": "high"}
        assert state.edit_state.is_editing("v1", "tannin")

        call(server, "start_variety_edit", variety_id="v2", field="acid")
        assert not state.edit_state.is_editing("v1", "tannin")
        editing = {v["id"]: v["editing_field"] for v in call(server, "list_varieties")}
        assert editing == {"v1": None, "v2": "acid"}

    def test_edit_requires_open_cell(self, server, state):
        result = call(server, "edit_variety", variety_id="v1", field="tannin", value="low")
        assert result == {"error": "Field 'tannin' of variety 'v1' is not open for editing"}
        assert len(state.variety_updates) == 0

    def test_edit_other_cell_rejected(self, server, state):
        call(server, "start_variety_edit", variety_id="v1", field="tannin")
        result = call(server, "edit_variety", variety_id="v1", field="acid", value="low")
        assert "not open for editing" in result["error"]
        assert state.edit_state.is_editing("v1", "tannin")

    def test_staging_closes_cell(self, server, state):
        self.edit(server, "v1", "tannin", "low")
        assert state.edit_state.current is None
        again = call(server, "edit_variety", variety_id="v1", field="tannin", value="medium")
        assert "not open for editing" in again["error"]

    def test_cancel(self, server, state):
        call(server, "start_variety_edit", variety_id="v1", field="acid")
        assert call(server, "cancel_variety_edit") == {"cancelled": {"variety_id": "v1", "field": "acid"}}
        assert state.edit_state.current is None
        assert call(server, "cancel_variety_edit") == {"cancelled": None}
        assert len(state.variety_updates) == 0

    def test_viewer_denied(self, server, state):
        result = call(server, "start_variety_edit", variety_id="v1", field="tannin", role="viewer")
        assert result == {"error": "Viewers cannot edit varieties"}
        assert state.edit_state.current is None

    def test_unknown_role(self, server):
        result = call(server, "start_variety_edit", variety_id="v1", field="tannin", role="owner")
        assert result == {"error": "Unknown role 'owner'"}

    def test_field_not_editable(self, server):
        result = call(server, "start_variety_edit", variety_id="v1", field="id")
        assert "not editable" in result["error"]

    def test_unknown_variety(self, server, state):
        result = call(server, "start_variety_edit", variety_id="v9", field="tannin")
        assert "v9" in result["error"]
        assert state.edit_state.current is None

    def test_invalid_value_keeps_cell_open(self, server, state):
        result = self.edit(server, "v1", "tannin", "extreme")
        assert "expected one of" in result["error"]
        assert len(state.variety_updates) == 0
        assert state.edit_state.is_editing("v1", "tannin")

    def test_failed_write_stays_pending(self, server, store):
        self.edit(server, "v2", "name", "dabinett")
        flushed = call(server, "flush_variety_edits")

        assert flushed["written"] == {}
        assert flushed["still_pending"] == {"v2": {"name": "dabinett"}}
        assert store.get_variety("v2").name == "Kingston Black"
        notices = call(server, "get_notices")
        assert notices[0]["level"] == "error"
        assert "already exists" in notices[0]["message"]

    def test_archive_and_restore(self, server):
        archived = call(server, "archive_variety", variety_id="v1")
        assert archived["isActive"] is False
        names = [v["name"] for v in call(server, "list_varieties")]
        assert names == ["Kingston Black"]

        restored = call(server, "archive_variety", variety_id="v1", restore=True)
        assert restored["isActive"] is True

    def test_fuzzy_filter(self, server):
        result = call(server, "list_varieties", include_inactive=True, query="fox whelp")
        assert [v["id"] for v in result] == ["v3"]


class TestReportTools:
    """Tests for dashboard and export tools."""

    def test_dashboard(self, server):
        result = call(server, "get_dashboard_summary")
        assert result["status_counts"]["aging"] == 1
        assert result["active_batch_count"] == 1
        assert result["cellar_volume_l"] == 298.0
        assert result["units_packaged"] == 20
        assert result["inventory_value"] == 182.5
        assert result["fermentation_alerts"][0]["batch_id"] == "b2"

    def test_inventory_export(self, server):
        result = call(server, "export_batch_report", report="inventory")
        assert result["filename"].startswith("inventory_")
        rows = list(csv.DictReader(io.StringIO(result["content"])))
        assert [row["Material"] for row in rows] == ["Bramley", "Dabinett"]

    def test_packaging_export_for_batch(self, server):
        result = call(server, "export_batch_report", report="packaging", batch="2024-DAB-01")
        rows = list(csv.DictReader(io.StringIO(result["content"])))
        assert rows[0]["RunId"] == "r1"
        assert rows[0]["CostPerUnit"] == "1.5"

    def test_unknown_report(self, server):
        result = call(server, "export_batch_report", report="sales")
        assert result == {"error": "Unknown report 'sales'"}
