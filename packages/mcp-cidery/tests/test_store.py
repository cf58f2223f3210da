"""
Tests for the in-memory cidery store.
"""

import json

import pytest
from cidery_common.exceptions import NotFoundError, ValidationError

from mcp_cidery.store import CideryStore


class TestLoading:
    """Tests for loading exports."""

    def test_from_export(self, store):
        assert set(store.batches) == {"b1", "b2"}
        assert set(store.packaging_runs) == {"r1"}
        assert len(store.purchases) == 4
        assert len(store.varieties) == 3

    def test_missing_sections(self):
        store = CideryStore.from_export({})
        assert store.batches == {}
        assert store.purchases == []

    def test_load_file(self, tmp_path, sample_export):
        path = tmp_path / "cidery.json"
        path.write_text(json.dumps(sample_export))
        assert len(CideryStore.load(path).batches) == 2

    def test_load_invalid_json(self, tmp_path):
        path = tmp_path / "cidery.json"
        path.write_text("{not json")
        with pytest.raises(ValidationError, match="not valid JSON"):
            CideryStore.load(path)

    def test_load_not_utf8(self, tmp_path):
        path = tmp_path / "cidery.json"
        path.write_bytes(b'{"batches": "\xff\xfe"}')
        with pytest.raises(ValidationError, match="not UTF-8"):
            CideryStore.load(path)

    def test_load_non_object(self, tmp_path):
        path = tmp_path / "cidery.json"
        path.write_text("[]")
        with pytest.raises(ValidationError, match="JSON object"):
            CideryStore.load(path)


class TestBatches:
    """Tests for batch lookup."""

    def test_find_by_name(self, store):
        assert store.find_batch("2024-kb-02").id == "b2"

    def test_not_found(self, store):
        with pytest.raises(NotFoundError, match="Batch 'b9' not found"):
            store.find_batch("b9")

    def test_list_newest_first(self, store):
        assert [b.id for b in store.list_batches()] == ["b2", "b1"]

    def test_list_by_status(self, store):
        assert [b.id for b in store.list_batches("aging")] == ["b1"]

    def test_packaged_volume(self, store):
        assert store.packaged_volume_l("b1") == 15.2
        assert store.packaged_volume_l("b2") == 0


class TestInventory:
    """Tests for consolidated inventory."""

    def test_by_material(self, store):
        rows = store.consolidated_inventory()
        assert [(r.material_key, r.purchase_count) for r in rows] == [("Bramley", 1), ("Dabinett", 3)]

    def test_by_vendor(self, store):
        rows = store.consolidated_inventory(group_by_vendor=True)
        assert [(r.material_key, r.vendor_name) for r in rows] == [
            ("Bramley", "Valley Farm"),
            ("Dabinett", "Hillside Orchard"),
            ("Dabinett", "Valley Farm"),
        ]

    def test_pounds_and_kilograms_consolidate(self, sample_export):
        sample_export["purchases"].append(
            {
                "purchaseId": "p5",
                "purchaseDate": "2024-10-08",
                "vendorName": "Hillside Orchard",
                "varietyName": "Dabinett",
                "quantity": 220.462,
                "unit": "lb",
                "pricePerUnit": 0.5,
            }
        )
        rows = {r.material_key: r for r in CideryStore.from_export(sample_export).consolidated_inventory()}

        dabinett = rows["Dabinett"]
        assert dabinett.unit == "kg"
        assert dabinett.purchase_count == 4
        assert dabinett.total_quantity == pytest.approx(275.0)
        assert dabinett.total_cost == pytest.approx(182.5 + 110.231)
        assert rows["Bramley"].purchase_count == 1


class TestVarieties:
    """Tests for variety storage."""

    def test_active_only(self, store):
        assert [v.name for v in store.list_varieties()] == ["Dabinett", "Kingston Black"]
        assert len(store.list_varieties(include_inactive=True)) == 3

    def test_duplicate_active_name(self, store):
        with pytest.raises(ValidationError, match="already exists"):
            store.put_variety(store.get_variety("v2").renamed("dabinett"))

    def test_archived_name_can_be_reused(self, store):
        store.put_variety(store.get_variety("v2").renamed("Foxwhelp"))
        assert store.get_variety("v2").name == "Foxwhelp"
