"""
In-memory store of cidery records loaded from a JSON export.
"""

import json
import logging
from pathlib import Path
from typing import Any

from cidery_common.exceptions import NotFoundError, ValidationError
from cidery_common.inventory import (
    by_material,
    by_material_and_vendor,
    consolidate_purchases,
)
from cidery_common.models import (
    AppleVariety,
    Batch,
    BatchStatus,
    ConsolidatedInventoryRow,
    PackagingRun,
    PurchaseDetail,
)

from mcp_cidery.adapter import CideryAdapter

logger = logging.getLogger(__name__)


class CideryStore:
    """
    Batches, packaging runs, purchases and varieties keyed by id.

    Records are immutable models; updates replace the stored model.
    """

    def __init__(self):
        self.batches: dict[str, Batch] = {}
        self.packaging_runs: dict[str, PackagingRun] = {}
        self.purchases: list[PurchaseDetail] = []
        self.varieties: dict[str, AppleVariety] = {}

    @classmethod
    def from_export(cls, data: dict[str, Any], adapter: CideryAdapter | None = None) -> "CideryStore":
        """
        Build a store from a parsed export.

        Expected top-level keys: "batches", "packagingRuns", "purchases",
        "appleVarieties". Missing keys load as empty.
        """
        adapter = adapter or CideryAdapter()
        store = cls()
        for raw in data.get("batches", []):
            batch = adapter.to_batch(raw)
            store.batches[batch.id] = batch
        for raw in data.get("packagingRuns", []):
            run = adapter.to_packaging_run(raw)
            store.packaging_runs[run.id] = run
        store.purchases = [adapter.to_purchase(raw) for raw in data.get("purchases", [])]
        for raw in data.get("appleVarieties", []):
            variety = adapter.to_variety(raw)
            store.varieties[variety.id] = variety

        logger.info(
            "Loaded %d batches, %d packaging runs, %d purchases, %d varieties",
            len(store.batches),
            len(store.packaging_runs),
            len(store.purchases),
            len(store.varieties),
        )
        return store

    @classmethod
    def load(cls, path: Path) -> "CideryStore":
        """
        Load a store from a JSON export file.

        Raises:
            ValidationError: If the file is not UTF-8 JSON or a record is invalid
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except UnicodeDecodeError as e:
            raise ValidationError(f"{path} is not UTF-8 text: {e}") from e
        except json.JSONDecodeError as e:
            raise ValidationError(f"{path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"{path} must contain a JSON object")
        return cls.from_export(data)

    # ==================== Batches ====================

    def get_batch(self, batch_id: str) -> Batch:
        try:
            return self.batches[batch_id]
        except KeyError:
            raise NotFoundError(f"Batch '{batch_id}' not found") from None

    def find_batch(self, identifier: str) -> Batch:
        """Find a batch by id, or by name case-insensitively."""
        if identifier in self.batches:
            return self.batches[identifier]
        for batch in self.batches.values():
            if batch.name.lower() == identifier.lower():
                return batch
        raise NotFoundError(f"Batch '{identifier}' not found")

    def list_batches(self, status: BatchStatus | str | None = None) -> list[Batch]:
        """Batches, newest start first, optionally filtered by status."""
        batches = list(self.batches.values())
        if status:
            wanted = BatchStatus(status)
            batches = [b for b in batches if b.status == wanted]
        return sorted(batches, key=lambda b: b.start_date, reverse=True)

    # ==================== Packaging ====================

    def get_packaging_run(self, run_id: str) -> PackagingRun:
        try:
            return self.packaging_runs[run_id]
        except KeyError:
            raise NotFoundError(f"Packaging run '{run_id}' not found") from None

    def runs_for_batch(self, batch_id: str) -> list[PackagingRun]:
        return sorted(
            (r for r in self.packaging_runs.values() if r.batch_id == batch_id),
            key=lambda r: r.package_date,
        )

    def packaged_volume_l(self, batch_id: str) -> float:
        """Volume already drawn from a batch by packaging."""
        return sum(r.volume_taken_l for r in self.runs_for_batch(batch_id))

    # ==================== Inventory ====================

    def consolidated_inventory(self, group_by_vendor: bool = False) -> list[ConsolidatedInventoryRow]:
        key = by_material_and_vendor if group_by_vendor else by_material
        return consolidate_purchases(self.purchases, key=key)

    # ==================== Varieties ====================

    def get_variety(self, variety_id: str) -> AppleVariety:
        try:
            return self.varieties[variety_id]
        except KeyError:
            raise NotFoundError(f"Apple variety '{variety_id}' not found") from None

    def list_varieties(self, include_inactive: bool = False) -> list[AppleVariety]:
        varieties = sorted(self.varieties.values(), key=lambda v: v.name.lower())
        if include_inactive:
            return varieties
        return [v for v in varieties if v.is_active]

    def put_variety(self, variety: AppleVariety) -> None:
        """
        Store a variety, replacing any with the same id.

        Raises:
            ValidationError: If another active variety already has the name
        """
        for other in self.varieties.values():
            if (
                other.id != variety.id
                and other.is_active
                and other.name.lower() == variety.name.lower()
            ):
                raise ValidationError(f"A variety named '{variety.name}' already exists")
        self.varieties[variety.id] = variety
