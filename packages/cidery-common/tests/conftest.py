"""
Shared builders for cidery-common tests.
"""

from datetime import date, datetime

import pytest
from cidery_common.models import (
    Batch,
    BatchStatus,
    Composition,
    Measurement,
    PackagingRun,
    PurchaseDetail,
)


def _make_purchase(
    purchase_id: str,
    quantity: float,
    unit_price: float | None,
    material_key: str = "Dabinett",
    vendor_name: str = "Hillside Orchard",
    purchase_date: date = date(2024, 9, 1),
    unit: str = "kg",
) -> PurchaseDetail:
    return PurchaseDetail(
        purchase_id=purchase_id,
        purchase_date=purchase_date,
        vendor_name=vendor_name,
        material_key=material_key,
        quantity=quantity,
        unit=unit,
        unit_price=unit_price,
    )


def _make_run(
    volume_taken_l: float = 100.0,
    loss_l: float = 3.0,
    units_produced: int = 129,
    package_size_ml: float = 750.0,
    total_cost: float | None = None,
    run_id: str = "run-1",
    batch_id: str = "b1",
    package_date: datetime = datetime(2024, 11, 5, 10, 0),
    **extra,
) -> PackagingRun:
    return PackagingRun(
        id=run_id,
        batch_id=batch_id,
        package_date=package_date,
        package_size_ml=package_size_ml,
        units_produced=units_produced,
        volume_taken_l=volume_taken_l,
        loss_l=loss_l,
        total_cost=total_cost,
        **extra,
    )


@pytest.fixture
def make_purchase():
    return _make_purchase


@pytest.fixture
def make_run():
    return _make_run


@pytest.fixture
def three_purchases() -> list[PurchaseDetail]:
    return [
        _make_purchase("p2", 50, 1.20, purchase_date=date(2024, 9, 15)),
        _make_purchase("p1", 100, 1.00, purchase_date=date(2024, 9, 1)),
        _make_purchase("p3", 25, 0.90, purchase_date=date(2024, 10, 2)),
    ]


@pytest.fixture
def aging_batch() -> Batch:
    return Batch(
        id="b1",
        name="2024-DAB-01",
        status=BatchStatus.AGING,
        start_date=datetime(2024, 9, 20),
        vessel_id="T1",
        compositions=[
            Composition(variety_name="Dabinett", weight_kg=100, juice_volume_l=70, fraction=0.7),
            Composition(variety_name="Kingston Black", weight_kg=50, juice_volume_l=30, fraction=0.3),
        ],
        measurements=[
            Measurement(measurement_date=datetime(2024, 9, 20), specific_gravity=1.055, volume_l=100),
            Measurement(measurement_date=datetime(2024, 10, 20), specific_gravity=1.000, volume_l=98),
            Measurement(measurement_date=datetime(2024, 10, 1), specific_gravity=1.020),
        ],
    )
