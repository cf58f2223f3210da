"""
Fixtures for the cidery MCP server tests.
"""

import copy

import pytest

from mcp_cidery.config import CideryConfig
from mcp_cidery.server import create_server
from mcp_cidery.state import AppState
from mcp_cidery.store import CideryStore

SAMPLE_EXPORT = {
    "batches": [
        {
            "id": "b1",
            "name": "2024-DAB-01",
            "status": "aging",
            "startDate": "2024-09-20T00:00:00",
            "vesselId": "T1",
            "originalGravity": 1.055,
            "targetFinalGravity": "1.000",
            "composition": [
                {
                    "varietyName": "Dabinett",
                    "vendorName": "Hillside Orchard",
                    "inputWeight": 100,
                    "juiceVolume": 70,
                    "fractionOfBatch": 0.7,
                    "materialCost": 100,
                },
                {
                    "varietyName": "Kingston Black",
                    "inputWeight": 50,
                    "juiceVolume": 30,
                    "fractionOfBatch": 0.3,
                },
            ],
            "measurements": [
                {"measurementDate": "2024-09-20T00:00:00", "specificGravity": 1.055, "volume": 100},
                {
                    "measurementDate": "2024-10-20T00:00:00",
                    "specificGravity": "1.000",
                    "volume": 98,
                    "temperature": 68,
                    "temperatureUnit": "F",
                    "measurementMethod": "hydrometer",
                },
            ],
        },
        {
            "id": "b2",
            "name": "2024-KB-02",
            "status": "active",
            "startDate": "2024-10-20",
            "originalGravity": 1.050,
            "targetFinalGravity": 0.998,
            "measurements": [
                {"measurementDate": "2024-11-01T12:00:00", "specificGravity": 1.010, "volume": 200},
                {"measurementDate": "2024-11-05T12:00:00", "specificGravity": 1.0095},
            ],
        },
    ],
    "packagingRuns": [
        {
            "id": "r1",
            "batchId": "b1",
            "packagedAt": "2024-11-05T10:00:00",
            "packageType": "bottle",
            "packageSize": "750ml",
            "unitsProduced": 20,
            "volumeTaken": 15.2,
            "loss": 0.2,
            "totalCost": 30,
        },
    ],
    "purchases": [
        {
            "purchaseId": "p1",
            "purchaseDate": "2024-09-01",
            "vendorName": "Hillside Orchard",
            "varietyName": "Dabinett",
            "quantity": 100,
            "unit": "kg",
            "pricePerUnit": 1.0,
        },
        {
            "purchaseId": "p2",
            "purchaseDate": "2024-09-15",
            "vendorName": "Hillside Orchard",
            "varietyName": "Dabinett",
            "quantity": "50",
            "unit": "kg",
            "pricePerUnit": "1.20",
        },
        {
            "purchaseId": "p3",
            "purchaseDate": "2024-10-02",
            "vendorName": "Valley Farm",
            "varietyName": "Dabinett",
            "quantity": 25,
            "unit": "kg",
            "totalCost": 22.5,
        },
        {
            "purchaseId": "p4",
            "purchaseDate": "2024-10-05T08:30:00Z",
            "vendorName": "Valley Farm",
            "varietyName": "Bramley",
            "quantity": 40,
            "unit": "kg",
        },
    ],
    "appleVarieties": [
        {"id": "v1", "name": "Dabinett", "ciderCategory": "bittersweet", "tannin": "high", "acid": "low"},
        {"id": "v2", "name": "Kingston Black", "ciderCategory": "bittersharp"},
        {"id": "v3", "name": "Foxwhelp", "isActive": False},
    ],
}


@pytest.fixture
def sample_export():
    return copy.deepcopy(SAMPLE_EXPORT)


@pytest.fixture
def store(sample_export):
    return CideryStore.from_export(sample_export)


@pytest.fixture
def config():
    # Long delay so edits only land on an explicit flush
    return CideryConfig(edit_flush_delay=60)


@pytest.fixture
def state(store, config):
    return AppState(store, config)


@pytest.fixture
def server(state):
    return create_server(state=state)
