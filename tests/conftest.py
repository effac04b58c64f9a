from datetime import datetime, timezone

import pytest

from reflex_data_table.columns import ColumnRegistry
from reflex_data_table.models import ColumnDescriptor


class ManualClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fixed_now() -> datetime:
    # A Wednesday.
    return datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def workload_rows() -> list[dict]:
    return [
        {
            "id": "w1",
            "name": "api-gateway",
            "status": "running",
            "regions": ["eu", "us"],
            "cpu": 4,
            "created": "2024-05-01T10:00:00Z",
            "owner": {"team": "platform"},
        },
        {
            "id": "w2",
            "name": "Billing",
            "status": "stopped",
            "regions": ["eu"],
            "cpu": 2,
            "created": "2024-05-10T08:30:00Z",
            "owner": {"team": "payments"},
        },
        {
            "id": "w3",
            "name": "cron-runner",
            "status": "running",
            "regions": [],
            "cpu": None,
            "created": None,
            "owner": {"team": "platform"},
        },
        {
            "id": "w4",
            "name": "dashboard",
            "status": "pending",
            "regions": ["ap", "eu", "us"],
            "cpu": 8,
            "created": "2024-04-20T00:00:00Z",
            "owner": None,
        },
    ]


@pytest.fixture
def workload_columns() -> list[ColumnDescriptor]:
    return [
        ColumnDescriptor(id="name", header="Name", accessor_key="name"),
        ColumnDescriptor(id="status", header="Status", accessor_key="status", facetable=True),
        ColumnDescriptor(id="regions", header="Regions", accessor_key="regions", facetable=True),
        ColumnDescriptor(id="cpu", header="CPU", accessor_key="cpu", sort_type="numeric"),
        ColumnDescriptor(id="created", header="Created", accessor_key="created", sort_type="date"),
        ColumnDescriptor(id="team", header="Team", accessor_key="owner.team"),
        ColumnDescriptor(id="actions", header="Actions"),
    ]


@pytest.fixture
def registry(workload_columns) -> ColumnRegistry:
    return ColumnRegistry(workload_columns)
