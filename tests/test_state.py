import asyncio
import copy
import inspect
import json
from datetime import datetime, timezone
from types import SimpleNamespace

import polars as pl
import pytest
from pydantic import ValidationError

from reflex_data_table.models import ColumnDescriptor, DateRange
from reflex_data_table.state import (
    ROW_ID_KEY,
    DataTableMixin,
    _cache_registry,
    _coerce_frontend_value,
    _get_cache,
    _row_payload,
)
from reflex_data_table.table import DataTable

COLUMNS = [
    ColumnDescriptor(id="name", header="Name", accessor_key="name"),
    ColumnDescriptor(id="status", header="Status", accessor_key="status", facetable=True),
]

ROWS = [
    {"id": 1, "name": "api", "status": "running"},
    {"id": 2, "name": "billing", "status": "stopped"},
    {"id": 3, "name": "cron", "status": "running"},
]

_SESSION_DEFAULTS = {
    "_dt_cache_id": "",
    "_dt_pagination": {},
    "_dt_server_page": {},
    "_dt_server_rows": [],
    "_dt_sync_url": False,
    "dt_filters": {},
    "dt_sort": [],
    "dt_selected_ids": [],
    "dt_inline": {"mode": "closed", "editing_row_id": None},
    "dt_total_count": 0,
    "dt_filtered_count": 0,
}


class WorkloadsState:
    """One browser session of a ``DataTableMixin`` state, without the Reflex runtime."""

    def __init__(self, params=None):
        self.router = SimpleNamespace(page=SimpleNamespace(params=params or {}))
        for name, value in _SESSION_DEFAULTS.items():
            setattr(self, name, copy.deepcopy(value))


for _name, _value in list(vars(DataTableMixin).items()):
    _fn = getattr(_value, "fn", _value)
    if inspect.isfunction(_fn) and not _name.startswith("__"):
        setattr(WorkloadsState, _name, _fn)


def _run(events):
    if events is not None:
        for _ in events:
            pass


def _upload(events):
    async def drain():
        async for _ in events:
            pass

    asyncio.run(drain())


class _UploadedFile:
    def __init__(self, payload):
        self._content = json.dumps(payload).encode("utf-8")

    async def read(self):
        return self._content


def _names(session):
    return [row["name"] for row in session.dt_rows]


@pytest.fixture(autouse=True)
def _fresh_cache():
    _cache_registry.clear()
    yield
    _cache_registry.clear()


@pytest.fixture
def session():
    state = WorkloadsState()
    _run(state.set_data_table(COLUMNS, ROWS, row_id="id", page_size=2))
    return state


# --- module helpers ---

def test_cache_entries_are_shared_per_state_class():
    assert _get_cache("WorkloadsState") is _get_cache("WorkloadsState")
    assert _get_cache("WorkloadsState") is not _get_cache("AuditState")


def test_frontend_values_are_coerced():
    assert _coerce_frontend_value("") is None
    assert _coerce_frontend_value("preset:today") == DateRange(preset="today")
    assert _coerce_frontend_value("preset:someday") is None
    assert _coerce_frontend_value("range:1704067200000_") == DateRange(
        start=datetime(2024, 1, 1, tzinfo=timezone.utc)
    )
    assert _coerce_frontend_value(["a"]) == ["a"]


def test_row_payload_is_json_safe_and_carries_the_row_id():
    table = DataTable(COLUMNS, row_id="id")
    payload = _row_payload(table, {"id": 7, "name": "api", "created": datetime(2024, 1, 1)})
    assert payload[ROW_ID_KEY] == "7"
    assert payload["created"] == "2024-01-01T00:00:00"


def test_row_payload_without_row_id():
    payload = _row_payload(DataTable(COLUMNS), {"name": "api"})
    assert ROW_ID_KEY not in payload


# --- set_data_table ---

def test_set_data_table_publishes_the_first_view(session):
    assert session.dt_loaded and not session.dt_loading
    assert session.dt_status == "Ready: 3 rows."
    assert _names(session) == ["api", "billing"]
    assert session.dt_rows[0][ROW_ID_KEY] == "1"
    assert session.dt_page["page_count"] == 2
    assert [c["field"] for c in session.dt_columns] == ["name", "status"]
    assert session.dt_facets["status"][0]["value"] == "running"


def test_handlers_before_set_data_table_do_nothing():
    state = WorkloadsState()
    _run(state.handle_dt_filter("status", ["running"]))
    state.handle_dt_page("next")
    assert state.dt_filters == {}
    assert state.dt_filtered_count == 0


def test_set_data_table_rejects_a_zero_page_size():
    with pytest.raises(ValidationError):
        _run(WorkloadsState().set_data_table(COLUMNS, ROWS, page_size=0))


# --- handlers ---

def test_handle_dt_filter(session):
    _run(session.handle_dt_filter("status", ["running"]))
    assert session.dt_filters == {"status": '["running"]'}
    assert session.dt_filtered_count == 2
    assert session.dt_active_filter_count == 1

    _run(session.handle_dt_filter("status", ""))
    assert session.dt_filters == {}
    assert session.dt_filtered_count == 3


def test_handle_dt_search(session):
    _run(session.handle_dt_search("bill"))
    assert session.dt_filters == {"q": "bill"}
    assert session.dt_search_query == "bill"
    assert _names(session) == ["billing"]


def test_handle_dt_sort_cycles(session):
    _run(session.handle_dt_sort("name"))
    _run(session.handle_dt_sort("name"))
    assert session.dt_sort == [{"column_id": "name", "direction": "desc"}]
    assert _names(session) == ["cron", "billing"]


def test_handle_dt_page(session):
    session.handle_dt_page("next")
    assert session.dt_page["page_index"] == 1
    assert _names(session) == ["cron"]

    session.handle_dt_page("first")
    assert _names(session) == ["api", "billing"]


def test_filter_change_returns_to_the_first_page(session):
    session.handle_dt_page(1)
    _run(session.handle_dt_filter("status", ["running"]))
    assert session.dt_page["page_index"] == 0


def test_handle_dt_page_size(session):
    session.handle_dt_page_size("10")
    assert session.dt_page["page_size"] == 10
    assert len(session.dt_rows) == 3


def test_row_selection(session):
    session.toggle_dt_row("2")
    assert session.dt_selected_ids == ["2"]
    assert session.dt_some_selected and not session.dt_all_selected

    session.toggle_dt_select_all()
    assert session.dt_selected_ids == ["1", "2"]
    session.clear_dt_selection()
    assert session.dt_selected_ids == []


def test_clear_dt_filters(session):
    _run(session.handle_dt_filter("status", ["running"]))
    _run(session.handle_dt_search("cron"))
    _run(session.clear_dt_filters())
    assert session.dt_filters == {}
    assert session.dt_filtered_count == 3


def test_load_dt_url_filters():
    state = WorkloadsState(params={"status": '["running"]', "tab": "overview"})
    _run(state.set_data_table(COLUMNS, ROWS, row_id="id"))
    state.load_dt_url_filters()
    assert state.dt_filters == {"status": '["running"]'}
    assert _names(state) == ["api", "cron"]


def test_handle_dt_preset_upload(session):
    preset = {
        "filters": {"status": '["running"]'},
        "sort": [{"column_id": "name", "direction": "desc"}],
    }
    _upload(session.handle_dt_preset_upload([_UploadedFile(preset)]))
    assert _names(session) == ["cron", "api"]
    assert session.dt_status == "Preset applied: 1 filter(s), 1 sort(s). 2 rows match."
    assert not session.dt_loading


# --- sessions sharing one state class ---

def test_sessions_keep_their_own_state(session):
    other = WorkloadsState()
    other._dt_cache_id = session._dt_cache_id
    other._dt_pagination = dict(session._dt_pagination)

    _run(session.handle_dt_filter("status", ["stopped"]))
    other.handle_dt_page("next")
    assert other.dt_filters == {}
    assert _names(other) == ["cron"]
    assert _names(session) == ["billing"]


def test_suspended_handler_writes_only_its_own_session(session):
    other = WorkloadsState()
    other._dt_cache_id = session._dt_cache_id
    other._dt_pagination = dict(session._dt_pagination)

    pending = session.handle_dt_filter("status", ["running"])
    next(pending)
    _run(other.handle_dt_sort("name"))
    _run(other.handle_dt_filter("name", "bill"))
    _run(pending)

    assert session.dt_filters == {"status": '["running"]'}
    assert session.dt_sort == []
    assert _names(session) == ["api", "cron"]
    assert other.dt_filters == {"name": "bill"}
    assert other.dt_sort == [{"column_id": "name", "direction": "asc"}]


# --- server mode ---

@pytest.fixture
def server_session():
    frame = pl.DataFrame(
        {
            "id": [1, 2, 3, 4, 5],
            "name": ["api", "billing", "cron", "dashboard", "etl"],
            "status": ["running", "stopped", "running", "pending", "running"],
        }
    )
    state = WorkloadsState()
    _run(state.set_data_table(lf=frame.lazy(), server=True, page_size=2))
    return state


def test_server_mode_pages_through_the_frame(server_session):
    assert server_session.dt_total_count == 5
    assert _names(server_session) == ["api", "billing"]

    server_session.handle_dt_page("next")
    assert _names(server_session) == ["cron", "dashboard"]
    assert server_session.dt_page["page_index"] == 1

    server_session.handle_dt_page_size(5)
    assert len(server_session.dt_rows) == 5
    assert server_session.dt_page["page_index"] == 0


def test_server_mode_filters_restart_at_the_first_page(server_session):
    server_session.handle_dt_page("next")
    _run(server_session.handle_dt_filter("status", ["running"]))
    assert server_session.dt_filtered_count == 3
    assert server_session.dt_page["page_index"] == 0
    assert _names(server_session) == ["api", "cron"]
