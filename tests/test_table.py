from datetime import datetime, timezone

import pytest

from reflex_data_table.actions import MultiAction, RowAction
from reflex_data_table.exceptions import ColumnConfigError, SelectionUnavailableError
from reflex_data_table.models import ColumnDescriptor, DateRange, SortRule
from reflex_data_table.pagination import ClientPaging, ServerPageInfo, ServerPaging
from reflex_data_table.table import DataTable
from reflex_data_table.toolbar import SearchConfig

COLUMNS = [
    ColumnDescriptor(id="name", header="Name", accessor_key="name"),
    ColumnDescriptor(id="status", header="Status", accessor_key="status", facetable=True),
    ColumnDescriptor(id="created", header="Created", accessor_key="created", sort_type="date"),
    ColumnDescriptor(id="menu", header=""),
]


def _make_rows(n=25):
    return [
        {
            "id": f"r{i}",
            "name": f"row {i:02d}",
            "status": "running" if i % 2 == 0 else "stopped",
            "created": datetime(2024, 5, 1 + i % 28, tzinfo=timezone.utc),
        }
        for i in range(n)
    ]


def _ids(rows):
    return [row["id"] for row in rows]


@pytest.fixture
def rows():
    return _make_rows()


@pytest.fixture
def table(rows, clock):
    return DataTable(COLUMNS, rows, row_id="id", paging=ClientPaging(page_size=10), clock=clock)


# --- view ---

def test_initial_view(table):
    handle = table.view()
    assert _ids(handle.rows) == [f"r{i}" for i in range(10)]
    assert (handle.filtered_count, handle.total_count) == (25, 25)
    assert handle.page.page_count == 3
    assert handle.row_count_label == "Showing 25 records"
    assert not handle.has_active_filters
    assert handle.search_hint == "Searching: Name, Status, Created"


def test_handle_is_a_snapshot(table):
    handle = table.view()
    handle.set_filter("status", ["running"])
    assert handle.filtered_count == 25
    assert table.view().filtered_count == 13


# --- filters ---

def test_filter_change_resets_page_and_notifies(rows, clock):
    changes = []
    table = DataTable(
        COLUMNS,
        rows,
        row_id="id",
        paging=ClientPaging(page_size=10),
        on_filters_change=changes.append,
        clock=clock,
    )
    table.next_page()
    table.next_page()
    assert table.view().page.page_index == 2

    table.set_filter("status", ["running"])
    handle = table.view()
    assert handle.page.page_index == 0
    assert handle.filtered_count == 13
    assert handle.page.page_count == 2
    assert handle.row_count_label == "Showing 13 of 25 records"
    assert changes == [{"status": ["running"]}]


def test_empty_filter_removes_the_key(table):
    table.set_filter("status", ["running"])
    table.set_filter("status", [])
    assert table.filters == {}
    assert table.view().filtered_count == 25


def test_default_filters_apply_until_reset(rows):
    table = DataTable(COLUMNS, rows, default_filters={"status": ["stopped"]})
    assert table.view().filtered_count == 12
    table.reset_filter("status")
    assert table.view().filtered_count == 25


def test_facets_from_filtered_or_all_rows(table):
    table.set_filter("status", ["running"])
    assert table.view().facets("status") == {"running": 13}
    assert table.facets("status", source="all") == {"running": 13, "stopped": 12}


def test_date_range_filter(table):
    value = DateRange(
        start=datetime(2024, 5, 1, tzinfo=timezone.utc),
        end=datetime(2024, 5, 3, 23, 59, tzinfo=timezone.utc),
    )
    table.set_filter("created", value)
    assert _ids(table.view().rows) == ["r0", "r1", "r2"]


def test_relative_presets_are_evaluated_against_current_time(rows):
    current = {"now": datetime(2024, 5, 1, 12, tzinfo=timezone.utc)}
    table = DataTable(COLUMNS, rows, now=lambda: current["now"])
    table.set_filter("created", DateRange(preset="today"))
    assert _ids(table.processed_rows()) == ["r0"]

    current["now"] = datetime(2024, 5, 2, 12, tzinfo=timezone.utc)
    assert _ids(table.processed_rows()) == ["r1"]


# --- search ---

def test_search_commits_after_debounce(table, clock):
    table.search_input("row 0")
    assert table.pending_search == "row 0"
    assert table.view().filtered_count == 25

    clock.advance(300)
    assert table.poll_search()
    handle = table.view()
    assert handle.search_query == "row 0"
    assert handle.filtered_count == 10
    assert handle.filters == {"q": "row 0"}
    assert handle.active_filter_count == 1


def test_unchanged_query_does_not_notify(rows, clock):
    changes = []
    table = DataTable(COLUMNS, rows, on_filters_change=changes.append, clock=clock)
    table.commit_search("row")
    table.commit_search("row")
    table.commit_search("")
    assert changes == [{"q": "row"}, {}]


def test_reset_all_filters_drops_pending_search(table):
    table.set_filter("status", ["running"])
    table.search_input("row 1")
    table.reset_all_filters()
    assert table.pending_search is None
    assert not table.flush_search()
    assert table.view().filtered_count == 25


def test_single_column_search_mode(rows, clock):
    table = DataTable(
        COLUMNS,
        rows,
        search=SearchConfig(filter_key="status", mode="search", debounce=0),
        clock=clock,
    )
    table.search_input("stop")
    assert table.view().filtered_count == 12


def test_search_disabled(rows):
    table = DataTable(COLUMNS, rows, search=None)
    table.search_input("row 01")
    handle = table.view()
    assert handle.filtered_count == 25
    assert handle.search_hint is None


def test_search_options_can_change_at_runtime(table):
    table.set_filter("q", "running")
    assert table.view().filtered_count == 13
    table.set_search_options(searchable_columns=["name"])
    assert table.view().filtered_count == 0


# --- url params ---

def test_load_url_params(table):
    decoded = table.load_url_params({"status": '["running"]', "q": "row 0", "tab": "x"})
    assert decoded == {"status": ["running"], "q": "row 0"}
    assert _ids(table.view().rows) == ["r0", "r2", "r4", "r6", "r8"]


def test_numeric_search_text_stays_a_string(table):
    table.load_url_params({"q": "2024"})
    assert table.search_query == "2024"


def test_unknown_preset_in_url_is_dropped(table):
    assert table.load_url_params({"created": "preset:someday"}) == {}
    assert table.view().filtered_count == 25


# --- sorting ---

def test_sort_change_keeps_the_page(rows, clock):
    sorts = []
    table = DataTable(
        COLUMNS, rows, paging=ClientPaging(page_size=10), on_sort_change=sorts.append, clock=clock
    )
    table.next_page()
    table.toggle_sort("name")
    table.toggle_sort("name")
    handle = table.view()
    assert handle.page.page_index == 1
    assert handle.sort == [SortRule(column_id="name", direction="desc")]
    assert _ids(handle.rows)[0] == "r14"
    assert len(sorts) == 2


def test_multi_sort_needs_opt_in(table):
    table.toggle_sort("status")
    table.toggle_sort("name", multi=True)
    assert [r.column_id for r in table.sort_state] == ["name"]


def test_multi_sort(rows):
    table = DataTable(COLUMNS, rows, enable_multi_sort=True)
    table.toggle_sort("status")
    table.toggle_sort("name")
    table.toggle_sort("name")
    assert table.sort_state == [
        SortRule(column_id="status", direction="asc"),
        SortRule(column_id="name", direction="desc"),
    ]
    assert _ids(table.processed_rows())[:2] == ["r24", "r22"]


def test_toggle_sort_ignores_display_columns(table):
    assert table.toggle_sort("menu") == []
    with pytest.raises(ColumnConfigError):
        table.toggle_sort("missing")


# --- pagination ---

def test_page_size_change(table):
    table.next_page()
    table.set_page_size(20)
    handle = table.view()
    assert handle.page.page_index == 0
    assert len(handle.rows) == 20


def test_page_index_is_clamped_when_rows_shrink(table, rows):
    table.go_to_page(2)
    table.set_rows(rows[:5])
    handle = table.view()
    assert handle.page.page_index == 0
    assert len(handle.rows) == 5


def test_replaced_rows_are_recomputed(table):
    table.toggle_sort("name")
    for tag in "abcd":
        table.set_rows([{"id": f"{tag}1", "name": f"{tag}1"}, {"id": f"{tag}0", "name": f"{tag}0"}])
        assert _ids(table.view().rows) == [f"{tag}0", f"{tag}1"]


def test_equal_length_replacement_is_not_served_from_cache(table):
    table.view()
    replacement = _make_rows()
    replacement[0] = {**replacement[0], "id": "fresh"}
    table.set_rows(replacement)
    assert table.view().rows[0]["id"] == "fresh"


# --- selection ---

def test_select_all_covers_only_the_rendered_page(table):
    table.toggle_all_visible()
    handle = table.view()
    assert handle.selected_count == 10
    assert handle.is_all_selected
    assert handle.row_count_label == "10 of 25 selected"

    table.next_page()
    handle = table.view()
    assert not handle.is_all_selected
    assert not handle.is_some_selected


def test_selection_survives_filtering(table):
    table.view().toggle_row("r1")
    table.set_filter("status", ["running"])
    assert table.view().selected_ids == {"r1"}
    assert _ids(table.selected_rows()) == ["r1"]


def test_selection_needs_row_id(rows):
    table = DataTable(COLUMNS, rows)
    handle = table.view()
    assert handle.selected_ids == frozenset()
    assert len(handle.layout) == len(handle.rows)
    with pytest.raises(SelectionUnavailableError):
        table.toggle_all_visible()


def test_controlled_selection(rows):
    owned = {"ids": set()}
    table = DataTable(
        COLUMNS,
        rows,
        row_id="id",
        get_selected=lambda: owned["ids"],
        on_selection_change=lambda ids: owned.update(ids=set(ids)),
    )
    table.selection.toggle("r3")
    assert table.view().selected_ids == {"r3"}


# --- inline content ---

def test_inline_edit_then_create(table):
    assert table.open_edit("r3")
    layout = table.view().layout
    assert [e.kind for e in layout].index("inline") == 3
    assert layout[3].row_id == "r3"

    table.open_create()
    layout = table.view().layout
    assert layout[0].kind == "inline" and layout[0].mode == "create"
    assert [e.kind for e in layout].count("inline") == 1
    assert len(layout) == 11


def test_inline_edit_needs_a_visible_row(table):
    assert not table.open_edit("r15")
    assert table.get_inline_state().mode == "closed"


# --- actions ---

def test_row_action_can_open_inline_edit(rows):
    opened = []
    edited = []
    table = DataTable(
        COLUMNS,
        rows,
        row_id="id",
        on_inline_open=lambda mode, data: opened.append((mode, data["id"])),
        row_actions=[
            RowAction(key="edit", label="Edit", action=edited.append, trigger_inline_edit=True),
            RowAction(key="hidden", label="Hidden", action=edited.append, hidden=True),
        ],
    )
    assert table.run_row_action("edit", "r2")
    assert _ids(edited) == ["r2"]
    assert opened == [("edit", "r2")]
    assert table.get_inline_state().editing_row_id == "r2"

    assert not table.run_row_action("hidden", "r2")
    assert not table.run_row_action("missing", "r2")
    inline, dropdown = table.view().row_actions(rows[0])
    assert [a.key for a in dropdown] == ["edit"]


def test_multi_action_receives_selected_rows_in_data_order(rows):
    received = []
    table = DataTable(
        COLUMNS,
        rows,
        row_id="id",
        multi_actions=[MultiAction(key="stop", label="Stop", action=received.extend)],
    )
    assert not table.run_multi_action("stop")
    table.selection.select("r4", "r1")
    assert table.run_multi_action("stop")
    assert _ids(received) == ["r1", "r4"]


# --- server mode ---

def test_server_mode_relays_intents(rows):
    events = []
    info = ServerPageInfo(page_index=0, page_size=10, has_next=True, has_prev=False, total_rows=95)
    table = DataTable(
        COLUMNS,
        rows[:10],
        row_id="id",
        paging=ServerPaging(
            on_next=lambda: events.append("next"),
            on_prev=lambda: events.append("prev"),
        ),
        server_page_info=lambda: info,
        server_side_filtering=True,
        on_filtering_start=lambda: events.append("start"),
        on_filters_change=events.append,
    )
    table.set_filter("status", ["running"])
    handle = table.view()
    assert _ids(handle.rows) == _ids(rows[:10])
    assert (handle.filtered_count, handle.total_count) == (95, 95)
    assert handle.page.page_count == 10

    table.next_page()
    table.prev_page()
    assert events == ["start", {"status": ["running"]}, "next"]


def test_server_page_info_can_be_rebound(rows):
    table = DataTable(
        COLUMNS,
        rows[:10],
        paging=ServerPaging(on_next=lambda: None, on_prev=lambda: None),
        server_side_filtering=True,
    )
    assert table.page_info().page_count is None
    table.bind_stores(server_page_info=ServerPageInfo(page_size=10, total_rows=30))
    assert table.page_info().page_count == 3
