"""Example Reflex app demonstrating the data table engine.

Two tabs:
  1. Workloads -- an in-memory (client-mode) table over a list of
     workload records: faceted status/region filters, a created-at date
     preset, global search, sortable headers, row selection with a bulk
     action, row actions and an inline edit/create slot.  Filters are
     mirrored into the page URL.
  2. Audit events -- a server-mode table over a 20 000-row polars
     LazyFrame, served one page at a time by ``LazyFrameSource``.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import polars as pl
import reflex as rx

from reflex_data_table import (
    ColumnDescriptor,
    DataTableMixin,
    MultiAction,
    RowAction,
    SearchConfig,
    preset_options,
)

_NOW = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)

STATUSES: list[str] = ["running", "pending", "failed", "stopped"]
REGIONS: list[str] = ["eu-west", "eu-central", "us-east", "ap-south"]


# ---------------------------------------------------------------------------
# Sample data builders
# ---------------------------------------------------------------------------

def _build_workloads() -> list[dict[str, Any]]:
    """Create 60 sample workload records."""
    rows: list[dict[str, Any]] = []
    for i in range(60):
        rows.append(
            {
                "id": f"wl-{i:03d}",
                "name": f"service-{i:03d}",
                "status": STATUSES[i % len(STATUSES)],
                "regions": REGIONS[: 1 + i % len(REGIONS)],
                "replicas": (i * 7) % 12,
                "owner": {"name": ["alice", "bob", "carol"][i % 3]},
                "created_at": _NOW - timedelta(days=i, hours=i % 5),
            }
        )
    return rows


def _build_audit_events() -> pl.LazyFrame:
    """Create a 20 000-row LazyFrame of audit events."""
    n = 20_000
    return pl.LazyFrame(
        {
            "event_id": [f"ev-{i:05d}" for i in range(n)],
            "actor": [["alice", "bob", "carol", "dave"][i % 4] for i in range(n)],
            "action": [["create", "update", "delete", "scale"][i % 4] for i in range(n)],
            "resource": [f"service-{i % 60:03d}" for i in range(n)],
            "tags": [["prod", "eu"] if i % 3 == 0 else ["staging"] for i in range(n)],
            "at": [_NOW - timedelta(minutes=17 * i) for i in range(n)],
        }
    ).with_columns(pl.col("action").cast(pl.Categorical))


WORKLOAD_COLUMNS: list[ColumnDescriptor] = [
    ColumnDescriptor(id="name", header="Name", accessor_key="name"),
    ColumnDescriptor(id="status", header="Status", accessor_key="status", facetable=True),
    ColumnDescriptor(
        id="regions",
        header="Regions",
        accessor_key="regions",
        sort_type="arrayLength",
        facetable=True,
    ),
    ColumnDescriptor(id="replicas", header="Replicas", accessor_key="replicas", sort_type="numeric"),
    ColumnDescriptor(id="owner", header="Owner", accessor_key="owner.name"),
    ColumnDescriptor(id="created_at", header="Created", accessor_key="created_at", sort_type="date"),
]


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class WorkloadsState(DataTableMixin, rx.State):
    """Client-mode table over in-memory workload records."""

    last_action: str = ""

    def load(self):
        yield from self.set_data_table(
            WORKLOAD_COLUMNS,
            _build_workloads(),
            row_id="id",
            page_size=10,
            page_size_options=[10, 20, 50],
            enable_show_all=True,
            search=SearchConfig(placeholder="Search workloads..."),
            filter_kinds={"status": "array", "regions": "array", "created_at": "dateRange"},
            row_actions=[
                RowAction(
                    key="edit",
                    label="Edit",
                    action=lambda row: None,
                    display="inline",
                    trigger_inline_edit=True,
                ),
                RowAction(
                    key="restart",
                    label="Restart",
                    action=lambda row: None,
                    disabled=lambda row: row["status"] == "stopped",
                ),
            ],
            multi_actions=[
                MultiAction(key="stop", label="Stop selected", action=lambda rows: None),
            ],
            sync_url=True,
        )

    def set_status_filter(self, status: str):
        values = [] if status == "all" else [status]
        yield from self.handle_dt_filter("status", values)


class AuditState(DataTableMixin, rx.State):
    """Server-mode table; pages are collected from a LazyFrame on demand."""

    def load(self):
        yield from self.set_data_table(
            lf=_build_audit_events(),
            server=True,
            page_size=25,
            page_size_options=[25, 50, 100],
        )


# ---------------------------------------------------------------------------
# UI components
# ---------------------------------------------------------------------------

def _status_box(*children: rx.Component) -> rx.Component:
    """Styled status box below a table."""
    return rx.box(
        *children,
        margin_top="1em",
        padding="1em",
        border_radius="8px",
        background="var(--gray-a3)",
    )


def _sort_header(state: type[DataTableMixin], column_id: str, label: str) -> rx.Component:
    return rx.table.column_header_cell(
        rx.text(label, cursor="pointer"),
        on_click=state.handle_dt_sort(column_id),
    )


def _pager(state: type[DataTableMixin]) -> rx.Component:
    return rx.hstack(
        rx.button("Prev", on_click=state.handle_dt_page("prev"), disabled=~state.dt_page["has_prev"].to(bool)),
        rx.text(
            "Page ",
            (state.dt_page["page_index"].to(int) + 1).to(str),
            " of ",
            state.dt_page["page_count"].to(str),
        ),
        rx.button("Next", on_click=state.handle_dt_page("next"), disabled=~state.dt_page["has_next"].to(bool)),
        rx.select(
            state.dt_page_size_options,
            value=state.dt_page["page_size"].to(str),
            on_change=state.handle_dt_page_size,
        ),
        rx.spacer(),
        rx.text(state.dt_row_count_label, size="2", color="var(--gray-9)"),
        align="center",
        margin_top="1em",
    )


def _search_box(state: type[DataTableMixin]) -> rx.Component:
    return rx.vstack(
        rx.input(
            default_value=state.dt_search_query,
            placeholder="Search...",
            on_change=state.handle_dt_search,
            debounce_timeout=300,
            width="320px",
        ),
        rx.cond(
            state.dt_search_hint != "",
            rx.text(state.dt_search_hint, size="1", color="var(--gray-9)"),
        ),
        spacing="1",
    )


def _workload_cells(row: rx.Var) -> rx.Component:
    return rx.table.row(
        rx.table.cell(
            rx.checkbox(
                checked=WorkloadsState.dt_selected_ids.contains(row["__row_id__"]),
                on_change=lambda _checked: WorkloadsState.toggle_dt_row(row["__row_id__"]),
            )
        ),
        rx.table.cell(row["name"].to(str)),
        rx.table.cell(rx.badge(row["status"].to(str))),
        rx.table.cell(row["regions"].to(list[str]).join(", ")),
        rx.table.cell(row["replicas"].to(str)),
        rx.table.cell(row["owner"]["name"].to(str)),
        rx.table.cell(row["created_at"].to(str)),
        rx.table.cell(
            rx.hstack(
                rx.button(
                    "Edit",
                    size="1",
                    on_click=WorkloadsState.run_dt_row_action("edit", row["__row_id__"]),
                ),
                rx.button(
                    "Restart",
                    size="1",
                    variant="soft",
                    on_click=WorkloadsState.run_dt_row_action("restart", row["__row_id__"]),
                ),
            )
        ),
    )


def _inline_slot(entry: rx.Var) -> rx.Component:
    return rx.table.row(
        rx.table.cell(
            rx.hstack(
                rx.text(
                    rx.cond(entry["mode"] == "create", "New workload", "Editing workload"),
                    weight="bold",
                ),
                rx.input(placeholder="Name", default_value=entry["row"]["name"].to(str)),
                rx.button("Close", on_click=WorkloadsState.close_dt_inline, variant="soft"),
                align="center",
            ),
            col_span=8,
        ),
    )


def _workload_entry(entry: rx.Var) -> rx.Component:
    return rx.cond(
        entry["kind"] == "inline",
        _inline_slot(entry),
        _workload_cells(entry["row"]),
    )


def _workload_filters() -> rx.Component:
    return rx.hstack(
        _search_box(WorkloadsState),
        rx.select(
            ["all", *STATUSES],
            default_value="all",
            on_change=WorkloadsState.set_status_filter,
        ),
        rx.select.root(
            rx.select.trigger(placeholder="Created"),
            rx.select.content(
                *[
                    rx.select.item(option["label"], value=f"preset:{option['value']}")
                    for option in preset_options()
                ]
            ),
            on_change=lambda value: WorkloadsState.handle_dt_filter("created_at", value),
        ),
        rx.cond(
            WorkloadsState.dt_active_filter_count > 0,
            rx.button(
                "Clear filters (",
                WorkloadsState.dt_active_filter_count.to(str),
                ")",
                on_click=WorkloadsState.clear_dt_filters,
                variant="outline",
            ),
        ),
        rx.spacer(),
        rx.button("New workload", on_click=WorkloadsState.open_dt_create),
        rx.button(
            "Stop selected",
            on_click=WorkloadsState.run_dt_multi_action("stop"),
            disabled=WorkloadsState.dt_selected_ids.length() == 0,  # type: ignore[operator]
            color_scheme="red",
        ),
        rx.button("Download preset", on_click=WorkloadsState.download_dt_preset, variant="soft"),
        align="end",
        margin_bottom="1em",
        width="100%",
    )


def _facet_list(column_id: str) -> rx.Component:
    return rx.hstack(
        rx.foreach(
            WorkloadsState.dt_facets[column_id],
            lambda item: rx.badge(
                item["value"].to(str), ": ", item["count"].to(str), variant="soft"
            ),
        ),
        wrap="wrap",
    )


def workloads_tab() -> rx.Component:
    """Client-mode workloads table."""
    return rx.box(
        _workload_filters(),
        rx.table.root(
            rx.table.header(
                rx.table.row(
                    rx.table.column_header_cell(
                        rx.checkbox(
                            checked=WorkloadsState.dt_all_selected,
                            on_change=lambda _checked: WorkloadsState.toggle_dt_select_all(),
                        )
                    ),
                    _sort_header(WorkloadsState, "name", "Name"),
                    _sort_header(WorkloadsState, "status", "Status"),
                    _sort_header(WorkloadsState, "regions", "Regions"),
                    _sort_header(WorkloadsState, "replicas", "Replicas"),
                    _sort_header(WorkloadsState, "owner", "Owner"),
                    _sort_header(WorkloadsState, "created_at", "Created"),
                    rx.table.column_header_cell(""),
                ),
            ),
            rx.table.body(rx.foreach(WorkloadsState.dt_layout, _workload_entry)),
            width="100%",
        ),
        _pager(WorkloadsState),
        _status_box(
            rx.text("Status", weight="bold"),
            _facet_list("status"),
            rx.text("Regions", weight="bold", margin_top="0.5em"),
            _facet_list("regions"),
        ),
        padding_top="1em",
    )


def _audit_cells(row: rx.Var) -> rx.Component:
    return rx.table.row(
        rx.table.cell(row["event_id"].to(str)),
        rx.table.cell(row["actor"].to(str)),
        rx.table.cell(row["action"].to(str)),
        rx.table.cell(row["resource"].to(str)),
        rx.table.cell(row["tags"].to(list[str]).join(", ")),
        rx.table.cell(row["at"].to(str)),
    )


def audit_tab() -> rx.Component:
    """Server-mode audit event table."""
    return rx.box(
        rx.text(
            "20 000 audit events in a polars LazyFrame.  Filtering, search "
            "and sorting run as polars expressions; only the current page "
            "is collected.",
            margin_bottom="1em",
            color="var(--gray-11)",
        ),
        rx.cond(
            AuditState.dt_loaded,
            rx.fragment(
                _search_box(AuditState),
                rx.table.root(
                    rx.table.header(
                        rx.table.row(
                            _sort_header(AuditState, "event_id", "Event"),
                            _sort_header(AuditState, "actor", "Actor"),
                            _sort_header(AuditState, "action", "Action"),
                            _sort_header(AuditState, "resource", "Resource"),
                            _sort_header(AuditState, "tags", "Tags"),
                            _sort_header(AuditState, "at", "At"),
                        ),
                    ),
                    rx.table.body(rx.foreach(AuditState.dt_rows, _audit_cells)),
                    width="100%",
                ),
                _pager(AuditState),
            ),
            rx.button("Load events", on_click=AuditState.load, loading=AuditState.dt_loading),
        ),
        padding_top="1em",
    )


def index() -> rx.Component:
    """Render the main page with tabs."""
    return rx.box(
        rx.heading("Data Table -- Reflex Demo", size="6", margin_bottom="1em"),
        rx.tabs.root(
            rx.tabs.list(
                rx.tabs.trigger("Workloads", value="workloads"),
                rx.tabs.trigger("Audit events (server-side)", value="audit"),
            ),
            rx.tabs.content(workloads_tab(), value="workloads"),
            rx.tabs.content(audit_tab(), value="audit"),
            default_value="workloads",
        ),
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=[WorkloadsState.load, WorkloadsState.load_dt_url_filters])
