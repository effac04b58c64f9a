"""Reflex state mixin exposing a :class:`DataTable` to a page.

Users inherit from :class:`DataTableMixin` **and** ``rx.State``, call
:meth:`~DataTableMixin.set_data_table` with their columns and rows (or a
polars frame), and render the ``dt_*`` vars with their own components.

``DataTableMixin`` is a Reflex **state mixin** (``mixin=True``).  Each
subclass gets its own independent set of ``dt_*`` reactive variables, so
several tables on the same page do not interfere with each other.

Column descriptors carry accessors and comparators, and a LazyFrame
cannot be serialised either, so they live in a module-level registry
keyed by the state class name.  The per-session parts (filters, sort,
page, selection, inline slot) live in state vars; every event builds
its own engine from the shared parts and binds it to those vars.

Typical usage::

    from reflex_data_table import DataTableMixin

    class ProjectsState(DataTableMixin, rx.State):
        def load(self):
            yield from self.set_data_table(COLUMNS, fetch_projects(), row_id="id")

    @rx.page(on_load=[ProjectsState.load, ProjectsState.load_dt_url_filters])
    def projects():
        return rx.foreach(ProjectsState.dt_rows, render_row)
"""

import json
import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any
from urllib.parse import urlencode

import polars as pl
import reflex as rx
from pydantic_core import to_jsonable_python

from reflex_data_table.actions import MultiAction, RowAction
from reflex_data_table.facets import facet_options
from reflex_data_table.filtering import GlobalSearchOptions
from reflex_data_table.inline_content import InlineContentState
from reflex_data_table.lazyframe_source import LazyFrameSource
from reflex_data_table.models import ColumnDescriptor
from reflex_data_table.pagination import (
    ClientPaging,
    PaginationState,
    ServerPageInfo,
    ServerPaging,
)
from reflex_data_table.polars_utils import (
    ROW_INDEX_FIELD,
    build_column_descriptors_from_schema,
    lazyframe_to_rows,
)
from reflex_data_table.sorting import Comparator, normalize_sort_state
from reflex_data_table.store import CallbackStore
from reflex_data_table.table import DataTable, TableHandle
from reflex_data_table.toolbar import SearchConfig
from reflex_data_table.url_codec import (
    PRESET_PREFIX,
    RANGE_PREFIX,
    FilterKind,
    QueryParamFilterStore,
    decode_filter_value,
)

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE: int = 50
_DEFAULT_PRESET_FILENAME: str = "table_preset.json"

ROW_ID_KEY: str = "__row_id__"


# ---------------------------------------------------------------------------
# Module-level engine cache
# ---------------------------------------------------------------------------

class _DataTableCache:
    """Holds what every session of a state class shares.

    Accessors, comparators and LazyFrames are not JSON-serialisable, so
    they cannot live inside ``rx.State``.  Nothing here is per-session:
    each event builds its own :class:`DataTable` from these parts and
    binds it to that session's vars.
    """

    def __init__(self) -> None:
        self.columns: list[ColumnDescriptor | Mapping[str, Any]] = []
        self.rows: Sequence[Any] = []
        # DataTable keyword arguments; None until set_data_table ran.
        self.options: dict[str, Any] | None = None
        self.source: LazyFrameSource | None = None
        self.page_size_options: list[int] = []
        self.facet_columns: list[str] = []


_cache_registry: dict[str, _DataTableCache] = {}


def _get_cache(cache_id: str) -> _DataTableCache:
    """Return (or create) the cache entry for *cache_id*."""
    if cache_id not in _cache_registry:
        _cache_registry[cache_id] = _DataTableCache()
    return _cache_registry[cache_id]


def _coerce_frontend_value(value: Any) -> Any:
    # Date pickers send the URL encoding of their range or preset.
    if isinstance(value, str) and value.startswith((RANGE_PREFIX, PRESET_PREFIX)):
        return decode_filter_value(value, "dateRange")
    if value == "":
        return None
    return value


def _row_payload(table: DataTable, row: Any) -> dict[str, Any]:
    payload = to_jsonable_python(row)
    if not isinstance(payload, dict):
        payload = {"value": payload}
    if table.selection.available:
        payload[ROW_ID_KEY] = table.row_id(row)
    return payload


class DataTableMixin(rx.State, mixin=True):
    """Reflex State mixin driving one :class:`DataTable`.

    This is a Reflex **mixin** (``mixin=True``).  The state vars declared
    here are injected into each concrete subclass, which must also
    inherit from ``rx.State``::

        class MyTable(DataTableMixin, rx.State):
            ...

    All state variable names are prefixed with ``dt_`` to avoid
    collisions when composed with other state.
    """

    # -- Frontend state vars --
    dt_rows: list[dict[str, Any]] = []
    dt_layout: list[dict[str, Any]] = []
    dt_columns: list[dict[str, Any]] = []
    dt_filters: dict[str, str] = {}
    dt_search_query: str = ""
    dt_search_hint: str = ""
    dt_sort: list[dict[str, str]] = []
    dt_page: dict[str, Any] = {}
    dt_page_size_options: list[str] = []
    dt_filtered_count: int = 0
    dt_total_count: int = 0
    dt_active_filter_count: int = 0
    dt_row_count_label: str = ""
    dt_selected_ids: list[str] = []
    dt_all_selected: bool = False
    dt_some_selected: bool = False
    dt_inline: dict[str, Any] = {"mode": "closed", "editing_row_id": None}
    dt_facets: dict[str, list[dict[str, Any]]] = {}
    dt_loading: bool = False
    dt_loaded: bool = False
    dt_status: str = ""

    # -- Backend-only vars (not sent to frontend) --
    _dt_cache_id: str = ""
    _dt_pagination: dict[str, Any] = {}
    _dt_server_page: dict[str, Any] = {}
    _dt_server_rows: list[dict[str, Any]] = []
    _dt_sync_url: bool = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_data_table(
        self,
        columns: Iterable[ColumnDescriptor | Mapping[str, Any]] | None = None,
        rows: Sequence[Any] | None = None,
        *,
        lf: pl.LazyFrame | pl.DataFrame | None = None,
        row_id: Callable[[Any], Any] | str | None = None,
        server: bool = False,
        page_size: int = _DEFAULT_PAGE_SIZE,
        page_size_options: Sequence[int] | None = None,
        enable_show_all: bool = False,
        search: bool | SearchConfig | None = True,
        search_options: GlobalSearchOptions | None = None,
        custom_comparators: Mapping[str, Comparator] | None = None,
        enable_multi_sort: bool = False,
        filter_kinds: Mapping[str, FilterKind] | None = None,
        facet_columns: Iterable[str] | None = None,
        row_actions: Sequence[RowAction] = (),
        multi_actions: Sequence[MultiAction] = (),
        sync_url: bool = False,
    ):
        """Build the table engine for this state class.

        This is a **generator** -- use ``yield from self.set_data_table(...)``
        inside your event handler so the loading state is sent to the
        frontend immediately.

        Args:
            columns: Column descriptors.  Derived from the frame schema
                when *lf* is given and *columns* is omitted.
            rows: In-memory rows (client mode).
            lf: A polars frame.  Collected into rows in client mode; in
                server mode it is queried one page at a time.
            row_id: Callable or dotted path giving each row's id.
            server: Serve pages from *lf* through :class:`LazyFrameSource`.
            page_size: Initial page size.
            page_size_options: Sizes offered by the pager.
            enable_show_all: Offer the ``"all"`` page size (client mode).
            search: Search box configuration (``True`` for defaults).
            search_options: Global search tuning.
            custom_comparators: Named comparators usable as ``sort_type``.
            enable_multi_sort: Let shift-click sorting append rules.
            filter_kinds: Per-key URL decoding hints.  Text columns whose
                values may be all digits or bracketed need ``"string"``.
            facet_columns: Extra columns to compute facets for.
            row_actions: Actions offered on each row.
            multi_actions: Bulk actions over the selected rows.
            sync_url: Mirror the filter state into the page URL.
        """
        self.dt_loading = True  # type: ignore[assignment]
        self.dt_status = "Preparing table..."  # type: ignore[assignment]
        yield  # send loading state to the frontend immediately

        t0 = time.perf_counter()
        cache_id = type(self).__name__
        self._dt_cache_id = cache_id  # type: ignore[assignment]
        cache = _get_cache(cache_id)

        options: dict[str, Any] = {
            "search": search,
            "search_options": search_options,
            "custom_comparators": custom_comparators,
            "enable_multi_sort": enable_multi_sort,
            "filter_kinds": filter_kinds,
            "row_actions": row_actions,
            "multi_actions": multi_actions,
        }
        if server:
            if lf is None:
                raise ValueError("server mode needs a polars frame (lf=...)")
            source = LazyFrameSource(
                lf.lazy(),
                columns=list(columns) if columns is not None else None,  # type: ignore[arg-type]
                search_key=(search.filter_key if isinstance(search, SearchConfig) else "q"),
                search_options=search_options,
            )
            cache.source = source
            cache.columns = list(source.columns)
            cache.rows = []
            options["row_id"] = row_id or ROW_INDEX_FIELD
            options["server_side_filtering"] = True
        else:
            cache.source = None
            if lf is not None:
                schema = lf.collect_schema() if isinstance(lf, pl.LazyFrame) else lf.schema
                rows, id_field = lazyframe_to_rows(
                    lf, id_field=row_id if isinstance(row_id, str) else None
                )
                row_id = row_id or id_field
                if columns is None:
                    columns = build_column_descriptors_from_schema(
                        schema, id_field=id_field, facet_columns=facet_columns
                    )
            paging_kwargs: dict[str, Any] = {
                "page_size": page_size,
                "enable_show_all": enable_show_all,
            }
            if page_size_options:
                paging_kwargs["page_size_options"] = list(page_size_options)
            cache.columns = list(columns or [])
            cache.rows = rows or []
            options["row_id"] = row_id
            options["paging"] = ClientPaging(**paging_kwargs)
        cache.page_size_options = list(page_size_options or ())
        cache.options = options

        # Fresh per-session state.
        self._dt_sync_url = sync_url  # type: ignore[assignment]
        self.dt_filters = {}  # type: ignore[assignment]
        self.dt_sort = []  # type: ignore[assignment]
        self.dt_selected_ids = []  # type: ignore[assignment]
        self.dt_inline = {"mode": "closed", "editing_row_id": None}  # type: ignore[assignment]
        self._dt_pagination = {"page_index": 0, "page_size": page_size}  # type: ignore[assignment]
        self._dt_server_page = {}  # type: ignore[assignment]
        self._dt_server_rows = []  # type: ignore[assignment]

        table = self._dt_table()
        if table is None:
            return
        cache.facet_columns = [c.id for c in table.registry.facetable()] + [
            c for c in (facet_columns or ()) if c in table.registry and not table.registry[c].facetable
        ]
        self.dt_columns = table.registry.column_defs()  # type: ignore[assignment]
        if server:
            self._fetch_dt_page(table, 0, page_size)
        self._sync_dt_view(table)

        self.dt_loaded = True  # type: ignore[assignment]
        self.dt_loading = False  # type: ignore[assignment]
        self.dt_status = f"Ready: {self.dt_total_count:,} rows."  # type: ignore[assignment]
        logger.debug(
            "[DataTable] %s ready: mode=%s, elapsed=%.1fms",
            cache_id,
            "server" if server else "client",
            (time.perf_counter() - t0) * 1000,
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def handle_dt_filter(self, key: str, value: Any):
        """Set one filter (``None``/empty clears it) and refresh the view."""
        if not self._dt_configured():
            return
        self.dt_loading = True  # type: ignore[assignment]
        yield

        table = self._dt_table()
        table.set_filter(key, _coerce_frontend_value(value))
        self._after_dt_filter_change(table)
        self.dt_loading = False  # type: ignore[assignment]
        if self._dt_sync_url:
            yield self._dt_url_event()

    def handle_dt_search(self, text: str):
        """Commit a (frontend-debounced) search query."""
        table = self._dt_table()
        if table is None:
            return
        table.commit_search(text)
        self._after_dt_filter_change(table)
        if self._dt_sync_url:
            yield self._dt_url_event()

    def handle_dt_sort(self, column_id: str, multi: bool = False):
        """Cycle the sort of *column_id* (asc -> desc -> unsorted)."""
        if not self._dt_configured():
            return
        self.dt_loading = True  # type: ignore[assignment]
        yield

        table = self._dt_table()
        table.toggle_sort(column_id, multi=multi)
        if self._dt_is_server():
            self._fetch_dt_page(table, 0, self._dt_server_page_size())
        self._sync_dt_view(table)
        self.dt_loading = False  # type: ignore[assignment]

    def handle_dt_page(self, target: str | int) -> None:
        """``"next"``, ``"prev"``, ``"first"`` or a page index."""
        table = self._dt_table()
        if table is None:
            return
        if target == "next":
            table.next_page()
        elif target == "prev":
            table.prev_page()
        elif target == "first":
            table.go_to_page(0)
        else:
            table.go_to_page(int(target))
        self._sync_dt_view(table)

    def handle_dt_page_size(self, size: str | int) -> None:
        table = self._dt_table()
        if table is None:
            return
        if self._dt_is_server():
            size = int(size)
        table.set_page_size(size)
        self._sync_dt_view(table)

    def toggle_dt_row(self, row_id: str) -> None:
        table = self._dt_table()
        if table is None:
            return
        table.selection.toggle(row_id)
        self._sync_dt_view(table)

    def toggle_dt_select_all(self) -> None:
        """Select (or deselect) every row on the current page."""
        table = self._dt_table()
        if table is None:
            return
        table.toggle_all_visible()
        self._sync_dt_view(table)

    def clear_dt_selection(self) -> None:
        table = self._dt_table()
        if table is None:
            return
        table.selection.clear()
        self._sync_dt_view(table)

    def open_dt_create(self) -> None:
        table = self._dt_table()
        if table is None:
            return
        table.open_create()
        self._sync_dt_view(table)

    def open_dt_edit(self, row_id: str) -> None:
        table = self._dt_table()
        if table is None:
            return
        table.open_edit(row_id)
        self._sync_dt_view(table)

    def close_dt_inline(self) -> None:
        table = self._dt_table()
        if table is None:
            return
        table.close_inline()
        self._sync_dt_view(table)

    def run_dt_row_action(self, key: str, row_id: str) -> None:
        table = self._dt_table()
        if table is None:
            return
        table.run_row_action(key, row_id)
        self._sync_dt_view(table)

    def run_dt_multi_action(self, key: str) -> None:
        table = self._dt_table()
        if table is None:
            return
        table.run_multi_action(key)
        self._sync_dt_view(table)

    def clear_dt_filters(self):
        """Reset every filter, including the search query.

        This is a generator so the loading state is pushed immediately.
        """
        if not self._dt_configured():
            return
        self.dt_loading = True  # type: ignore[assignment]
        yield

        table = self._dt_table()
        table.reset_all_filters()
        self._after_dt_filter_change(table)
        self.dt_loading = False  # type: ignore[assignment]
        if self._dt_sync_url:
            yield self._dt_url_event()

    def load_dt_url_filters(self) -> None:
        """Apply filters from the page's query params (use as ``on_load``)."""
        table = self._dt_table()
        if table is None:
            return
        decoded = table.load_url_params(self.router.page.params)
        if decoded:
            self._after_dt_filter_change(table)

    def download_dt_preset(self) -> rx.event.EventSpec:
        """Download the current filter/sort state as a JSON preset file.

        Filters are stored in their URL encoding, so a preset can also be
        turned back into a shareable link.
        """
        preset: dict[str, Any] = {
            "filters": dict(self.dt_filters),
            "sort": list(self.dt_sort),
        }
        return rx.download(  # type: ignore[return-value]
            data=json.dumps(preset, indent=2, ensure_ascii=False),
            filename=_DEFAULT_PRESET_FILENAME,
        )

    async def handle_dt_preset_upload(self, files: list[rx.UploadFile]):
        """Apply an uploaded JSON preset (see :meth:`download_dt_preset`).

        This is an async generator so loading state is pushed to the
        frontend immediately.
        """
        if not files or not self._dt_configured():
            return

        self.dt_loading = True  # type: ignore[assignment]
        self.dt_status = "Applying preset..."  # type: ignore[assignment]
        yield

        content = await files[0].read()
        text = content.decode("utf-8") if isinstance(content, bytes) else content
        preset = json.loads(text)

        table = self._dt_table()

        self.dt_filters = {  # type: ignore[assignment]
            str(k): str(v) for k, v in (preset.get("filters") or {}).items() if v is not None
        }
        table.set_sort(preset.get("sort") or [])
        if table.client_paginator is not None:
            table.client_paginator.reset()
        self._after_dt_filter_change(table)
        self.dt_loading = False  # type: ignore[assignment]
        self.dt_status = (  # type: ignore[assignment]
            f"Preset applied: {len(self.dt_filters)} filter(s), "
            f"{len(self.dt_sort)} sort(s). {self.dt_filtered_count:,} rows match."
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_dt_filters(self, params: dict[str, str]) -> None:
        self.dt_filters = params  # type: ignore[assignment]

    def _set_dt_sort(self, rules: list[Any]) -> None:
        self.dt_sort = [  # type: ignore[assignment]
            {"column_id": r.column_id, "direction": r.direction}
            for r in normalize_sort_state(rules)
        ]

    def _set_dt_selection(self, ids: frozenset[str]) -> None:
        self.dt_selected_ids = sorted(ids)  # type: ignore[assignment]

    def _dt_is_server(self) -> bool:
        cache_id = self._dt_cache_id
        return bool(cache_id) and _get_cache(cache_id).source is not None

    def _dt_configured(self) -> bool:
        cache_id = self._dt_cache_id
        return bool(cache_id) and _get_cache(cache_id).options is not None

    def _dt_server_page_size(self) -> int:
        return int(self._dt_server_page.get("page_size", _DEFAULT_PAGE_SIZE))

    def _dt_server_paging(self, fetch: Callable[[int, int], None]) -> ServerPaging:
        def current() -> int:
            return int(self._dt_server_page.get("page_index", 0))

        kwargs: dict[str, Any] = {}
        options = _get_cache(self._dt_cache_id).page_size_options
        if options:
            kwargs["page_size_options"] = options
        return ServerPaging(
            on_next=lambda: fetch(current() + 1, self._dt_server_page_size()),
            on_prev=lambda: fetch(current() - 1, self._dt_server_page_size()),
            on_page_change=lambda index: fetch(index, self._dt_server_page_size()),
            on_page_size_change=lambda size: fetch(0, size),
            **kwargs,
        )

    def _dt_table(self) -> DataTable | None:
        """Build an engine for this event, bound to this session's vars.

        The engine is not cached; it reads and writes only this session's
        vars.
        """
        cache_id = self._dt_cache_id
        if not cache_id:
            return None
        cache = _get_cache(cache_id)
        if cache.options is None:
            return None

        options = dict(cache.options)
        if cache.source is not None:

            def fetch(page_index: int, page_size: int) -> None:
                self._fetch_dt_page(table, max(0, page_index), page_size)

            options["paging"] = self._dt_server_paging(fetch)
            rows: Sequence[Any] = list(self._dt_server_rows)
        else:
            rows = cache.rows
        table = DataTable(
            cache.columns,
            rows,
            server_page_info=lambda: (
                ServerPageInfo(**self._dt_server_page) if self._dt_server_page else None
            ),
            **options,
        )

        keys = set(table.registry.ids) | set(table.filter_kinds)
        if table.search_key is not None:
            keys.add(table.search_key)
        table.bind_stores(
            filter_store=QueryParamFilterStore(
                lambda: self.dt_filters,
                self._set_dt_filters,
                kinds=table.filter_kinds,
                keys=keys,
            ),
            sort_store=CallbackStore(lambda: list(self.dt_sort), self._set_dt_sort),
            get_selected=lambda: list(self.dt_selected_ids),
            on_selection_change=self._set_dt_selection,
        )
        if table.client_paginator is not None:
            table.client_paginator.state = PaginationState(**self._dt_pagination)
        table.inline.state = InlineContentState(**self.dt_inline)
        return table

    def _fetch_dt_page(self, table: DataTable, page_index: int, page_size: int) -> None:
        source = _get_cache(self._dt_cache_id).source
        if source is None:
            return
        result = source.fetch_page(
            filters=table.filters,
            query=table.search_query,
            sort=table.sort_state,
            page_index=page_index,
            page_size=page_size,
        )
        self._dt_server_rows = result.rows  # type: ignore[assignment]
        self._dt_server_page = result.page_info().model_dump()  # type: ignore[assignment]
        table.set_rows(result.rows)

    def _after_dt_filter_change(self, table: DataTable) -> None:
        if self._dt_is_server():
            self._fetch_dt_page(table, 0, self._dt_server_page_size())
        self._sync_dt_view(table)

    def _dt_url_event(self) -> rx.event.EventSpec:
        query = urlencode(self.dt_filters)
        target = f"?{query}" if query else "window.location.pathname"
        target_js = json.dumps(target) if query else target
        return rx.call_script(f"window.history.replaceState(null, '', {target_js})")

    def _dt_facets(self, table: DataTable, handle: TableHandle) -> dict[str, list[dict[str, Any]]]:
        cache = _get_cache(self._dt_cache_id)
        facets: dict[str, list[dict[str, Any]]] = {}
        for column_id in cache.facet_columns:
            if cache.source is not None:
                counts = cache.source.facets(column_id, table.filters, table.search_query)
            else:
                counts = handle.facets(column_id)
            facets[column_id] = to_jsonable_python(facet_options(counts))
        return facets

    def _sync_dt_view(self, table: DataTable) -> None:
        """Write the engine snapshot back into the ``dt_*`` vars."""
        t0 = time.perf_counter()
        handle = table.view()

        if table.client_paginator is not None:
            self._dt_pagination = table.client_paginator.state.model_dump()  # type: ignore[assignment]
            options = table.client_paginator.page_size_options
        else:
            options = list(table.paging.page_size_options)
        self.dt_page_size_options = [str(o) for o in options]  # type: ignore[assignment]
        self.dt_inline = handle.inline.model_dump()  # type: ignore[assignment]

        self.dt_rows = [_row_payload(table, row) for row in handle.rows]  # type: ignore[assignment]
        self.dt_layout = [  # type: ignore[assignment]
            {
                "kind": entry.kind,
                "row": _row_payload(table, entry.row) if entry.row is not None else {},
                "row_id": entry.row_id or "",
                "mode": entry.mode or "",
            }
            for entry in handle.layout
        ]
        self.dt_search_query = handle.search_query  # type: ignore[assignment]
        self.dt_search_hint = handle.search_hint or ""  # type: ignore[assignment]
        self.dt_page = handle.page.model_dump()  # type: ignore[assignment]
        self.dt_filtered_count = handle.filtered_count  # type: ignore[assignment]
        self.dt_total_count = handle.total_count  # type: ignore[assignment]
        self.dt_active_filter_count = handle.active_filter_count  # type: ignore[assignment]
        self.dt_row_count_label = handle.row_count_label  # type: ignore[assignment]
        self.dt_all_selected = handle.is_all_selected  # type: ignore[assignment]
        self.dt_some_selected = handle.is_some_selected  # type: ignore[assignment]
        self.dt_facets = self._dt_facets(table, handle)  # type: ignore[assignment]

        logger.debug(
            "[DataTable] view sync: rows=%d, filtered=%d, elapsed=%.1fms",
            len(handle.rows),
            self.dt_filtered_count,
            (time.perf_counter() - t0) * 1000,
        )
