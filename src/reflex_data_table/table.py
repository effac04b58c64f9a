"""The table engine: wires columns, rows and every controller together.

:class:`DataTable` owns no rendering.  It reduces the raw rows
(filter + search), orders them, picks the page window and hands the
result to the rendering layer as an immutable :class:`TableHandle`
through :meth:`DataTable.view`.

Typical usage::

    table = DataTable(
        columns=[
            ColumnDescriptor(id="name", accessor_key="name"),
            ColumnDescriptor(id="status", accessor_key="status", facetable=True),
        ],
        rows=projects,
        row_id="id",
        paging=ClientPaging(page_size=20),
    )
    table.set_filter("status", ["active"])
    handle = table.view()
    handle.rows, handle.page.page_count, handle.facets("status")
"""

import dataclasses
import logging
import time
from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Literal

from reflex_data_table.actions import (
    _DEFAULT_MAX_INLINE_ACTIONS,
    MultiAction,
    RowAction,
    partition_row_actions,
)
from reflex_data_table.columns import ColumnRegistry
from reflex_data_table.debounce import Debouncer, _monotonic_ms
from reflex_data_table.facets import facet_counts, facet_min_max
from reflex_data_table.filtering import (
    GlobalSearch,
    GlobalSearchOptions,
    active_filter_count,
    clean_filter_state,
    filter_rows,
    has_active_filters,
    is_empty_filter_value,
)
from reflex_data_table.inline_content import (
    InlineContentController,
    InlineContentState,
    LayoutEntry,
)
from reflex_data_table.models import ColumnDescriptor, DateRange, SortRule
from reflex_data_table.pagination import (
    ClientPaginator,
    ClientPaging,
    PageInfo,
    ServerPageInfo,
    ServerPaginator,
    ServerPaging,
)
from reflex_data_table.selection import SelectionController, make_row_id_getter
from reflex_data_table.sorting import Comparator, normalize_sort_state, sort_rows, toggle_sort
from reflex_data_table.store import MemoryStore, Store
from reflex_data_table.toolbar import SearchConfig, resolve_search_config, row_count_label
from reflex_data_table.url_codec import FilterKind, apply_initial_state

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class TableHandle:
    """Immutable snapshot of the table returned by :meth:`DataTable.view`.

    The data fields describe what to render.  The methods dispatch
    intents back to the engine; call ``view()`` again afterwards for the
    updated snapshot.
    """

    rows: list[Any]
    filtered_count: int
    total_count: int
    page: PageInfo
    sort: list[SortRule]
    filters: dict[str, Any]
    search_query: str
    search_hint: str | None
    has_active_filters: bool
    active_filter_count: int
    selected_ids: frozenset[str]
    is_all_selected: bool
    is_some_selected: bool
    inline: InlineContentState
    layout: list[LayoutEntry]
    row_count_label: str
    table: "DataTable" = dataclasses.field(repr=False, compare=False)

    @property
    def selected_count(self) -> int:
        return len(self.selected_ids)

    def facets(self, column_id: str, source: Literal["filtered", "all"] = "filtered") -> Counter:
        return self.table.facets(column_id, source=source)

    def row_actions(self, row: Any) -> tuple[list[RowAction], list[RowAction]]:
        return self.table.row_actions_for(row)

    # -- dispatchers -----------------------------------------------------

    def set_filter(self, key: str, value: Any) -> None:
        self.table.set_filter(key, value)

    def reset_filter(self, key: str) -> None:
        self.table.reset_filter(key)

    def reset_all_filters(self) -> None:
        self.table.reset_all_filters()

    def search(self, text: str) -> None:
        self.table.search_input(text)

    def toggle_sort(self, column_id: str, multi: bool | None = None) -> None:
        self.table.toggle_sort(column_id, multi=multi)

    def next_page(self) -> None:
        self.table.next_page()

    def prev_page(self) -> None:
        self.table.prev_page()

    def go_to_page(self, page_index: int) -> None:
        self.table.go_to_page(page_index)

    def set_page_size(self, size: Any) -> None:
        self.table.set_page_size(size)

    def toggle_row(self, row_id: str) -> None:
        self.table.selection.toggle(row_id)

    def toggle_all(self) -> None:
        self.table.toggle_all_visible()

    def clear_selection(self) -> None:
        self.table.selection.clear()

    def open_create(self) -> None:
        self.table.open_create()

    def open_edit(self, row_id: str) -> bool:
        return self.table.open_edit(row_id)

    def close_inline(self) -> None:
        self.table.close_inline()


class DataTable:
    """Filterable, sortable, searchable, paginated and selectable rows.

    Args:
        columns: Column descriptors (or keyword mappings).
        rows: The raw rows.  Replace them later with :meth:`set_rows`.
        row_id: Callable or dotted field path giving each row's id.
            Needed for selection and inline editing.
        paging: :class:`ClientPaging` (default) or :class:`ServerPaging`.
        server_page_info: Server mode only: the caller's current
            :class:`ServerPageInfo`, or a callable returning it.
        filter_store: Where filter state lives.  Defaults to memory.
        sort_store: Where sort state lives.  Defaults to memory.
        default_filters: Filters merged under the stored ones.
        default_sort: Initial sort rules for the in-memory sort store.
        search: ``True``, a :class:`SearchConfig`, or ``None`` to disable
            the search box.
        search_options: Global search tuning.
        custom_comparators: Named comparators usable as ``sort_type``.
        enable_multi_sort: Let :meth:`toggle_sort` append rules.
        server_side_filtering: Emit filter/sort intents only; rows are
            used exactly as given.
        case_sensitive_filters: Case sensitivity of column filters.
        filter_kinds: Per-key URL decoding hints.  Text columns whose
            values may be all digits or bracketed need ``"string"``.
        on_filters_change: Called with the full filter state after each
            filter or committed search change.
        on_filtering_start: Called before a server-side filter change.
        on_sort_change: Called with the new sort rules.
        get_selected: Controlled selection getter.
        on_selection_change: Receives every new selection set.
        on_inline_open: ``(mode, data)`` side-effect callback.
        on_inline_close: Side-effect callback.
        row_actions: Actions offered on each row.
        multi_actions: Bulk actions over the selected rows.
        max_inline_actions: Inline row-action limit.
        clock: Millisecond clock for search debouncing.
        now: Reference-time provider for preset date ranges.

    Raises:
        ColumnConfigError: On duplicate column ids or unknown sort types.
    """

    def __init__(
        self,
        columns: Iterable[ColumnDescriptor | Mapping[str, Any]],
        rows: Sequence[Any] | None = None,
        *,
        row_id: Callable[[Any], Any] | str | None = None,
        paging: ClientPaging | ServerPaging | None = None,
        server_page_info: ServerPageInfo | Callable[[], ServerPageInfo | None] | None = None,
        filter_store: Store[dict[str, Any]] | None = None,
        sort_store: Store[list[SortRule]] | None = None,
        default_filters: Mapping[str, Any] | None = None,
        default_sort: Iterable[SortRule | Mapping[str, Any]] | None = None,
        search: bool | SearchConfig | None = True,
        search_options: GlobalSearchOptions | None = None,
        custom_comparators: Mapping[str, Comparator] | None = None,
        enable_multi_sort: bool = False,
        server_side_filtering: bool = False,
        case_sensitive_filters: bool = False,
        filter_kinds: Mapping[str, FilterKind] | None = None,
        on_filters_change: Callable[[dict[str, Any]], Any] | None = None,
        on_filtering_start: Callable[[], Any] | None = None,
        on_sort_change: Callable[[list[SortRule]], Any] | None = None,
        get_selected: Callable[[], Iterable[str]] | None = None,
        on_selection_change: Callable[[frozenset[str]], Any] | None = None,
        on_inline_open: Callable[[str, Any], Any] | None = None,
        on_inline_close: Callable[[], Any] | None = None,
        row_actions: Sequence[RowAction] = (),
        multi_actions: Sequence[MultiAction] = (),
        max_inline_actions: int = _DEFAULT_MAX_INLINE_ACTIONS,
        clock: Callable[[], float] = _monotonic_ms,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.custom_comparators: dict[str, Comparator] = dict(custom_comparators or {})
        self.registry = ColumnRegistry(columns, custom_comparators=self.custom_comparators)
        self.rows: Sequence[Any] = rows if rows is not None else []

        self._row_id = make_row_id_getter(row_id)
        self.server_side_filtering = server_side_filtering
        self.case_sensitive_filters = case_sensitive_filters
        self.enable_multi_sort = enable_multi_sort
        self.default_filters: dict[str, Any] = dict(default_filters or {})
        self.filter_kinds: dict[str, FilterKind] = dict(filter_kinds or {})
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._on_filters_change = on_filters_change
        self._on_filtering_start = on_filtering_start
        self._on_sort_change = on_sort_change

        self.filter_store: Store[dict[str, Any]] = filter_store or MemoryStore({})
        self.sort_store: Store[list[SortRule]] = sort_store or MemoryStore(
            normalize_sort_state(default_sort)
        )

        # Search
        self.search_config: SearchConfig | None = resolve_search_config(search)
        options = search_options or GlobalSearchOptions()
        if (
            self.search_config is not None
            and self.search_config.searchable_columns
            and not options.searchable_columns
        ):
            options = options.model_copy(
                update={"searchable_columns": self.search_config.searchable_columns}
            )
        self.global_search = GlobalSearch(self.registry, options)
        self._debouncer = Debouncer(
            self.commit_search,
            delay_ms=self.search_config.debounce if self.search_config else 0,
            clock=clock,
        )
        if self.search_key is not None:
            self.filter_kinds.setdefault(self.search_key, "string")

        # Paging
        self.paging = paging or ClientPaging()
        self.client_paginator: ClientPaginator | None = None
        self.server_paginator: ServerPaginator | None = None
        self._get_server_page_info = _page_info_getter(server_page_info)
        if isinstance(self.paging, ServerPaging):
            self.server_paginator = ServerPaginator(
                self.paging, lambda: self._get_server_page_info()
            )
        else:
            self.client_paginator = ClientPaginator(self.paging)

        self.selection = SelectionController(
            self._row_id, get_selected=get_selected, on_change=on_selection_change
        )
        self.inline = InlineContentController(on_open=on_inline_open, on_close=on_inline_close)

        self.row_actions: list[RowAction] = list(row_actions)
        self.multi_actions: list[MultiAction] = list(multi_actions)
        self.max_inline_actions = max_inline_actions

        self._cache_key: tuple[Any, ...] | None = None
        self._cache_source: Sequence[Any] | None = None
        self._cache_rows: list[Any] = []

    # ------------------------------------------------------------------
    # Row data
    # ------------------------------------------------------------------

    def set_rows(self, rows: Sequence[Any]) -> None:
        """Replace the raw rows.  Selection is kept; the page index is clamped on view."""
        self.rows = rows
        self._cache_key = None
        self._cache_source = None

    def bind_stores(
        self,
        *,
        filter_store: Store[dict[str, Any]] | None = None,
        sort_store: Store[list[SortRule]] | None = None,
        get_selected: Callable[[], Iterable[str]] | None = None,
        on_selection_change: Callable[[frozenset[str]], Any] | None = None,
        server_page_info: ServerPageInfo | Callable[[], ServerPageInfo | None] | None = None,
    ) -> None:
        """Point the table at state owned elsewhere (e.g. one Reflex session).

        Only the pieces given are replaced.  Selection becomes controlled
        when *get_selected* is given.
        """
        if filter_store is not None:
            self.filter_store = filter_store
        if sort_store is not None:
            self.sort_store = sort_store
        if get_selected is not None:
            self.selection = SelectionController(
                self._row_id, get_selected=get_selected, on_change=on_selection_change
            )
        if server_page_info is not None:
            self._get_server_page_info = _page_info_getter(server_page_info)

    def row_id(self, row: Any) -> str:
        if self._row_id is None:
            return str(id(row))
        return self._row_id(row)

    # ------------------------------------------------------------------
    # Filters and search
    # ------------------------------------------------------------------

    @property
    def search_key(self) -> str | None:
        return self.search_config.filter_key if self.search_config else None

    @property
    def filters(self) -> dict[str, Any]:
        """Defaults merged with the stored filter state."""
        return {**self.default_filters, **(self.filter_store.get() or {})}

    def get_filter_value(self, key: str) -> Any:
        return self.filters.get(key)

    def set_filter(self, key: str, value: Any) -> None:
        """Set one filter.  Resets the client page and emits ``on_filters_change``."""
        if self.server_side_filtering and self._on_filtering_start is not None:
            self._on_filtering_start()
        stored = dict(self.filter_store.get() or {})
        if is_empty_filter_value(value) and key not in self.default_filters:
            stored.pop(key, None)
        else:
            stored[key] = value
        self.filter_store.set(stored)
        self._after_filter_change()

    def reset_filter(self, key: str) -> None:
        self.set_filter(key, None)

    def reset_all_filters(self) -> None:
        self._debouncer.cancel()
        if self.server_side_filtering and self._on_filtering_start is not None:
            self._on_filtering_start()
        self.filter_store.set({})
        self._after_filter_change()

    def _after_filter_change(self) -> None:
        if self.client_paginator is not None:
            self.client_paginator.reset()
        filters = clean_filter_state(self.filters)
        logger.debug("[DataTable] filters changed: %s", ", ".join(filters) or "(none)")
        if self._on_filters_change is not None:
            self._on_filters_change(filters)

    @property
    def search_query(self) -> str:
        if self.search_key is None:
            return ""
        value = self.filters.get(self.search_key)
        return value if isinstance(value, str) else ""

    @property
    def pending_search(self) -> str | None:
        return self._debouncer.pending_value if self._debouncer.pending else None

    def search_input(self, text: str) -> None:
        """Feed the search box; the query commits after the debounce window."""
        if self.search_key is None:
            return
        self._debouncer.push(text)

    def poll_search(self) -> bool:
        """Commit a pending search query whose debounce window has elapsed."""
        return self._debouncer.poll()

    def flush_search(self) -> bool:
        return self._debouncer.flush()

    def commit_search(self, query: str) -> None:
        if self.search_key is None:
            return
        if (query or "") == self.search_query:
            return
        self.set_filter(self.search_key, query or None)

    def set_search_options(self, options: GlobalSearchOptions | None = None, **changes: Any) -> None:
        self.global_search.set_options(options, **changes)

    def has_active_filters(self) -> bool:
        return has_active_filters(self.filters)

    def active_filter_count(self) -> int:
        return active_filter_count(self.filters)

    def load_url_params(self, params: Mapping[str, Any] | None) -> dict[str, Any]:
        """Apply filters found in URL params (first mount).

        In server-side mode the decoded filters are reported through
        ``on_filters_change`` so the caller can fetch the matching page.
        """
        keys = set(self.registry.ids) | set(self.filter_kinds)
        if self.search_key is not None:
            keys.add(self.search_key)
        decoded = apply_initial_state(self.filter_store, params, self.filter_kinds, keys)
        if decoded:
            self._after_filter_change()
        return decoded

    # ------------------------------------------------------------------
    # Sorting
    # ------------------------------------------------------------------

    @property
    def sort_state(self) -> list[SortRule]:
        return normalize_sort_state(self.sort_store.get())

    def set_sort(self, rules: Iterable[SortRule | Mapping[str, Any]] | None) -> None:
        new_rules = normalize_sort_state(rules)
        self.sort_store.set(new_rules)
        logger.debug(
            "[DataTable] sort: %s",
            ", ".join(f"{r.column_id} {r.direction}" for r in new_rules) or "(none)",
        )
        if self._on_sort_change is not None:
            self._on_sort_change(new_rules)

    def toggle_sort(self, column_id: str, multi: bool | None = None) -> list[SortRule]:
        column = self.registry[column_id]
        if not column.is_sortable:
            return self.sort_state
        use_multi = self.enable_multi_sort if multi is None else (multi and self.enable_multi_sort)
        rules = toggle_sort(self.sort_state, column_id, multi=use_multi)
        self.set_sort(rules)
        return rules

    def clear_sort(self) -> None:
        self.set_sort([])

    # ------------------------------------------------------------------
    # Derived rows
    # ------------------------------------------------------------------

    def _has_relative_filters(self, filters: Mapping[str, Any]) -> bool:
        return any(isinstance(v, DateRange) and v.preset for v in filters.values())

    def processed_rows(self) -> list[Any]:
        """Filtered, searched and sorted rows (all pages)."""
        if self.server_side_filtering:
            return list(self.rows)

        filters = clean_filter_state(self.filters)
        sort = self.sort_state
        query = self.search_query
        key = (
            len(self.rows),
            tuple(sorted((k, repr(v)) for k, v in filters.items())),
            query,
            tuple((r.column_id, r.direction) for r in sort),
            self.global_search.version,
        )
        if (
            self._cache_source is self.rows
            and key == self._cache_key
            and not self._has_relative_filters(filters)
        ):
            return self._cache_rows

        t0 = time.perf_counter()
        global_mode = self.search_config is not None and self.search_config.mode == "global-search"
        filtered = filter_rows(
            self.rows,
            filters,
            self.registry,
            search=self.global_search if global_mode else None,
            query=query,
            ignore_keys=(self.search_key,) if global_mode and self.search_key else (),
            case_sensitive=self.case_sensitive_filters,
            now=self._now(),
        )
        ordered = sort_rows(
            filtered, sort, self.registry, custom_comparators=self.custom_comparators
        )
        elapsed_ms = (time.perf_counter() - t0) * 1000
        logger.debug(
            "[DataTable] recompute: rows=%d, filtered=%d, sort=%d rule(s), elapsed=%.1fms",
            len(self.rows),
            len(ordered),
            len(sort),
            elapsed_ms,
        )
        self._cache_key = key
        self._cache_source = self.rows
        self._cache_rows = ordered
        return ordered

    def page_rows(self) -> list[Any]:
        """The rendered window: one page in client mode, the given rows in server mode."""
        processed = self.processed_rows()
        if self.client_paginator is None:
            return processed
        self.client_paginator.clamp(len(processed))
        return self.client_paginator.slice(processed)

    def facets(self, column_id: str, source: Literal["filtered", "all"] = "filtered") -> Counter:
        column = self.registry[column_id]
        rows = self.processed_rows() if source == "filtered" else self.rows
        return facet_counts(rows, column)

    def facet_range(
        self,
        column_id: str,
        source: Literal["filtered", "all"] = "filtered",
    ) -> tuple[float, float] | None:
        column = self.registry[column_id]
        rows = self.processed_rows() if source == "filtered" else self.rows
        return facet_min_max(rows, column)

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def page_info(self) -> PageInfo:
        if self.server_paginator is not None:
            return self.server_paginator.page_info()
        return self.client_paginator.page_info(len(self.processed_rows()))  # type: ignore[union-attr]

    def next_page(self) -> None:
        if self.server_paginator is not None:
            self.server_paginator.next()
        else:
            self.client_paginator.next(len(self.processed_rows()))  # type: ignore[union-attr]

    def prev_page(self) -> None:
        if self.server_paginator is not None:
            self.server_paginator.prev()
        else:
            self.client_paginator.prev()  # type: ignore[union-attr]

    def go_to_page(self, page_index: int) -> None:
        if self.server_paginator is not None:
            self.server_paginator.go_to(page_index)
        else:
            self.client_paginator.go_to(page_index, len(self.processed_rows()))  # type: ignore[union-attr]

    def set_page_size(self, size: Any) -> None:
        if self.server_paginator is not None:
            self.server_paginator.set_page_size(size)
        else:
            self.client_paginator.set_page_size(size)  # type: ignore[union-attr]

    # ------------------------------------------------------------------
    # Selection, inline content and actions
    # ------------------------------------------------------------------

    def toggle_all_visible(self) -> frozenset[str]:
        return self.selection.toggle_all(self.page_rows())

    def selected_rows(self) -> list[Any]:
        return self.selection.selected_rows(self.rows)

    def open_create(self) -> None:
        self.inline.open_create()

    def open_edit(self, row_id: str, data: Any = None) -> bool:
        window = self.page_rows()
        if data is None:
            data = next((r for r in window if self.row_id(r) == row_id), None)
        return self.inline.open_edit(row_id, [self.row_id(r) for r in window], data)

    def close_inline(self) -> None:
        self.inline.close()

    def get_inline_state(self) -> InlineContentState:
        return self.inline.get_state()

    def row_actions_for(self, row: Any) -> tuple[list[RowAction], list[RowAction]]:
        return partition_row_actions(self.row_actions, row, self.max_inline_actions)

    def run_row_action(self, key: str, row_id: str) -> bool:
        action = next((a for a in self.row_actions if a.key == key), None)
        row = next((r for r in self.page_rows() if self.row_id(r) == row_id), None)
        if action is None or row is None or action.is_hidden(row):
            return False
        return action.run(row, open_inline_edit=lambda r: self.open_edit(self.row_id(r), r))

    def run_multi_action(self, key: str) -> bool:
        action = next((a for a in self.multi_actions if a.key == key), None)
        if action is None:
            return False
        return action.run(self.selected_rows())

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def view(self) -> TableHandle:
        """Re-read every store and return an immutable snapshot."""
        processed = self.processed_rows()
        window = self.page_rows()
        filters = self.filters
        selection_ready = self.selection.available
        selected = self.selection.selected if selection_ready else frozenset()
        page = self.page_info()
        if self.server_paginator is not None and page.total_rows is not None:
            filtered_count = total_count = page.total_rows
        else:
            filtered_count, total_count = len(processed), len(self.rows)
        return TableHandle(
            rows=window,
            filtered_count=filtered_count,
            total_count=total_count,
            page=page,
            sort=self.sort_state,
            filters=clean_filter_state(filters),
            search_query=self.search_query,
            search_hint=self.global_search.describe() if self.search_config else None,
            has_active_filters=has_active_filters(filters),
            active_filter_count=active_filter_count(filters),
            selected_ids=selected,
            is_all_selected=self.selection.is_all_selected(window) if selection_ready else False,
            is_some_selected=self.selection.is_some_selected(window) if selection_ready else False,
            inline=self.inline.get_state(),
            layout=self.inline.layout(window, self.row_id),
            row_count_label=row_count_label(filtered_count, total_count, len(selected)),
            table=self,
        )


def _page_info_getter(
    source: ServerPageInfo | Callable[[], ServerPageInfo | None] | None,
) -> Callable[[], ServerPageInfo | None]:
    if source is None:
        return lambda: None
    if isinstance(source, ServerPageInfo):
        return lambda: source
    return source

