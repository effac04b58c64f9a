"""Server-mode data source backed by a polars LazyFrame.

:class:`LazyFrameSource` answers page requests for a table running in
server paging mode: it pushes filter, search and sort state into a lazy
query, counts the matches and collects only the requested slice.

Typical usage::

    source = LazyFrameSource.from_file(Path("projects.parquet"))
    result = source.fetch_page(
        filters={"status": ["active"]},
        query="berlin",
        sort=[SortRule(column_id="updated_at", direction="desc")],
        page_index=0,
        page_size=50,
    )
    result.rows, result.total, result.has_next
"""

import logging
import time
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import polars as pl
from pydantic import BaseModel, ConfigDict

from reflex_data_table.filtering import GlobalSearchOptions, is_column_searchable
from reflex_data_table.models import ColumnDescriptor, SortRule
from reflex_data_table.pagination import ServerPageInfo
from reflex_data_table.polars_utils import (
    ROW_INDEX_FIELD,
    _dataframe_to_dicts,
    apply_filter_state,
    apply_global_search,
    apply_sort_state,
    build_column_descriptors_from_schema,
    frame_facet_counts,
)

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE: int = 50
_DEFAULT_SEARCH_KEY: str = "q"


# ---------------------------------------------------------------------------
# File scanner
# ---------------------------------------------------------------------------

def scan_file(path: Path | str) -> pl.LazyFrame:
    """Scan a data file into a LazyFrame, picking the reader from the extension.

    * ``.parquet`` / ``.pq`` -- ``pl.scan_parquet()``.
    * ``.csv`` -- ``pl.scan_csv()``.
    * ``.tsv`` -- ``pl.scan_csv(separator="\\t")``.
    * ``.json`` -- ``pl.read_json().lazy()`` (no streaming scan).
    * ``.ndjson`` / ``.jsonl`` -- ``pl.scan_ndjson()``.
    * ``.ipc`` / ``.arrow`` / ``.feather`` -- ``pl.scan_ipc()``.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file extension is not recognised.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix in (".parquet", ".pq"):
        return pl.scan_parquet(path)
    if suffix == ".csv":
        return pl.scan_csv(path)
    if suffix == ".tsv":
        return pl.scan_csv(path, separator="\t")
    if suffix == ".json":
        return pl.read_json(path).lazy()
    if suffix in (".ndjson", ".jsonl"):
        return pl.scan_ndjson(path)
    if suffix in (".ipc", ".arrow", ".feather"):
        return pl.scan_ipc(path)

    raise ValueError(
        f"Unsupported file extension: {suffix!r}. "
        "Supported: .parquet, .pq, .csv, .tsv, .json, .ndjson, .jsonl, "
        ".ipc, .arrow, .feather"
    )


# ---------------------------------------------------------------------------
# Page results
# ---------------------------------------------------------------------------

class PageResult(BaseModel):
    """One collected page plus the counts a server-mode table needs."""

    model_config = ConfigDict(frozen=True)

    rows: list[dict[str, Any]]
    total: int
    page_index: int
    page_size: int
    has_next: bool
    has_prev: bool

    def page_info(self) -> ServerPageInfo:
        return ServerPageInfo(
            page_index=self.page_index,
            page_size=self.page_size,
            has_next=self.has_next,
            has_prev=self.has_prev,
            total_rows=self.total,
        )


class LazyFrameSource:
    """Answers filtered, searched, sorted page requests from a LazyFrame.

    The full frame is never collected: the row count is a
    ``select(pl.len())`` query and only the requested slice is
    materialised.

    Args:
        lf: The LazyFrame to serve.
        columns: Column descriptors; derived from the schema when omitted.
        search_key: Filter-state key holding the global search query.
        search_options: Which columns global search covers and how.
        json_safe: Convert temporal, list and struct values to JSON-safe
            forms (for shipping rows to the browser).
    """

    def __init__(
        self,
        lf: pl.LazyFrame,
        *,
        columns: Sequence[ColumnDescriptor] | None = None,
        search_key: str = _DEFAULT_SEARCH_KEY,
        search_options: GlobalSearchOptions | None = None,
        json_safe: bool = True,
    ) -> None:
        self.lf = lf
        self.schema: pl.Schema = lf.collect_schema()
        self.columns: list[ColumnDescriptor] = (
            list(columns) if columns is not None
            else build_column_descriptors_from_schema(self.schema)
        )
        self.search_key = search_key
        self.search_options = search_options or GlobalSearchOptions()
        self.json_safe = json_safe

    @classmethod
    def from_file(cls, path: Path | str, **kwargs: Any) -> "LazyFrameSource":
        return cls(scan_file(path), **kwargs)

    @property
    def search_columns(self) -> list[str]:
        options = self.search_options
        allowed = set(options.searchable_columns) if options.searchable_columns else None
        excluded = set(options.exclude_columns)
        names: list[str] = []
        for column in self.columns:
            if not is_column_searchable(column) or column.id in excluded:
                continue
            if allowed is not None and column.id not in allowed:
                continue
            names.append(column.id)
        return names

    def query(
        self,
        filters: Mapping[str, Any] | None = None,
        query: str | None = None,
        sort: Iterable[SortRule | Mapping[str, Any]] | None = None,
        *,
        now: datetime | None = None,
    ) -> pl.LazyFrame:
        """The filtered, searched and sorted LazyFrame (nothing collected)."""
        filters = dict(filters or {})
        if query is None:
            stored = filters.get(self.search_key)
            query = stored if isinstance(stored, str) else None

        lf = apply_filter_state(
            self.lf,
            filters,
            self.schema,
            ignore_keys=(self.search_key,),
            now=now or datetime.now(timezone.utc),
        )
        lf = apply_global_search(
            lf,
            query,
            self.search_columns,
            self.schema,
            case_sensitive=self.search_options.case_sensitive,
            match_mode=self.search_options.match_mode,
        )
        return apply_sort_state(lf, sort, self.schema)

    def fetch_page(
        self,
        filters: Mapping[str, Any] | None = None,
        query: str | None = None,
        sort: Iterable[SortRule | Mapping[str, Any]] | None = None,
        page_index: int = 0,
        page_size: int = _DEFAULT_PAGE_SIZE,
        *,
        now: datetime | None = None,
    ) -> PageResult:
        """Collect one page: filter -> search -> count -> sort -> slice.

        Rows carry a ``__row_id__`` holding their position in the
        filtered, sorted result.  A *page_index* past the end yields an
        empty page; it is not clamped.
        """
        t0 = time.perf_counter()
        page_index = max(0, page_index)
        page_size = max(1, page_size)
        lf = self.query(filters, query, sort, now=now)

        t_count = time.perf_counter()
        total: int = lf.select(pl.len()).collect().item()
        logger.debug(
            "[DataTable] row count: %s (%.1fms)",
            f"{total:,}",
            (time.perf_counter() - t_count) * 1000,
        )

        offset = page_index * page_size
        page_df = lf.slice(offset, page_size).collect()
        if ROW_INDEX_FIELD not in page_df.columns:
            page_df = page_df.with_row_index(ROW_INDEX_FIELD, offset=offset)
        rows = _dataframe_to_dicts(page_df) if self.json_safe else page_df.to_dicts()

        elapsed_ms = (time.perf_counter() - t0) * 1000
        logger.debug(
            "[DataTable] page fetch: offset=%d, slice=%d, total=%d, elapsed=%.1fms",
            offset,
            len(rows),
            total,
            elapsed_ms,
        )
        return PageResult(
            rows=rows,
            total=total,
            page_index=page_index,
            page_size=page_size,
            has_next=offset + page_size < total,
            has_prev=page_index > 0,
        )

    def facets(
        self,
        column_id: str,
        filters: Mapping[str, Any] | None = None,
        query: str | None = None,
        *,
        now: datetime | None = None,
    ) -> Counter:
        """Facet counts of *column_id* over the filtered frame."""
        return frame_facet_counts(self.query(filters, query, now=now), column_id, self.schema)
