"""Per-column filters and global search.

Two predicate families reduce the row set:

* **Column filters** keyed by column id.  A list filter is an OR over its
  members ("array-or"): it matches when the cell, or any member of an
  array cell, is one of the selected values.  A string filter matches by
  substring.  Date and date-range filters compare timestamps.
* **Global search** over every searchable column, short-circuiting on
  the first column whose stringified value matches the query.

A row survives when every active column filter *and* the search query
match.
"""

import dataclasses
import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from reflex_data_table.columns import ColumnRegistry
from reflex_data_table.models import ColumnDescriptor, DateRange
from reflex_data_table.presets import resolve_date_range
from reflex_data_table.values import get_nested_value, is_array, iso_timestamp, to_timestamp

logger = logging.getLogger(__name__)

MatchMode = Literal["contains", "startsWith", "exact"]

FilterValue = str | list[str] | datetime | DateRange | None

_SEARCHING_PREVIEW_COUNT = 3


# ---------------------------------------------------------------------------
# Empty / active checks
# ---------------------------------------------------------------------------

def is_empty_filter_value(value: Any) -> bool:
    """``None``, ``""``, an empty list and an empty ``DateRange`` mean "no filter"."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if is_array(value):
        return len(value) == 0
    if isinstance(value, DateRange):
        return value.is_empty
    return False


def active_filter_count(
    filter_state: Mapping[str, Any] | None,
    ignore_keys: Iterable[str] = (),
) -> int:
    ignored = set(ignore_keys)
    return sum(
        1
        for key, value in (filter_state or {}).items()
        if key not in ignored and not is_empty_filter_value(value)
    )


def has_active_filters(
    filter_state: Mapping[str, Any] | None,
    ignore_keys: Iterable[str] = (),
) -> bool:
    return active_filter_count(filter_state, ignore_keys) > 0


def clean_filter_state(filter_state: Mapping[str, Any] | None) -> dict[str, Any]:
    """Copy of *filter_state* without its empty entries."""
    return {k: v for k, v in (filter_state or {}).items() if not is_empty_filter_value(v)}


# ---------------------------------------------------------------------------
# Stringification
# ---------------------------------------------------------------------------

def value_to_searchable_string(value: Any) -> str:
    """Flatten any cell value into one searchable string.

    * ``None`` -> ``""``
    * arrays -> members joined by a space (empty members dropped)
    * mappings, pydantic models and dataclasses -> their values, joined
    * datetimes -> ISO-8601 UTC with milliseconds
    * booleans -> ``"true"`` / ``"false"``
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return iso_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if is_array(value):
        return _join_searchable(value)
    if isinstance(value, Mapping):
        return _join_searchable(value.values())
    if isinstance(value, BaseModel):
        return _join_searchable(value.model_dump().values())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _join_searchable(getattr(value, f.name) for f in dataclasses.fields(value))
    return str(value)


def _join_searchable(values: Iterable[Any]) -> str:
    parts = (value_to_searchable_string(v) for v in values)
    return " ".join(p for p in parts if p)


def _fold(text: str, case_sensitive: bool) -> str:
    return text if case_sensitive else text.casefold()


# ---------------------------------------------------------------------------
# Column filter predicate
# ---------------------------------------------------------------------------

def _timestamps(cell: Any) -> list[datetime]:
    members = cell if is_array(cell) else [cell]
    stamps = (to_timestamp(m) for m in members)
    return [s for s in stamps if s is not None]


def _matches_same_day(cell: Any, day: date | datetime) -> bool:
    if isinstance(day, datetime):
        tz = day.tzinfo or timezone.utc
        target = day.date() if day.tzinfo is None else day.astimezone(tz).date()
    else:
        tz, target = timezone.utc, day
    return any(ts.astimezone(tz).date() == target for ts in _timestamps(cell))


def _matches_range(cell: Any, value: DateRange, now: datetime | None) -> bool:
    start, end = resolve_date_range(value, now)
    for ts in _timestamps(cell):
        if start is not None and ts < start:
            continue
        if end is not None and ts > end:
            continue
        return True
    return False


def column_filter_matches(
    cell: Any,
    filter_value: Any,
    *,
    case_sensitive: bool = False,
    now: datetime | None = None,
) -> bool:
    """Evaluate one column filter against one cell value.

    Args:
        cell: The value read by the column's accessor.
        filter_value: ``None``/``str``/``list[str]``/``datetime``/``DateRange``.
        case_sensitive: Applies uniformly to list and string filters.
        now: Reference time used to resolve preset date ranges.

    Returns:
        ``True`` when the cell passes.  Empty filters always pass.
    """
    if is_empty_filter_value(filter_value):
        return True

    if isinstance(filter_value, DateRange):
        return _matches_range(cell, filter_value, now)

    if isinstance(filter_value, (datetime, date)):
        return _matches_same_day(cell, filter_value)

    if is_array(filter_value):
        wanted = {_fold(value_to_searchable_string(v), case_sensitive) for v in filter_value}
        if is_array(cell):
            return any(
                _fold(value_to_searchable_string(member), case_sensitive) in wanted
                for member in cell
            )
        if cell is None:
            return False
        return _fold(value_to_searchable_string(cell), case_sensitive) in wanted

    if isinstance(filter_value, str):
        haystack = _fold(value_to_searchable_string(cell), case_sensitive)
        return _fold(filter_value, case_sensitive) in haystack

    return cell == filter_value


# ---------------------------------------------------------------------------
# Global search
# ---------------------------------------------------------------------------

class GlobalSearchOptions(BaseModel):
    """Tuning for global search.

    Attributes:
        searchable_columns: Allow-list of column ids.  Empty or ``None``
            means "every column that qualifies".
        exclude_columns: Deny-list of column ids.
        case_sensitive: Compare without case folding.
        match_mode: ``contains`` (default), ``startsWith`` or ``exact``.
        search_nested_fields: When ``False``, object and array cells read
            through the accessor are skipped.
    """

    model_config = ConfigDict(frozen=True)

    searchable_columns: list[str] | None = None
    exclude_columns: list[str] = []
    case_sensitive: bool = False
    match_mode: MatchMode = "contains"
    search_nested_fields: bool = True


def is_column_searchable(column: ColumnDescriptor) -> bool:
    if column.searchable is False:
        return False
    if column.searchable is True:
        return True
    return column.has_accessor


def resolve_searchable_columns(
    registry: ColumnRegistry | Iterable[ColumnDescriptor],
    options: GlobalSearchOptions | None = None,
) -> list[ColumnDescriptor]:
    """Columns global search looks at, in declaration order.

    ``searchable=False`` always wins, then the deny-list, then the
    allow-list; otherwise a column qualifies via :func:`is_column_searchable`.
    """
    options = options or GlobalSearchOptions()
    excluded = set(options.exclude_columns)
    allowed = set(options.searchable_columns or ())

    resolved: list[ColumnDescriptor] = []
    for column in registry:
        if column.searchable is False:
            continue
        if column.id in excluded:
            continue
        if allowed:
            if column.id in allowed:
                resolved.append(column)
            continue
        if is_column_searchable(column):
            resolved.append(column)
    return resolved


def extract_searchable_value(
    row: Any,
    column: ColumnDescriptor,
    *,
    search_nested_fields: bool = True,
) -> str:
    """Searchable text for one cell.

    Priority: ``search_transform`` applied to the accessor value, then the
    ``search_path`` values read off the row, then the accessor value.
    """
    if column.search_transform is not None:
        return value_to_searchable_string(column.search_transform(column.get_value(row)))

    paths = column.search_paths
    if paths:
        return value_to_searchable_string([get_nested_value(row, p) for p in paths])

    value = column.get_value(row)
    if not search_nested_fields and not isinstance(value, (str, int, float, bool, datetime, date)):
        if value is not None:
            return ""
    return value_to_searchable_string(value)


def normalize_search_string(value: str, case_sensitive: bool = False) -> str:
    if not value:
        return ""
    return _fold(value.strip(), case_sensitive)


def match_search_term(value: str, term: str, mode: MatchMode = "contains") -> bool:
    if not value or not term:
        return False
    if mode == "startsWith":
        return value.startswith(term)
    if mode == "exact":
        return value == term
    return term in value


def describe_searchable_columns(names: Sequence[str]) -> str | None:
    """Hint text such as ``"Searching: Name, Status, Region, +2 more"``."""
    if not names:
        return None
    shown = ", ".join(names[:_SEARCHING_PREVIEW_COUNT])
    remaining = len(names) - _SEARCHING_PREVIEW_COUNT
    if remaining > 0:
        return f"Searching: {shown}, +{remaining} more"
    return f"Searching: {shown}"


class GlobalSearch:
    """Global search predicate bound to a registry.

    The searchable column set is resolved once per options change; call
    :meth:`set_options` to switch allow/deny lists at runtime.
    """

    def __init__(
        self,
        registry: ColumnRegistry,
        options: GlobalSearchOptions | None = None,
    ) -> None:
        self._registry = registry
        self._options = options or GlobalSearchOptions()
        self._columns = resolve_searchable_columns(registry, self._options)
        self.version = 0

    @property
    def options(self) -> GlobalSearchOptions:
        return self._options

    @property
    def columns(self) -> list[ColumnDescriptor]:
        return list(self._columns)

    def set_options(self, options: GlobalSearchOptions | None = None, **changes: Any) -> None:
        """Replace the options (or update individual fields) and re-resolve columns."""
        base = options or self._options
        self._options = base.model_copy(update=changes) if changes else base
        self._columns = resolve_searchable_columns(self._registry, self._options)
        self.version += 1
        logger.debug(
            "[DataTable] search columns: %s",
            ", ".join(c.id for c in self._columns) or "(none)",
        )

    @property
    def column_ids(self) -> list[str]:
        return [c.id for c in self._columns]

    @property
    def column_names(self) -> list[str]:
        return [c.label for c in self._columns]

    def describe(self) -> str | None:
        return describe_searchable_columns(self.column_names)

    def matches(self, row: Any, query: str | None) -> bool:
        """Whether *row* matches *query*; an empty query always matches."""
        if not query or not query.strip():
            return True
        opts = self._options
        term = normalize_search_string(query, opts.case_sensitive)
        for column in self._columns:
            text = extract_searchable_value(
                row, column, search_nested_fields=opts.search_nested_fields
            )
            if match_search_term(
                normalize_search_string(text, opts.case_sensitive), term, opts.match_mode
            ):
                return True
        return False


# ---------------------------------------------------------------------------
# Row reduction
# ---------------------------------------------------------------------------

def filter_rows(
    rows: Iterable[Any],
    filter_state: Mapping[str, Any] | None,
    registry: ColumnRegistry,
    *,
    search: GlobalSearch | None = None,
    query: str | None = "",
    ignore_keys: Iterable[str] = (),
    case_sensitive: bool = False,
    now: datetime | None = None,
) -> list[Any]:
    """Apply column filters and global search; preserves row order.

    Filter keys that name no column are skipped.  *ignore_keys* lets
    callers keep non-column entries (the search query) in the same state.
    """
    ignored = set(ignore_keys)
    active: list[tuple[ColumnDescriptor, Any]] = []
    for key, value in (filter_state or {}).items():
        if key in ignored or is_empty_filter_value(value):
            continue
        column = registry.get(key)
        if column is None:
            logger.debug("[DataTable] ignoring filter %r (no such column)", key)
            continue
        active.append((column, value))

    searching = search is not None and bool(query and query.strip())
    if not active and not searching:
        return list(rows)

    result: list[Any] = []
    for row in rows:
        if not all(
            column_filter_matches(
                column.get_value(row), value, case_sensitive=case_sensitive, now=now
            )
            for column, value in active
        ):
            continue
        if searching and not search.matches(row, query):  # type: ignore[union-attr]
            continue
        result.append(row)
    return result
