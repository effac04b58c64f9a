"""Utilities for deriving table columns and rows from polars frames.

The in-memory engines in :mod:`reflex_data_table.filtering` and
:mod:`reflex_data_table.sorting` work on Python rows.  The functions here
push the same filter, search and sort state down into a polars
``LazyFrame`` query instead, so large datasets are never collected in full.
"""

import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Any

import polars as pl

from reflex_data_table.filtering import MatchMode, is_empty_filter_value
from reflex_data_table.models import ColumnDescriptor, DateRange, SortRule
from reflex_data_table.presets import _end_of_day, _start_of_day, resolve_date_range
from reflex_data_table.sorting import normalize_sort_state
from reflex_data_table.values import ensure_aware, is_array

logger = logging.getLogger(__name__)

ROW_INDEX_FIELD: str = "__row_id__"


def polars_dtype_to_sort_type(dtype: pl.DataType) -> str | None:
    """Map a polars DataType to the closest table sort type.

    Args:
        dtype: A polars data type.

    Returns:
        One of ``"boolean"``, ``"numeric"``, ``"date"``, ``"arrayLength"``,
        ``"string"``, or ``None`` for nested structs (not sortable).
    """
    if isinstance(dtype, pl.Boolean):
        return "boolean"
    if dtype.is_numeric():
        return "numeric"
    if isinstance(dtype, (pl.Date, pl.Datetime)):
        return "date"
    if isinstance(dtype, (pl.List, pl.Array)):
        return "arrayLength"
    if isinstance(dtype, pl.Struct):
        return None
    # String, Categorical, Enum, Duration, Time, ...
    return "string"


def _humanize_field_name(field: str) -> str:
    """Convert a snake_case or raw field name to a human-friendly header.

    Examples:
        ``"first_name"`` -> ``"First Name"``
        ``"age"`` -> ``"Age"``
        ``"__row_id__"`` -> ``"Row Id"``
    """
    return field.strip("_").replace("_", " ").title()


def _is_categorical_dtype(dtype: pl.DataType) -> bool:
    """Return True if the dtype is explicitly categorical (Categorical or Enum)."""
    return isinstance(dtype, (pl.Categorical, pl.Enum))


def _is_list_dtype(dtype: pl.DataType) -> bool:
    return isinstance(dtype, (pl.List, pl.Array))


def _as_list_expr(col: pl.Expr, dtype: pl.DataType) -> pl.Expr:
    if isinstance(dtype, pl.Array):
        return col.arr.to_list()
    return col


def _col_to_str_expr(col: pl.Expr, dtype: pl.DataType) -> pl.Expr:
    """Convert a column expression to a String, handling List/Struct types.

    * ``List(T)`` / ``Array(T, n)`` -> inner values cast to String, joined
      with a space (the same joining the in-memory search uses).
    * ``Struct`` -> JSON text.
    * Everything else -> ``cast(pl.String)``.
    """
    if _is_list_dtype(dtype):
        return _as_list_expr(col, dtype).cast(pl.List(pl.String)).list.join(" ")
    if isinstance(dtype, pl.Struct):
        return col.struct.json_encode()
    return col.cast(pl.String)


# ---------------------------------------------------------------------------
# Columns and rows
# ---------------------------------------------------------------------------

def build_column_descriptors_from_schema(
    schema: pl.Schema | Mapping[str, pl.DataType],
    *,
    id_field: str | None = None,
    show_id_field: bool = False,
    headers: Mapping[str, str] | None = None,
    facet_columns: Iterable[str] | None = None,
) -> list[ColumnDescriptor]:
    """Build :class:`ColumnDescriptor` objects from a polars schema, without collecting data.

    List, Array, Categorical and Enum columns are facetable; so is every
    column named in *facet_columns*.

    Args:
        schema: A polars ``Schema`` (e.g. ``lf.collect_schema()``).
        id_field: Name of the column used as the unique row identifier.
            Excluded from the result unless *show_id_field* is ``True``.
        show_id_field: Whether to include the *id_field* column.
        headers: Optional ``{column: header}`` overrides.
        facet_columns: Additional columns to mark facetable.

    Returns:
        One descriptor per column, in schema order.
    """
    headers = headers or {}
    extra_facets = set(facet_columns or ())

    descriptors: list[ColumnDescriptor] = []
    for col_name, dtype in schema.items():
        if not show_id_field and col_name in (id_field, ROW_INDEX_FIELD):
            continue

        sort_type = polars_dtype_to_sort_type(dtype)
        descriptors.append(
            ColumnDescriptor(
                id=col_name,
                header=headers.get(col_name, _humanize_field_name(col_name)),
                accessor_key=col_name,
                sortable=False if sort_type is None else None,
                sort_type=sort_type,
                facetable=(
                    _is_list_dtype(dtype)
                    or _is_categorical_dtype(dtype)
                    or col_name in extra_facets
                ),
            )
        )
    return descriptors


def _resolve_id_field(df: pl.DataFrame, id_field: str | None) -> tuple[pl.DataFrame, str]:
    # An "id" column is only trusted when its values are unique; otherwise
    # every row gets a positional index.
    if id_field is not None:
        return df, id_field
    if "id" in df.columns and df["id"].n_unique() == df.height:
        return df, "id"
    return df.with_row_index(ROW_INDEX_FIELD), ROW_INDEX_FIELD


def lazyframe_to_rows(
    lf: pl.LazyFrame | pl.DataFrame,
    *,
    id_field: str | None = None,
    limit: int | None = None,
) -> tuple[list[dict[str, Any]], str]:
    """Collect a frame into Python row dicts for the in-memory engine.

    Values keep their Python types (lists stay lists, datetimes stay
    datetimes) so array filters, facets and date sorting work on them.

    Args:
        lf: The frame to collect.
        id_field: Column holding unique row ids.  When ``None``, an
            ``"id"`` column with unique values is used, otherwise a
            ``"__row_id__"`` index column is added.
        limit: Optional maximum number of rows to collect.

    Returns:
        A ``(rows, id_field)`` tuple.
    """
    lazy = lf.lazy() if isinstance(lf, pl.DataFrame) else lf
    if limit is not None:
        lazy = lazy.head(limit)
    df, effective_id_field = _resolve_id_field(lazy.collect(), id_field)
    return df.to_dicts(), effective_id_field


def _dataframe_to_dicts(df: pl.DataFrame) -> list[dict[str, Any]]:
    """Convert a DataFrame to a list of JSON-safe dicts.

    * Temporal columns (Date, Datetime, Time, Duration) -> ISO-8601 strings.
    * List/Array columns -> lists of strings.
    * Struct columns -> JSON text.

    Other types are left as-is (polars ``to_dicts()`` already returns
    Python-native scalars for numeric / string / bool).
    """
    exprs: list[pl.Expr] = []
    needs_cast = False
    for name, dtype in df.schema.items():
        col = pl.col(name)
        if isinstance(dtype, (pl.Date, pl.Datetime, pl.Time, pl.Duration)):
            exprs.append(col.cast(pl.String))
        elif _is_list_dtype(dtype):
            exprs.append(_as_list_expr(col, dtype).cast(pl.List(pl.String)))
        elif isinstance(dtype, pl.Struct):
            exprs.append(col.struct.json_encode())
        else:
            exprs.append(col)
            continue
        needs_cast = True

    if not needs_cast:
        return df.to_dicts()
    return df.select(exprs).to_dicts()


# ---------------------------------------------------------------------------
# Server-side filtering
# ---------------------------------------------------------------------------

def _naive_utc(value: datetime | date) -> datetime:
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    return ensure_aware(value).astimezone(timezone.utc).replace(tzinfo=None)


def _naive_utc_expr(col: pl.Expr, dtype: pl.DataType) -> pl.Expr | None:
    if isinstance(dtype, pl.Date):
        return col.cast(pl.Datetime("us"))
    if isinstance(dtype, pl.Datetime):
        if dtype.time_zone is not None:
            col = col.dt.convert_time_zone("UTC").dt.replace_time_zone(None)
        return col.cast(pl.Datetime("us"))
    return None


def _between_expr(
    col: pl.Expr,
    dtype: pl.DataType,
    start: datetime | None,
    end: datetime | None,
) -> pl.Expr | None:
    stamp = _naive_utc_expr(col, dtype)
    if stamp is None:
        logger.debug("[DataTable] date filter on non-temporal dtype %s skipped", dtype)
        return None
    expr = pl.lit(True)
    if start is not None:
        expr = expr & (stamp >= pl.lit(_naive_utc(start)))
    if end is not None:
        expr = expr & (stamp <= pl.lit(_naive_utc(end)))
    return expr


def _fold_expr(expr: pl.Expr, case_sensitive: bool) -> pl.Expr:
    return expr if case_sensitive else expr.str.to_lowercase()


def _build_filter_expr(
    key: str,
    value: Any,
    schema: pl.Schema,
    *,
    case_sensitive: bool = False,
    now: datetime | None = None,
) -> pl.Expr | None:
    """Translate one ``{key: value}`` filter entry into a polars expression.

    Returns ``None`` when the entry cannot be translated (unknown column,
    date filter on a non-temporal column).
    """
    if key not in schema:
        return None
    col = pl.col(key)
    dtype = schema[key]

    if isinstance(value, DateRange):
        start, end = resolve_date_range(value, now)
        return _between_expr(col, dtype, start, end)

    if isinstance(value, (datetime, date)):
        day = value if isinstance(value, datetime) else datetime(value.year, value.month, value.day)
        day = ensure_aware(day)
        return _between_expr(col, dtype, _start_of_day(day), _end_of_day(day))

    if is_array(value):
        wanted = [str(v) if case_sensitive else str(v).lower() for v in value]
        if _is_list_dtype(dtype):
            member = _fold_expr(pl.element().cast(pl.String), case_sensitive)
            return _as_list_expr(col, dtype).list.eval(member.is_in(wanted)).list.any()
        return _fold_expr(_col_to_str_expr(col, dtype), case_sensitive).is_in(wanted)

    if isinstance(value, str):
        needle = value if case_sensitive else value.lower()
        text = _fold_expr(_col_to_str_expr(col, dtype), case_sensitive)
        return text.str.contains(needle, literal=True)

    return col == value


def apply_filter_state(
    lf: pl.LazyFrame,
    filters: Mapping[str, Any] | None,
    schema: pl.Schema | None = None,
    *,
    ignore_keys: Iterable[str] = (),
    case_sensitive: bool = False,
    now: datetime | None = None,
) -> pl.LazyFrame:
    """Apply table filter state to a LazyFrame (AND across keys), **no collect**.

    Value semantics match the in-memory filter engine:

    * list value: the cell matches any member; list cells match when any
      of their items is a member.
    * string: case-insensitive substring of the cell's string form.
    * ``datetime``/``date``: same calendar day.
    * :class:`DateRange`: inclusive bounds, presets resolved against *now*.
    * anything else: equality.

    Empty values and keys missing from the schema are skipped.

    Args:
        lf: The polars LazyFrame to filter.
        filters: ``{column: value}`` filter state.
        schema: Optional schema override.  If ``None``, the schema is
            obtained from ``lf.collect_schema()``.
        ignore_keys: Keys that are not column filters (the search query).
        case_sensitive: Case sensitivity of string and list matching.
        now: Reference time for preset date ranges.

    Returns:
        The filtered ``pl.LazyFrame``.
    """
    ignored = set(ignore_keys)
    active = {
        k: v for k, v in (filters or {}).items()
        if k not in ignored and not is_empty_filter_value(v)
    }
    if not active:
        return lf

    if schema is None:
        schema = lf.collect_schema()

    exprs: list[pl.Expr] = []
    for key, value in active.items():
        expr = _build_filter_expr(key, value, schema, case_sensitive=case_sensitive, now=now)
        if expr is None:
            logger.debug("[DataTable] ignoring filter %r (not applicable to frame)", key)
            continue
        exprs.append(expr)

    if not exprs:
        return lf
    return lf.filter(pl.all_horizontal(exprs))


def apply_global_search(
    lf: pl.LazyFrame,
    query: str | None,
    columns: Sequence[str | ColumnDescriptor],
    schema: pl.Schema | None = None,
    *,
    case_sensitive: bool = False,
    match_mode: MatchMode = "contains",
) -> pl.LazyFrame:
    """Keep rows where any of *columns* matches *query*, **no collect**.

    Both sides are trimmed and (unless *case_sensitive*) lowercased before
    matching, as in :class:`~reflex_data_table.filtering.GlobalSearch`.
    """
    if not query or not query.strip():
        return lf
    if schema is None:
        schema = lf.collect_schema()

    term = query.strip() if case_sensitive else query.strip().lower()
    exprs: list[pl.Expr] = []
    for column in columns:
        name = column.id if isinstance(column, ColumnDescriptor) else column
        if name not in schema:
            continue
        text = _col_to_str_expr(pl.col(name), schema[name]).fill_null("").str.strip_chars()
        text = _fold_expr(text, case_sensitive)
        if match_mode == "startsWith":
            exprs.append(text.str.starts_with(term))
        elif match_mode == "exact":
            exprs.append(text == term)
        else:
            exprs.append(text.str.contains(term, literal=True))

    if not exprs:
        return lf.filter(pl.lit(False))
    return lf.filter(pl.any_horizontal(exprs))


# ---------------------------------------------------------------------------
# Server-side sorting
# ---------------------------------------------------------------------------

def apply_sort_state(
    lf: pl.LazyFrame,
    sort: Iterable[SortRule | Mapping[str, Any]] | None,
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """Apply table sort rules to a LazyFrame, **no collect**.

    Strings sort case-insensitively, list columns sort by length, and
    nulls always go last.  The sort is stable (``maintain_order=True``).
    """
    rules = normalize_sort_state(sort)
    if not rules:
        return lf
    if schema is None:
        schema = lf.collect_schema()

    by: list[pl.Expr] = []
    descending: list[bool] = []
    for rule in rules:
        if rule.column_id not in schema:
            logger.debug("[DataTable] ignoring sort on %r (not in frame)", rule.column_id)
            continue
        dtype = schema[rule.column_id]
        col = pl.col(rule.column_id)
        if _is_list_dtype(dtype):
            expr = _as_list_expr(col, dtype).list.len()
        elif isinstance(dtype, pl.String) or _is_categorical_dtype(dtype):
            expr = col.cast(pl.String).str.to_lowercase()
        elif isinstance(dtype, pl.Struct):
            continue
        else:
            expr = col
        by.append(expr)
        descending.append(rule.desc)

    if not by:
        return lf
    return lf.sort(by, descending=descending, nulls_last=True, maintain_order=True)


# ---------------------------------------------------------------------------
# Facets
# ---------------------------------------------------------------------------

def frame_facet_counts(
    lf: pl.LazyFrame,
    column: str,
    schema: pl.Schema | None = None,
) -> Counter:
    """Distinct-value counts of *column*, the polars twin of :func:`facet_counts`.

    List cells contribute each distinct member once per row; nulls are
    not counted.
    """
    if schema is None:
        schema = lf.collect_schema()
    dtype = schema[column]
    col = pl.col(column)
    if _is_list_dtype(dtype):
        frame = lf.select(_as_list_expr(col, dtype).list.unique()).explode(column)
    else:
        frame = lf.select(col)

    counts = (
        frame.drop_nulls()
        .group_by(column)
        .agg(pl.len().alias("__count__"))
        .collect()
    )
    return Counter({row[column]: row["__count__"] for row in counts.iter_rows(named=True)})
