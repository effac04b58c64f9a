"""Facet aggregation: per-value counts and numeric bounds for a column."""

from collections import Counter
from collections.abc import Hashable, Iterable
from typing import Any

from reflex_data_table.models import ColumnDescriptor
from reflex_data_table.values import is_array, is_missing


def _facet_key(value: Any) -> Hashable:
    try:
        hash(value)
    except TypeError:
        return str(value)
    return value


def facet_counts(rows: Iterable[Any], column: ColumnDescriptor) -> Counter:
    """Count distinct cell values of *column* over *rows*.

    Array cells contribute each member once per row, so cells ``["x"]``
    and ``["x", "y"]`` give ``{"x": 2, "y": 1}``.  Missing values are not
    counted.  Unhashable members (dicts, nested lists) are counted by
    their string form.
    """
    counts: Counter = Counter()
    for row in rows:
        value = column.get_value(row)
        if is_array(value):
            members = {_facet_key(m) for m in value if not is_missing(m)}
            counts.update(members)
        elif not is_missing(value):
            counts[_facet_key(value)] += 1
    return counts


def facet_options(counts: Counter) -> list[dict[str, Any]]:
    """``[{"value": ..., "count": ...}]`` sorted by descending count, then value."""
    ordered = sorted(counts.items(), key=lambda item: (-item[1], str(item[0])))
    return [{"value": value, "count": count} for value, count in ordered]


def facet_min_max(
    rows: Iterable[Any],
    column: ColumnDescriptor,
) -> tuple[float, float] | None:
    """Numeric ``(min, max)`` of *column*, or ``None`` without numeric values."""
    low: float | None = None
    high: float | None = None
    for row in rows:
        value = column.get_value(row)
        members = value if is_array(value) else (value,)
        for member in members:
            if isinstance(member, bool) or not isinstance(member, (int, float)):
                continue
            if is_missing(member):
                continue
            low = member if low is None or member < low else low
            high = member if high is None or member > high else high
    if low is None or high is None:
        return None
    return low, high
