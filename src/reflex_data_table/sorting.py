"""Sorting engine: built-in comparators, sort-state toggling and stable row sorting.

Comparators work on cell values and follow the ``(a, b) -> int`` protocol
(negative, zero, positive).  Row ordering is built on top of them with
:func:`functools.cmp_to_key`, so multi-rule sorts stay stable: rows that
compare equal on every rule keep their incoming relative order.

Missing values (``None``, ``NaN``, unparsable dates, non-arrays for
``arrayLength``) always sort *after* present values, in both directions.
"""

import functools
import logging
import math
import re
import unicodedata
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import date, datetime
from typing import Any

from reflex_data_table.columns import ColumnRegistry
from reflex_data_table.exceptions import ColumnConfigError
from reflex_data_table.models import ColumnDescriptor, SortRule
from reflex_data_table.values import get_nested_value, is_array, is_missing, to_timestamp

logger = logging.getLogger(__name__)

Comparator = Callable[[Any, Any], int]

_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")

_DEFAULT_SORT_LABELS: dict[str, dict[str, str]] = {
    "string": {"asc": "A to Z", "desc": "Z to A"},
    "numeric": {"asc": "Lowest first", "desc": "Highest first"},
    "date": {"asc": "Oldest first", "desc": "Newest first"},
    "boolean": {"asc": "Yes first", "desc": "No first"},
    "arrayLength": {"asc": "Fewest first", "desc": "Most first"},
}
_FALLBACK_SORT_LABELS: dict[str, str] = {"asc": "Ascending", "desc": "Descending"}


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def _to_number(value: Any) -> float | None:
    """Coerce *value* to a float, or ``None`` when it is missing or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if is_missing(value) else float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        return None if math.isnan(number) else number
    return None


def _base_fold(value: Any) -> str:
    """Case- and accent-insensitive comparison key (``None`` -> ``""``)."""
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def _flatten(values: Iterable[Any]) -> list[Any]:
    flat: list[Any] = []
    for value in values:
        if is_array(value):
            flat.extend(_flatten(value))
        else:
            flat.append(value)
    return flat


def _array_sub_field_key(items: Iterable[Any], path: str) -> str:
    """Join the *path* sub-field of every array member into one sort key.

    Nested arrays are flattened at every path segment, so
    ``"ips.registrant"`` reaches ``[{"ips": [{"registrant": "x"}]}]``.
    """
    level: list[Any] = _flatten(items)
    for key in path.split("."):
        next_level: list[Any] = []
        for item in level:
            value = get_nested_value(item, key)
            if value is None:
                continue
            if is_array(value):
                next_level.extend(_flatten(value))
            else:
                next_level.append(value)
        level = next_level
    return " ".join(_base_fold(v) for v in level)


# ---------------------------------------------------------------------------
# Built-in comparators
# ---------------------------------------------------------------------------

def compare_strings(a: Any, b: Any) -> int:
    """Locale-insensitive, case-insensitive base comparison."""
    fa, fb = _base_fold(a), _base_fold(b)
    return (fa > fb) - (fa < fb)


def compare_numbers(a: Any, b: Any) -> int:
    na, nb = _to_number(a), _to_number(b)
    if na is None or nb is None:
        return _missing_order(na is None, nb is None)
    return _sign(na - nb)


def compare_dates(a: Any, b: Any) -> int:
    ta, tb = to_timestamp(a), to_timestamp(b)
    if ta is None or tb is None:
        return _missing_order(ta is None, tb is None)
    return (ta > tb) - (ta < tb)


def compare_booleans(a: Any, b: Any) -> int:
    """``True`` sorts before ``False``; ``None`` counts as ``False``."""
    ba, bb = bool(a), bool(b)
    if ba == bb:
        return 0
    return -1 if ba else 1


def _missing_order(a_missing: bool, b_missing: bool) -> int:
    if a_missing and b_missing:
        return 0
    return 1 if a_missing else -1


def make_array_comparator(sort_array_by: str | None = None) -> Comparator:
    """Compare arrays by length, then by the joined *sort_array_by* sub-field."""

    def compare_arrays(a: Any, b: Any) -> int:
        a_array, b_array = is_array(a), is_array(b)
        if not a_array or not b_array:
            return _missing_order(not a_array, not b_array)
        by_length = _sign(len(a) - len(b))
        if by_length or not sort_array_by:
            return by_length
        ka = _array_sub_field_key(a, sort_array_by)
        kb = _array_sub_field_key(b, sort_array_by)
        return (ka > kb) - (ka < kb)

    return compare_arrays


_BUILTIN_COMPARATORS: dict[str, Comparator] = {
    "string": compare_strings,
    "numeric": compare_numbers,
    "date": compare_dates,
    "boolean": compare_booleans,
}


def _is_absent(sort_type: str, value: Any) -> bool:
    """Whether *value* is "missing" for a type whose missing values always sort last."""
    if sort_type == "numeric":
        return _to_number(value) is None
    if sort_type == "date":
        return to_timestamp(value) is None
    if sort_type == "arrayLength":
        return not is_array(value)
    return False


def get_comparator(
    sort_type: str,
    *,
    sort_array_by: str | None = None,
    custom: Mapping[str, Comparator] | None = None,
    comparator: Comparator | None = None,
) -> Comparator:
    """Return the value comparator for *sort_type*.

    Args:
        sort_type: A built-in type or a name registered in *custom*.
        sort_array_by: Tie-break sub-field for ``arrayLength``.
        custom: Named comparators registered on the table.
        comparator: Per-column comparator, used for ``custom``.

    Raises:
        ColumnConfigError: If *sort_type* is unknown, or ``custom`` is
            requested without a comparator.
    """
    if sort_type == "custom":
        if comparator is None:
            raise ColumnConfigError("sort_type 'custom' requires a comparator")
        return comparator
    if sort_type == "arrayLength":
        return make_array_comparator(sort_array_by)
    if sort_type in _BUILTIN_COMPARATORS:
        return _BUILTIN_COMPARATORS[sort_type]
    if custom and sort_type in custom:
        return custom[sort_type]
    raise ColumnConfigError(f"Unknown sort type: {sort_type!r}")


# ---------------------------------------------------------------------------
# Type detection
# ---------------------------------------------------------------------------

def detect_sort_type(value: Any) -> str:
    """Guess a sort type from a sample value.

    Examples:
        ``True`` -> ``"boolean"``, ``3.5`` -> ``"numeric"``,
        ``"2024-05-01T10:00:00Z"`` -> ``"date"``, ``"42"`` -> ``"numeric"``,
        ``["a"]`` -> ``"arrayLength"``, ``"abc"`` -> ``"string"``.
    """
    if value is None:
        return "string"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "numeric"
    if isinstance(value, (datetime, date)):
        return "date"
    if is_array(value):
        return "arrayLength"
    if isinstance(value, str):
        if _ISO_DATE_PREFIX.match(value):
            return "date"
        if _to_number(value) is not None:
            return "numeric"
    return "string"


def resolve_sort_type(column: ColumnDescriptor, rows: Iterable[Any]) -> str:
    """Declared sort type of *column*, or one detected from its first present value."""
    declared = column.effective_sort_type
    if declared is not None:
        return declared
    for row in rows:
        value = column.get_sort_value(row)
        if not is_missing(value):
            return detect_sort_type(value)
    return "string"


def sort_labels(
    sort_type: str | None,
    custom: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Menu labels for the ascending / descending entries of a column."""
    labels = dict(_DEFAULT_SORT_LABELS.get(sort_type or "", _FALLBACK_SORT_LABELS))
    if custom:
        labels.update({k: v for k, v in custom.items() if k in ("asc", "desc") and v})
    return labels


# ---------------------------------------------------------------------------
# Row comparison and sorting
# ---------------------------------------------------------------------------

def compare_rows(
    column: ColumnDescriptor,
    row_a: Any,
    row_b: Any,
    *,
    direction: str = "asc",
    sort_type: str | None = None,
    custom_comparators: Mapping[str, Comparator] | None = None,
) -> int:
    """Compare two rows on *column*; returns ``-1``, ``0`` or ``1``.

    Missing values are ordered last before *direction* is applied, so a
    descending sort still puts them at the bottom.
    """
    resolved = sort_type or column.effective_sort_type or "string"
    value_a = column.get_sort_value(row_a)
    value_b = column.get_sort_value(row_b)

    a_absent = _is_absent(resolved, value_a)
    b_absent = _is_absent(resolved, value_b)
    if a_absent or b_absent:
        return _missing_order(a_absent, b_absent)

    comparator = get_comparator(
        resolved,
        sort_array_by=column.sort_array_by,
        custom=custom_comparators,
        comparator=column.comparator,
    )
    result = _sign(comparator(value_a, value_b))
    return -result if direction == "desc" else result


def normalize_sort_state(state: Iterable[SortRule | Mapping[str, Any]] | None) -> list[SortRule]:
    """Accept ``SortRule`` objects or frontend dicts and return ``SortRule`` objects.

    Dicts may use ``column_id``/``id``/``field`` for the column and either
    ``direction`` or a boolean ``desc``.
    """
    rules: list[SortRule] = []
    for entry in state or ():
        if isinstance(entry, SortRule):
            rules.append(entry)
            continue
        column_id = entry.get("column_id") or entry.get("id") or entry.get("field")
        if not column_id:
            continue
        if "direction" in entry:
            direction = entry["direction"]
        elif "sort" in entry:
            direction = entry["sort"]
        else:
            direction = "desc" if entry.get("desc") else "asc"
        rules.append(SortRule(column_id=column_id, direction=direction))
    return rules


def sort_rows(
    rows: Sequence[Any],
    sort_state: Iterable[SortRule | Mapping[str, Any]] | None,
    registry: ColumnRegistry,
    *,
    custom_comparators: Mapping[str, Comparator] | None = None,
) -> list[Any]:
    """Return *rows* ordered by *sort_state*; the input sequence is not mutated.

    Rules naming unknown or non-sortable columns are skipped.  An empty
    sort state returns the rows in insertion order.
    """
    active: list[tuple[ColumnDescriptor, str, str]] = []
    for rule in normalize_sort_state(sort_state):
        column = registry.get(rule.column_id)
        if column is None or not column.is_sortable:
            logger.debug("[DataTable] ignoring sort on %r (not sortable)", rule.column_id)
            continue
        active.append((column, rule.direction, resolve_sort_type(column, rows)))

    if not active:
        return list(rows)

    def compare(row_a: Any, row_b: Any) -> int:
        for column, direction, sort_type in active:
            result = compare_rows(
                column,
                row_a,
                row_b,
                direction=direction,
                sort_type=sort_type,
                custom_comparators=custom_comparators,
            )
            if result:
                return result
        return 0

    return sorted(rows, key=functools.cmp_to_key(compare))


def toggle_sort(
    state: Iterable[SortRule | Mapping[str, Any]] | None,
    column_id: str,
    *,
    multi: bool = False,
) -> list[SortRule]:
    """Advance *column_id* through ``unsorted -> asc -> desc -> unsorted``.

    Single-sort mode replaces every other rule.  With *multi*, a new
    column is appended and an existing rule cycles in place.
    """
    rules = normalize_sort_state(state)
    index = next((i for i, r in enumerate(rules) if r.column_id == column_id), None)
    current = rules[index].direction if index is not None else None

    if current is None:
        next_rule: SortRule | None = SortRule(column_id=column_id, direction="asc")
    elif current == "asc":
        next_rule = SortRule(column_id=column_id, direction="desc")
    else:
        next_rule = None

    if not multi:
        return [next_rule] if next_rule is not None else []

    if index is None:
        return [*rules, next_rule] if next_rule is not None else rules
    if next_rule is None:
        return rules[:index] + rules[index + 1:]
    return rules[:index] + [next_rule] + rules[index + 1:]
