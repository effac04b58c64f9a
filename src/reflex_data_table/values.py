"""Helpers for reading and normalising cell values.

Rows are opaque to the engine: they may be plain dicts (the common case
when rows come from JSON or polars ``to_dicts()``), pydantic models,
dataclasses or any other object.  Everything here reads values without
mutating the row.
"""

import math
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def get_nested_value(obj: Any, path: str) -> Any:
    """Read a dotted *path* off *obj*.

    Mapping keys are tried first, then attributes.  Returns ``None`` as
    soon as a segment is missing, so ``"status.registrar.name"`` on a row
    without a ``status`` simply yields ``None``.

    Examples:
        ``get_nested_value({"a": {"b": 1}}, "a.b")`` -> ``1``
        ``get_nested_value({"a": None}, "a.b")`` -> ``None``
    """
    if obj is None or not path:
        return None

    value: Any = obj
    for key in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(key)
        else:
            value = getattr(value, key, None)
    return value


def nested_accessor(path: str):
    """Return an accessor that reads *path* with :func:`get_nested_value`."""

    def accessor(row: Any) -> Any:
        return get_nested_value(row, path)

    accessor.__name__ = f"get_{path.replace('.', '_')}"
    return accessor


def is_array(value: Any) -> bool:
    """Return True for list-like cell values (list, tuple, set, frozenset)."""
    return isinstance(value, (list, tuple, set, frozenset))


def is_missing(value: Any) -> bool:
    """``None`` and float ``NaN`` are both treated as missing."""
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware ones are returned unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_timestamp(value: Any) -> datetime | None:
    """Coerce a cell value to an aware ``datetime``.

    Accepts ``datetime`` (naive values are taken as UTC), ``date``
    (midnight UTC), ISO-8601 strings and numbers (epoch milliseconds).
    Anything else, including unparsable strings, yields ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if is_missing(value):
            return None
        try:
            return _EPOCH + timedelta(milliseconds=value)
        except OverflowError:
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return ensure_aware(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def to_epoch_ms(value: datetime) -> int:
    """Milliseconds since the epoch for *value* (naive = UTC)."""
    return (ensure_aware(value) - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(ms: int) -> datetime:
    """Inverse of :func:`to_epoch_ms`; always returns a UTC datetime."""
    return _EPOCH + timedelta(milliseconds=ms)


def iso_timestamp(value: datetime) -> str:
    """Canonical ISO-8601 UTC string with millisecond precision.

    ``2024-01-02T03:04:05.678Z`` -- the same shape browsers produce, so
    a search for ``"2024-01-02"`` matches regardless of where the row
    came from.
    """
    utc = ensure_aware(value).astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
