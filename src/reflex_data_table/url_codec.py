"""Encode filter state into flat URL query params and back.

Wire formats, one param per filter key:

========================  =====================================
Filter value              Encoded param
========================  =====================================
``"running"``             ``running``
``["a", "b"]``            ``["a","b"]`` (JSON array of strings)
``datetime``              ``1704067200000`` (epoch milliseconds)
``DateRange(start, end)`` ``range:1704067200000_1706745599000``
open-ended range          ``range:1704067200000_`` / ``range:_1706745599000``
``DateRange(preset=k)``   ``preset:last7Days``
empty / ``None``          param removed
========================  =====================================

Decoding inspects the shape in a fixed order (range prefix, preset
prefix, optionally signed digits, JSON brackets, then plain string).  A
per-key *kind* (``string``, ``array``, ``date``, ``dateRange``) skips the
guessing.  Text filters whose values may look like another shape need a
``string`` kind in ``filter_kinds``: without it ``"2024"`` decodes to a
datetime and ``"[draft]"`` to ``None``.  Malformed values decode to
``None``; they never raise.
"""

import json
import logging
import re
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime
from typing import Any, Literal

from reflex_data_table.filtering import is_empty_filter_value
from reflex_data_table.models import DateRange
from reflex_data_table.presets import is_preset_key
from reflex_data_table.store import Store
from reflex_data_table.values import from_epoch_ms, is_array, to_epoch_ms, to_timestamp

logger = logging.getLogger(__name__)

FilterKind = Literal["string", "array", "date", "dateRange"]

RANGE_PREFIX = "range:"
PRESET_PREFIX = "preset:"

_DIGITS = re.compile(r"^-?\d+$")
_RANGE_BODY = re.compile(r"^(-?\d+)?_(-?\d+)?$")


# ---------------------------------------------------------------------------
# Single values
# ---------------------------------------------------------------------------

def encode_filter_value(value: Any) -> str | None:
    """Encode one filter value; ``None`` means "drop the param"."""
    if is_empty_filter_value(value):
        return None
    if isinstance(value, DateRange):
        if value.preset:
            return f"{PRESET_PREFIX}{value.preset}"
        start = "" if value.start is None else str(to_epoch_ms(value.start))
        end = "" if value.end is None else str(to_epoch_ms(value.end))
        return f"{RANGE_PREFIX}{start}_{end}"
    if isinstance(value, (datetime, date)):
        return str(to_epoch_ms(to_timestamp(value)))  # type: ignore[arg-type]
    if is_array(value):
        return json.dumps([str(v) for v in value], ensure_ascii=False, separators=(",", ":"))
    return str(value)


def _decode_ms(text: str) -> datetime | None:
    try:
        return from_epoch_ms(int(text))
    except (OverflowError, ValueError):
        logger.debug("[DataTable] url: epoch out of range: %r", text)
        return None


def _decode_range(body: str) -> DateRange | None:
    match = _RANGE_BODY.match(body)
    if match is None:
        logger.debug("[DataTable] url: malformed range %r", body)
        return None
    start_text, end_text = match.groups()
    if not start_text and not end_text:
        return None
    start = _decode_ms(start_text) if start_text else None
    end = _decode_ms(end_text) if end_text else None
    if (start_text and start is None) or (end_text and end is None):
        return None
    return DateRange(start=start, end=end)


def _decode_preset(key: str) -> DateRange | None:
    if not is_preset_key(key):
        logger.debug("[DataTable] url: unknown preset %r", key)
        return None
    return DateRange(preset=key)


def _decode_json_array(text: str) -> list[str] | None:
    try:
        parsed = json.loads(text)
    except ValueError:
        logger.debug("[DataTable] url: malformed JSON array %r", text)
        return None
    if not isinstance(parsed, list):
        return None
    values = [str(v) for v in parsed if v is not None]
    return values or None


def _decode_date_range(text: str) -> DateRange | None:
    if text.startswith(RANGE_PREFIX):
        return _decode_range(text[len(RANGE_PREFIX):])
    if text.startswith(PRESET_PREFIX):
        return _decode_preset(text[len(PRESET_PREFIX):])
    return None


def decode_filter_value(raw: str | None, kind: FilterKind | None = None) -> Any:
    """Decode one query-param value back into a filter value.

    Args:
        raw: The param value (``None`` when absent).
        kind: Optional type hint that forces the decoding path.

    Returns:
        The filter value, or ``None`` for absent, empty or malformed input.
    """
    if raw is None or raw == "":
        return None

    if kind == "string":
        return raw
    if kind == "array":
        if raw.startswith("["):
            return _decode_json_array(raw)
        values = [part for part in raw.split(",") if part]
        return values or None
    if kind == "date":
        if _DIGITS.match(raw):
            return _decode_ms(raw)
        parsed = to_timestamp(raw)
        if parsed is None:
            logger.debug("[DataTable] url: malformed date %r", raw)
        return parsed
    if kind == "dateRange":
        return _decode_date_range(raw)

    if raw.startswith(RANGE_PREFIX) or raw.startswith(PRESET_PREFIX):
        return _decode_date_range(raw)
    if _DIGITS.match(raw):
        return _decode_ms(raw)
    if raw.startswith("[") and raw.endswith("]"):
        return _decode_json_array(raw)
    return raw


# ---------------------------------------------------------------------------
# Whole mappings
# ---------------------------------------------------------------------------

def encode_filter_state(filter_state: Mapping[str, Any] | None) -> dict[str, str]:
    """Encode every non-empty filter; empty ones are omitted."""
    encoded: dict[str, str] = {}
    for key, value in (filter_state or {}).items():
        text = encode_filter_value(value)
        if text is not None:
            encoded[key] = text
    return encoded


def _param_text(value: Any) -> str | None:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return None if value is None else str(value)


def decode_query_params(
    params: Mapping[str, Any] | None,
    kinds: Mapping[str, FilterKind] | None = None,
    keys: Iterable[str] | None = None,
) -> dict[str, Any]:
    """Decode a flat param mapping into filter state.

    Args:
        params: Query params; multi-valued params use their first value.
        kinds: Per-key type hints.
        keys: Only decode these keys (others, such as unrelated route
            params, are ignored).  ``None`` decodes every param.
    """
    kinds = kinds or {}
    wanted = set(keys) if keys is not None else None
    decoded: dict[str, Any] = {}
    for key, raw in (params or {}).items():
        if wanted is not None and key not in wanted:
            continue
        value = decode_filter_value(_param_text(raw), kinds.get(key))
        if value is not None:
            decoded[key] = value
    return decoded


class QueryParamFilterStore:
    """Filter store backed by a flat ``dict[str, str]`` of URL params.

    Only the managed keys are rewritten on ``set``; other params in the
    URL are preserved.

    Args:
        get_params: Returns the current params.
        set_params: Receives the full, updated params.
        kinds: Per-key decoding hints.
        keys: The filter keys this store owns.  ``None`` means every key
            it has ever read or written.
    """

    def __init__(
        self,
        get_params: Callable[[], Mapping[str, Any]],
        set_params: Callable[[dict[str, str]], Any],
        kinds: Mapping[str, FilterKind] | None = None,
        keys: Iterable[str] | None = None,
    ) -> None:
        self._get_params = get_params
        self._set_params = set_params
        self.kinds = dict(kinds or {})
        self.keys = set(keys) if keys is not None else None

    def get(self) -> dict[str, Any]:
        return decode_query_params(self._get_params(), self.kinds, self.keys)

    def set(self, value: Mapping[str, Any]) -> None:
        params = {k: v for k, v in (self._get_params() or {}).items() if _param_text(v) is not None}
        managed = self.keys if self.keys is not None else set(self.get()) | set(value)
        for key in managed:
            params.pop(key, None)
        params.update(encode_filter_state(value))
        self._set_params({k: _param_text(v) for k, v in params.items()})  # type: ignore[misc]


def apply_initial_state(
    store: Store[dict[str, Any]],
    params: Mapping[str, Any] | None,
    kinds: Mapping[str, FilterKind] | None = None,
    keys: Iterable[str] | None = None,
) -> dict[str, Any]:
    """Merge filters found in *params* into *store* (first mount).

    Returns the decoded filters; the store is untouched when there are none.
    """
    decoded = decode_query_params(params, kinds, keys)
    if decoded:
        store.set({**(store.get() or {}), **decoded})
        logger.debug("[DataTable] url: applied %d initial filter(s)", len(decoded))
    return decoded
