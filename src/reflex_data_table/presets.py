"""Named and relative date-range presets.

Presets are stored by *key* (``"last7Days"``, ``"now-24h"``) rather than by
their bounds, so a bookmarked URL always means "relative to when it is
read".  Bounds are computed in the timezone of the supplied ``now``;
weeks start on Monday.

Relative keys follow the ``now-<N><unit>`` shape with units ``s``, ``m``,
``h``, ``d`` and ``w``.  Ranges shorter than a day keep exact times; ranges
of 24 hours or more snap to whole days (start of the first day through the
end of today).
"""

import re
from datetime import datetime, time, timedelta, timezone
from typing import TYPE_CHECKING

from reflex_data_table.values import ensure_aware

if TYPE_CHECKING:
    from reflex_data_table.models import DateRange

PRESET_LABELS: dict[str, str] = {
    "today": "Today",
    "yesterday": "Yesterday",
    "thisWeek": "This Week",
    "lastWeek": "Last Week",
    "last7Days": "Last 7 Days",
    "thisMonth": "This Month",
    "lastMonth": "Last Month",
    "thisYear": "This Year",
    "lastYear": "Last Year",
}

_RELATIVE_PATTERN = re.compile(r"^now-(\d+)([smhdw])$")
_UNIT_SECONDS: dict[str, int] = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86_400,
    "w": 7 * 86_400,
}
_DAY = timedelta(days=1)


def _start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min, tzinfo=value.tzinfo)


def _end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max, tzinfo=value.tzinfo)


def _start_of_month(value: datetime) -> datetime:
    return _start_of_day(value.replace(day=1))


def _end_of_month(value: datetime) -> datetime:
    first_of_next = (value.replace(day=28) + timedelta(days=4)).replace(day=1)
    return _end_of_day(first_of_next - _DAY)


def parse_relative_duration(key: str) -> timedelta | None:
    """Parse ``"now-<N><unit>"`` into a ``timedelta``; ``None`` when it does not match."""
    match = _RELATIVE_PATTERN.match(key)
    if match is None:
        return None
    amount, unit = int(match.group(1)), match.group(2)
    if amount <= 0:
        return None
    return timedelta(seconds=amount * _UNIT_SECONDS[unit])


def is_preset_key(key: str) -> bool:
    return key in PRESET_LABELS or parse_relative_duration(key) is not None


def preset_options() -> list[dict[str, str]]:
    """``[{"key": ..., "label": ...}]`` for date-range picker menus."""
    return [{"key": key, "label": label} for key, label in PRESET_LABELS.items()]


def resolve_preset(key: str, now: datetime | None = None) -> tuple[datetime, datetime]:
    """Compute the inclusive ``(start, end)`` bounds of preset *key* at *now*.

    Args:
        key: A named preset or a relative ``now-<N><unit>`` key.
        now: Reference time.  Defaults to the current UTC time; naive
            values are taken as UTC.

    Returns:
        Aware ``(start, end)`` datetimes in *now*'s timezone.

    Raises:
        ValueError: If *key* is not a known preset.
    """
    now = ensure_aware(now or datetime.now(timezone.utc))

    duration = parse_relative_duration(key)
    if duration is not None:
        if duration >= _DAY:
            days_ago = duration // _DAY
            return _start_of_day(now - days_ago * _DAY), _end_of_day(now)
        return now - duration, now

    today = _start_of_day(now)
    monday = today - timedelta(days=today.weekday())

    if key == "today":
        return today, _end_of_day(now)
    if key == "yesterday":
        yesterday = today - _DAY
        return yesterday, _end_of_day(yesterday)
    if key == "thisWeek":
        return monday, _end_of_day(monday + 6 * _DAY)
    if key == "lastWeek":
        last_monday = monday - 7 * _DAY
        return last_monday, _end_of_day(last_monday + 6 * _DAY)
    if key == "last7Days":
        return today - 6 * _DAY, _end_of_day(now)
    if key == "thisMonth":
        return _start_of_month(now), _end_of_month(now)
    if key == "lastMonth":
        previous = _start_of_month(now) - _DAY
        return _start_of_month(previous), _end_of_month(previous)
    if key == "thisYear":
        return (
            _start_of_day(now.replace(month=1, day=1)),
            _end_of_day(now.replace(month=12, day=31)),
        )
    if key == "lastYear":
        year = now.year - 1
        return (
            _start_of_day(now.replace(year=year, month=1, day=1)),
            _end_of_day(now.replace(year=year, month=12, day=31)),
        )

    raise ValueError(f"Unknown date-range preset: {key!r}")


def resolve_date_range(
    value: "DateRange",
    now: datetime | None = None,
) -> tuple[datetime | None, datetime | None]:
    """Inclusive bounds of *value*; presets are re-resolved against *now*.

    Open-ended sides stay ``None``.
    """
    if value.preset:
        return resolve_preset(value.preset, now)
    start = ensure_aware(value.start) if value.start is not None else None
    end = ensure_aware(value.end) if value.end is not None else None
    return start, end
