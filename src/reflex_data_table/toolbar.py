"""Toolbar configuration: search box settings and the inline/dropdown filter split."""

from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict

_DEFAULT_SEARCH_PLACEHOLDER = "Search..."
_DEFAULT_SEARCH_KEY = "q"
_DEFAULT_SEARCH_DEBOUNCE_MS = 300
_DEFAULT_MAX_INLINE_FILTERS = 3

ToolbarLayout = Literal["stacked", "compact"]
FiltersDisplay = Literal["inline", "dropdown", "auto"]


class SearchConfig(BaseModel):
    """Settings for the toolbar search box.

    Attributes:
        placeholder: Input placeholder.
        filter_key: Filter-state key the committed query is stored under
            (and therefore its URL param).
        mode: ``global-search`` searches every searchable column;
            ``search`` filters the single column named by *filter_key*.
        searchable_columns: Allow-list forwarded to global search.
        debounce: Milliseconds of quiet before the query commits.
    """

    model_config = ConfigDict(frozen=True)

    placeholder: str = _DEFAULT_SEARCH_PLACEHOLDER
    filter_key: str = _DEFAULT_SEARCH_KEY
    mode: Literal["search", "global-search"] = "global-search"
    searchable_columns: list[str] | None = None
    debounce: int = _DEFAULT_SEARCH_DEBOUNCE_MS


def resolve_search_config(value: bool | SearchConfig | dict | None) -> SearchConfig | None:
    """``True`` -> defaults, ``False``/``None`` -> no search box."""
    if value is None or value is False:
        return None
    if value is True:
        return SearchConfig()
    if isinstance(value, SearchConfig):
        return value
    return SearchConfig(**value)


class ToolbarConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    layout: ToolbarLayout = "stacked"
    include_search: bool | SearchConfig | None = None
    filters_display: FiltersDisplay = "inline"
    max_inline_filters: int = _DEFAULT_MAX_INLINE_FILTERS
    primary_filters: list[str] | None = None
    show_filter_count: bool = True
    show_row_count: bool = False

    @property
    def search(self) -> SearchConfig | None:
        return resolve_search_config(self.include_search)

    def split(self, keys: Sequence[str]) -> tuple[list[str], list[str]]:
        return split_filters(
            keys,
            layout=self.layout,
            filters_display=self.filters_display,
            max_inline_filters=self.max_inline_filters,
            primary_filters=self.primary_filters,
        )


def split_filters(
    keys: Sequence[str],
    layout: ToolbarLayout = "stacked",
    filters_display: FiltersDisplay = "inline",
    max_inline_filters: int = _DEFAULT_MAX_INLINE_FILTERS,
    primary_filters: Sequence[str] | None = None,
) -> tuple[list[str], list[str]]:
    """Split filter keys into ``(inline, dropdown)``, preserving order.

    * ``stacked`` layout or ``inline`` display: everything inline.
    * ``dropdown`` display: everything in the dropdown.
    * ``auto`` with *primary_filters*: those inline, the rest in the dropdown.
    * ``auto`` otherwise: the first *max_inline_filters* inline.
    """
    keys = list(keys)
    if layout == "stacked" or filters_display == "inline":
        return keys, []
    if filters_display == "dropdown":
        return [], keys

    if primary_filters:
        primary = set(primary_filters)
        return [k for k in keys if k in primary], [k for k in keys if k not in primary]

    limit = max_inline_filters if max_inline_filters > 0 else _DEFAULT_MAX_INLINE_FILTERS
    return keys[:limit], keys[limit:]


def row_count_label(filtered: int, total: int, selected: int = 0) -> str:
    """``"3 of 40 selected"``, ``"Showing 12 of 40 records"`` or ``"Showing 40 records"``."""
    if selected > 0:
        return f"{selected:,} of {filtered:,} selected"
    noun = "record" if total == 1 else "records"
    if filtered != total:
        return f"Showing {filtered:,} of {total:,} {noun}"
    return f"Showing {total:,} {noun}"
