"""Pydantic models for column descriptors, sort rules and date-range filters."""

from collections.abc import Callable
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from reflex_data_table.presets import is_preset_key
from reflex_data_table.values import get_nested_value

BUILTIN_SORT_TYPES: frozenset[str] = frozenset(
    {"string", "numeric", "date", "arrayLength", "boolean", "custom"}
)

SortDirection = Literal["asc", "desc"]


class ColumnDescriptor(BaseModel):
    """Per-column metadata consumed by the sorting, filter and facet engines.

    A descriptor is immutable.  Screens that change their columns build a
    new list and hand it to a new :class:`~reflex_data_table.columns.ColumnRegistry`.

    Attributes:
        id: Unique column identifier.  Also the filter key for the
            column's per-column filter.
        header: Human-readable header; falls back to ``id``.
        accessor: Pure function reading the cell value off a row.
        accessor_key: Dotted path used to build an accessor when
            *accessor* is not given.
        sortable: ``False`` disables sorting.  ``None`` means "sortable if
            the column can read a value".
        sort_type: ``string``, ``numeric``, ``date``, ``arrayLength``,
            ``boolean``, ``custom`` or a name registered with the table's
            ``custom_comparators``.  ``None`` auto-detects from the data.
        sort_path: Dotted path the comparator reads instead of the
            accessor value.  Implies ``sortable``.
        sort_array_by: Sub-field used to break ties between equally long
            arrays (``arrayLength`` columns).
        comparator: Full comparator ``(a, b) -> int`` for ``custom``.
        searchable: ``True``/``False`` to opt in or out of global search;
            ``None`` inherits (searchable when the column has an accessor).
        search_path: One or more dotted paths read directly off the row
            for global search, reaching fields not exposed as columns.
        search_transform: Applied to the raw cell value before it is
            stringified for global search.
        facetable: Whether filter UIs should offer per-value counts.
        sort_labels: Optional ``{"asc": ..., "desc": ...}`` menu labels.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    header: str | None = None
    accessor: Callable[[Any], Any] | None = None
    accessor_key: str | None = None
    sortable: bool | None = None
    sort_type: str | None = None
    sort_path: str | None = None
    sort_array_by: str | None = None
    comparator: Callable[[Any, Any], int] | None = None
    searchable: bool | None = None
    search_path: str | list[str] | None = None
    search_transform: Callable[[Any], Any] | None = None
    facetable: bool = False
    sort_labels: dict[str, str] | None = None

    @model_validator(mode="after")
    def _check_combinations(self) -> "ColumnDescriptor":
        if not self.id:
            raise ValueError("column id must be a non-empty string")
        if self.sort_path and self.sortable is False:
            raise ValueError(
                f"column {self.id!r}: sort_path implies sortable, "
                "but sortable=False was given"
            )
        if self.sort_type == "custom" and self.comparator is None:
            raise ValueError(f"column {self.id!r}: sort_type='custom' needs a comparator")
        if self.comparator is not None and self.sort_type not in (None, "custom"):
            raise ValueError(
                f"column {self.id!r}: comparator given with sort_type={self.sort_type!r}"
            )
        if self.sort_array_by and self.sort_type not in (None, "arrayLength"):
            raise ValueError(
                f"column {self.id!r}: sort_array_by only applies to arrayLength columns"
            )
        return self

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def label(self) -> str:
        return self.header or self.id

    @property
    def has_accessor(self) -> bool:
        return (
            self.accessor is not None
            or self.accessor_key is not None
            or self.sort_path is not None
        )

    @property
    def is_sortable(self) -> bool:
        if self.sortable is False:
            return False
        return self.has_accessor

    @property
    def effective_sort_type(self) -> str | None:
        """The declared sort type, with ``custom``/``arrayLength`` implied."""
        if self.comparator is not None:
            return "custom"
        if self.sort_type is not None:
            return self.sort_type
        if self.sort_array_by:
            return "arrayLength"
        return None

    @property
    def search_paths(self) -> tuple[str, ...]:
        if self.search_path is None:
            return ()
        if isinstance(self.search_path, str):
            return (self.search_path,)
        return tuple(self.search_path)

    # ------------------------------------------------------------------
    # Value access
    # ------------------------------------------------------------------

    def get_value(self, row: Any) -> Any:
        """Cell value for *row*; ``None`` for display-only columns."""
        if self.accessor is not None:
            return self.accessor(row)
        if self.accessor_key is not None:
            return get_nested_value(row, self.accessor_key)
        if self.sort_path is not None:
            return get_nested_value(row, self.sort_path)
        return None

    def get_sort_value(self, row: Any) -> Any:
        """Value the comparator sees: ``sort_path`` wins over the accessor."""
        if self.sort_path is not None:
            return get_nested_value(row, self.sort_path)
        return self.get_value(row)

    def to_column_def(self, grid_type: str | None = None) -> "ColumnDef":
        """Project this descriptor into the JSON-safe :class:`ColumnDef`."""
        sort_type = self.effective_sort_type
        return ColumnDef(
            field=self.id,
            header_name=self.label,
            type=grid_type or _SORT_TYPE_TO_GRID_TYPE.get(sort_type or "", "string"),
            sortable=self.is_sortable,
            searchable=self.searchable is not False and self.has_accessor,
            facetable=self.facetable,
        )


_SORT_TYPE_TO_GRID_TYPE: dict[str, str] = {
    "string": "string",
    "numeric": "number",
    "date": "dateTime",
    "boolean": "boolean",
    "arrayLength": "array",
}


class ColumnDef(BaseModel):
    """JSON-safe projection of a :class:`ColumnDescriptor` for the frontend.

    Field names are serialised as camelCase (``header_name`` ->
    ``headerName``) via ``model_dump(by_alias=True)``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    field: str
    header_name: str | None = None
    type: Literal["string", "number", "date", "dateTime", "boolean", "array"] | None = None
    sortable: bool = True
    searchable: bool = True
    facetable: bool = False
    value_options: list[str] | None = None
    description: str | None = None


class SortRule(BaseModel):
    """One entry of the sort state."""

    model_config = ConfigDict(frozen=True)

    column_id: str
    direction: SortDirection = "asc"

    @property
    def desc(self) -> bool:
        return self.direction == "desc"


class DateRange(BaseModel):
    """A date-range filter value.

    Either absolute (``start``/``end``, each optional for open-ended
    ranges) or a named *preset* whose bounds are recomputed every time the
    filter is evaluated (see :mod:`reflex_data_table.presets`).
    """

    model_config = ConfigDict(frozen=True)

    start: datetime | None = None
    end: datetime | None = None
    preset: str | None = None

    @field_validator("preset")
    @classmethod
    def check_preset(cls, value: str | None) -> str | None:
        if value and not is_preset_key(value):
            raise ValueError(f"Unknown date-range preset: {value!r}")
        return value or None

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None and not self.preset

    @property
    def is_preset(self) -> bool:
        return bool(self.preset)
