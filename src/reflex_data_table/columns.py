"""Column descriptor registry."""

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from reflex_data_table.exceptions import ColumnConfigError
from reflex_data_table.models import BUILTIN_SORT_TYPES, ColumnDescriptor

logger = logging.getLogger(__name__)


def _coerce_descriptor(column: ColumnDescriptor | Mapping[str, Any]) -> ColumnDescriptor:
    if isinstance(column, ColumnDescriptor):
        return column
    return ColumnDescriptor(**column)


class ColumnRegistry:
    """Ordered, immutable lookup of :class:`ColumnDescriptor` by id.

    Columns may be given as descriptors or as plain keyword mappings
    (``{"id": "name", "accessor_key": "name"}``).  Declaration order is
    preserved; it is the order toolbars and search hints list columns in.

    Args:
        columns: Column descriptors.
        custom_comparators: Names of comparators registered on the table.
            Used only to validate ``sort_type`` values.

    Raises:
        ColumnConfigError: On duplicate ids or a ``sort_type`` that is
            neither built in nor registered.
    """

    def __init__(
        self,
        columns: Iterable[ColumnDescriptor | Mapping[str, Any]],
        *,
        custom_comparators: Iterable[str] = (),
    ) -> None:
        ordered: dict[str, ColumnDescriptor] = {}
        for raw in columns:
            column = _coerce_descriptor(raw)
            if column.id in ordered:
                raise ColumnConfigError(f"Duplicate column id: {column.id!r}")
            ordered[column.id] = column
        self._columns = ordered
        self._custom_names = frozenset(custom_comparators)

        known = BUILTIN_SORT_TYPES | self._custom_names
        for column in ordered.values():
            sort_type = column.effective_sort_type
            if sort_type is not None and sort_type not in known:
                raise ColumnConfigError(
                    f"Column {column.id!r} has unknown sort_type {sort_type!r}. "
                    f"Known: {', '.join(sorted(known))}"
                )

        logger.debug("[DataTable] registry: %d columns", len(ordered))

    # -- mapping protocol ------------------------------------------------

    def __iter__(self) -> Iterator[ColumnDescriptor]:
        return iter(self._columns.values())

    def __len__(self) -> int:
        return len(self._columns)

    def __contains__(self, column_id: object) -> bool:
        return column_id in self._columns

    def __getitem__(self, column_id: str) -> ColumnDescriptor:
        try:
            return self._columns[column_id]
        except KeyError:
            raise ColumnConfigError(f"Unknown column id: {column_id!r}") from None

    def get(self, column_id: str) -> ColumnDescriptor | None:
        return self._columns.get(column_id)

    # -- views -----------------------------------------------------------

    @property
    def ids(self) -> list[str]:
        return list(self._columns)

    @property
    def custom_comparator_names(self) -> frozenset[str]:
        return self._custom_names

    def sortable(self) -> list[ColumnDescriptor]:
        return [c for c in self._columns.values() if c.is_sortable]

    def facetable(self) -> list[ColumnDescriptor]:
        return [c for c in self._columns.values() if c.facetable]

    def column_defs(self) -> list[dict[str, Any]]:
        """camelCase column definitions for the frontend."""
        return [
            c.to_column_def().model_dump(by_alias=True, exclude_none=True)
            for c in self._columns.values()
        ]
