"""Row selection controller."""

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from reflex_data_table.exceptions import SelectionUnavailableError
from reflex_data_table.values import nested_accessor

logger = logging.getLogger(__name__)

RowIdGetter = Callable[[Any], Any]


def make_row_id_getter(row_id: RowIdGetter | str | None) -> RowIdGetter | None:
    """Accept a callable or a dotted field path and return a ``row -> str`` getter."""
    if row_id is None:
        return None
    read = nested_accessor(row_id) if isinstance(row_id, str) else row_id

    def get_id(row: Any) -> str:
        value = read(row)
        return "" if value is None else str(value)

    return get_id


class SelectionController:
    """Tracks selected row ids.

    In uncontrolled mode the controller owns the set.  In controlled mode
    (``get_selected`` given) it reads the caller's set and only emits
    ``on_change(new_set)``; the caller decides whether to apply it.

    Selection is keyed by id, so ids survive re-filtering and re-sorting.
    Ids whose rows are no longer present are kept until cleared and are
    skipped by :meth:`selected_rows`.

    Raises:
        SelectionUnavailableError: From every operation when the table
            has no ``row_id``.
    """

    def __init__(
        self,
        row_id: RowIdGetter | str | None,
        *,
        get_selected: Callable[[], Iterable[str]] | None = None,
        on_change: Callable[[frozenset[str]], Any] | None = None,
        initial: Iterable[str] = (),
    ) -> None:
        self._row_id = make_row_id_getter(row_id)
        self._get_selected = get_selected
        self._on_change = on_change
        self._selected: frozenset[str] = frozenset(initial)

    @property
    def available(self) -> bool:
        return self._row_id is not None

    @property
    def controlled(self) -> bool:
        return self._get_selected is not None

    def _require(self) -> RowIdGetter:
        if self._row_id is None:
            raise SelectionUnavailableError(
                "Row selection needs a row_id; pass row_id= to the table"
            )
        return self._row_id

    def id_of(self, row: Any) -> str:
        return self._require()(row)

    # -- reading ---------------------------------------------------------

    @property
    def selected(self) -> frozenset[str]:
        self._require()
        if self._get_selected is not None:
            return frozenset(self._get_selected() or ())
        return self._selected

    @property
    def count(self) -> int:
        return len(self.selected)

    def is_selected(self, row_id: str) -> bool:
        return row_id in self.selected

    def _visible_ids(self, visible_rows: Sequence[Any]) -> set[str]:
        get_id = self._require()
        return {get_id(row) for row in visible_rows}

    def is_all_selected(self, visible_rows: Sequence[Any]) -> bool:
        ids = self._visible_ids(visible_rows)
        return bool(ids) and ids <= self.selected

    def is_some_selected(self, visible_rows: Sequence[Any]) -> bool:
        ids = self._visible_ids(visible_rows)
        return bool(ids & self.selected) and not ids <= self.selected

    def selected_rows(self, data: Iterable[Any]) -> list[Any]:
        """Rows of *data* whose id is selected, in data order."""
        get_id = self._require()
        selected = self.selected
        return [row for row in data if get_id(row) in selected]

    # -- writing ---------------------------------------------------------

    def set_selected(self, ids: Iterable[str]) -> frozenset[str]:
        """Replace the selection.  Returns the resulting (or requested) set."""
        self._require()
        new = frozenset(str(i) for i in ids)
        logger.debug("[DataTable] selection: %d row(s)", len(new))
        if self._get_selected is None:
            self._selected = new
        if self._on_change is not None:
            self._on_change(new)
        return new

    def select(self, *ids: str) -> frozenset[str]:
        return self.set_selected(self.selected | set(ids))

    def deselect(self, *ids: str) -> frozenset[str]:
        return self.set_selected(self.selected - set(ids))

    def toggle(self, row_id: str) -> frozenset[str]:
        if self.is_selected(row_id):
            return self.deselect(row_id)
        return self.select(row_id)

    def toggle_all(self, visible_rows: Sequence[Any]) -> frozenset[str]:
        """Select every visible row, or deselect them all if already selected.

        Only rows on the rendered page are affected; ids selected on other
        pages are left alone.
        """
        ids = self._visible_ids(visible_rows)
        if ids and ids <= self.selected:
            return self.set_selected(self.selected - ids)
        return self.set_selected(self.selected | ids)

    def clear(self) -> frozenset[str]:
        return self.set_selected(())
