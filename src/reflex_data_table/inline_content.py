"""Inline create/edit content slot.

At most one inline slot exists per table.  In ``create`` mode it renders
above the first row; in ``edit`` mode it takes the place of the edited
row.  Opening one mode while the other is open simply replaces it.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, model_validator

logger = logging.getLogger(__name__)

# Window the rendering layer may keep a closing slot mounted for its exit
# animation.  ``close()`` itself always takes effect immediately.
EXIT_TRANSITION_MS: int = 200

InlineMode = Literal["closed", "create", "edit"]


class InlineContentState(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: InlineMode = "closed"
    editing_row_id: str | None = None

    @model_validator(mode="after")
    def _check_mode(self) -> "InlineContentState":
        if self.mode == "edit" and not self.editing_row_id:
            raise ValueError("edit mode requires editing_row_id")
        if self.mode != "edit" and self.editing_row_id is not None:
            raise ValueError(f"{self.mode} mode must not carry an editing_row_id")
        return self

    @property
    def is_open(self) -> bool:
        return self.mode != "closed"


class LayoutEntry(BaseModel):
    """One item of the render plan: a data row or the inline slot."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["row", "inline"]
    row: Any = None
    row_id: str | None = None
    mode: InlineMode | None = None


class InlineContentController:
    """State machine for the inline slot.

    Args:
        on_open: Called with ``(mode, data)`` after the slot opens.
        on_close: Called after an open slot closes.
    """

    def __init__(
        self,
        *,
        on_open: Callable[[str, Any], Any] | None = None,
        on_close: Callable[[], Any] | None = None,
    ) -> None:
        self.state = InlineContentState()
        self._on_open = on_open
        self._on_close = on_close

    @property
    def mode(self) -> InlineMode:
        return self.state.mode

    @property
    def editing_row_id(self) -> str | None:
        return self.state.editing_row_id

    @property
    def is_open(self) -> bool:
        return self.state.is_open

    def is_editing(self, row_id: str) -> bool:
        return self.state.mode == "edit" and self.state.editing_row_id == row_id

    def open_create(self, data: Any = None) -> bool:
        self.state = InlineContentState(mode="create")
        if self._on_open is not None:
            self._on_open("create", data)
        return True

    def open_edit(self, row_id: str, visible_ids: Iterable[str], data: Any = None) -> bool:
        """Edit *row_id* in place.

        Returns:
            ``False`` (and leaves the state untouched) when *row_id* is not
            on the rendered page.
        """
        if row_id not in set(visible_ids):
            logger.debug("[DataTable] open_edit(%r) ignored: row not on page", row_id)
            return False
        self.state = InlineContentState(mode="edit", editing_row_id=row_id)
        if self._on_open is not None:
            self._on_open("edit", data)
        return True

    def close(self) -> None:
        was_open = self.state.is_open
        self.state = InlineContentState()
        if was_open and self._on_close is not None:
            self._on_close()

    def get_state(self) -> InlineContentState:
        return self.state

    # -- render plan -----------------------------------------------------

    def layout(self, rows: Sequence[Any], row_id: Callable[[Any], str]) -> list[LayoutEntry]:
        """Interleave the inline slot with *rows*."""
        entries: list[LayoutEntry] = []
        if self.state.mode == "create":
            entries.append(LayoutEntry(kind="inline", mode="create"))

        editing = self.state.editing_row_id if self.state.mode == "edit" else None
        for row in rows:
            rid = row_id(row)
            if editing is not None and rid == editing:
                entries.append(LayoutEntry(kind="inline", mode="edit", row=row, row_id=rid))
            else:
                entries.append(LayoutEntry(kind="row", row=row, row_id=rid))
        return entries

    def render(
        self,
        rows: Sequence[Any],
        row_id: Callable[[Any], str],
        render_fn: Callable[[str, Any, Callable[[], None]], Any],
        render_row: Callable[[Any], Any] | None = None,
    ) -> list[Any]:
        """Materialise :meth:`layout`, calling ``render_fn(mode, data, on_close)`` for the slot."""
        rendered: list[Any] = []
        for entry in self.layout(rows, row_id):
            if entry.kind == "inline":
                rendered.append(render_fn(entry.mode, entry.row, self.close))
            else:
                rendered.append(render_row(entry.row) if render_row else entry.row)
        return rendered
