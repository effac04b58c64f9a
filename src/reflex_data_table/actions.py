"""Per-row actions and bulk (multi-row) actions."""

import logging
from collections.abc import Callable, Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

_DEFAULT_MAX_INLINE_ACTIONS: int = 3

RowPredicate = bool | Callable[[Any], bool]


def _evaluate(flag: RowPredicate | None, row: Any) -> bool:
    if flag is None:
        return False
    if callable(flag):
        return bool(flag(row))
    return bool(flag)


class RowAction(BaseModel):
    """An action offered on each row.

    Attributes:
        key: Stable identifier.
        label: Menu or button text.
        action: Called with the row when the action runs.
        display: ``inline`` renders a button on the row; ``dropdown``
            (default) puts it in the row's overflow menu.
        variant: ``default`` or ``destructive``.
        hidden: Flag or ``row -> bool``; hidden actions are dropped.
        disabled: Flag or ``row -> bool``.
        trigger_inline_edit: After ``action`` runs, open the inline editor
            for the row.
        tooltip: Static text or ``row -> str | None``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str
    label: str
    action: Callable[[Any], Any]
    display: Literal["inline", "dropdown"] = "dropdown"
    variant: Literal["default", "destructive"] = "default"
    hidden: RowPredicate | None = None
    disabled: RowPredicate | None = None
    trigger_inline_edit: bool = False
    tooltip: str | Callable[[Any], str | None] | None = None

    def is_hidden(self, row: Any) -> bool:
        return _evaluate(self.hidden, row)

    def is_disabled(self, row: Any) -> bool:
        return _evaluate(self.disabled, row)

    def tooltip_for(self, row: Any) -> str | None:
        if callable(self.tooltip):
            return self.tooltip(row)
        return self.tooltip

    def run(self, row: Any, open_inline_edit: Callable[[Any], Any] | None = None) -> bool:
        """Run the action on *row*.  Disabled actions are not run.

        Returns:
            ``True`` when the action ran.
        """
        if self.is_disabled(row):
            logger.debug("[DataTable] row action %r is disabled for this row", self.key)
            return False
        self.action(row)
        if self.trigger_inline_edit and open_inline_edit is not None:
            open_inline_edit(row)
        return True


def partition_row_actions(
    actions: Sequence[RowAction],
    row: Any,
    max_inline: int = _DEFAULT_MAX_INLINE_ACTIONS,
) -> tuple[list[RowAction], list[RowAction]]:
    """Split the visible actions of *row* into ``(inline, dropdown)``.

    More than *max_inline* inline actions is a configuration mistake: a
    warning is logged and every action goes to the dropdown.
    """
    visible = [a for a in actions if not a.is_hidden(row)]
    inline = [a for a in visible if a.display == "inline"]
    if len(inline) > max_inline:
        logger.warning(
            "[DataTable] %d inline row actions exceed max_inline_actions=%d; "
            "showing all actions in the dropdown",
            len(inline),
            max_inline,
        )
        return [], visible
    dropdown = [a for a in visible if a.display != "inline"]
    return inline, dropdown


class MultiAction(BaseModel):
    """A bulk action over the selected rows.

    Attributes:
        key: Stable identifier.
        label: Button text.
        action: Called with the list of selected rows.
        min_selection: Fewest selected rows that enable the action.
        variant: ``default`` or ``destructive``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str
    label: str
    action: Callable[[list[Any]], Any]
    min_selection: int = 1
    variant: Literal["default", "destructive"] = "default"

    def is_enabled(self, selected_count: int) -> bool:
        return selected_count >= self.min_selection

    def run(self, selected_rows: Sequence[Any]) -> bool:
        if not self.is_enabled(len(selected_rows)):
            return False
        self.action(list(selected_rows))
        return True
