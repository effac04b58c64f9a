"""Pagination controllers.

The paging mode is chosen once, by passing either :class:`ClientPaging`
(the engine slices the reduced row set) or :class:`ServerPaging` (the
caller fetches pages; the engine only relays intents).
"""

import logging
import math
from collections.abc import Callable, Sequence
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE: int = 50
_DEFAULT_PAGE_SIZE_OPTIONS: tuple[int, ...] = (10, 20, 50, 100)

SHOW_ALL = "all"

PositiveSize = Annotated[int, Field(gt=0)]
PageSize = PositiveSize | Literal["all"]


class ClientPaging(BaseModel):
    """In-memory paging over the filtered and sorted rows."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["client"] = "client"
    page_size: PageSize = _DEFAULT_PAGE_SIZE
    enable_show_all: bool = False
    page_size_options: list[PositiveSize] = Field(default_factory=lambda: list(_DEFAULT_PAGE_SIZE_OPTIONS))


class ServerPaging(BaseModel):
    """Caller-driven paging; the engine forwards navigation intents."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["server"] = "server"
    on_next: Callable[[], Any]
    on_prev: Callable[[], Any]
    on_page_size_change: Callable[[int], Any] | None = None
    on_page_change: Callable[[int], Any] | None = None
    page_size_options: list[PositiveSize] = Field(default_factory=lambda: list(_DEFAULT_PAGE_SIZE_OPTIONS))


class PaginationState(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_index: int = 0
    page_size: PageSize = _DEFAULT_PAGE_SIZE


class ServerPageInfo(BaseModel):
    """Page bounds reported by the caller in server mode."""

    model_config = ConfigDict(frozen=True)

    page_index: int = 0
    page_size: PositiveSize = _DEFAULT_PAGE_SIZE
    has_next: bool = False
    has_prev: bool = False
    total_rows: int | None = None


class PageInfo(BaseModel):
    """What the rendering layer needs to draw a pager."""

    model_config = ConfigDict(frozen=True)

    mode: Literal["client", "server"]
    page_index: int
    page_size: PageSize
    page_count: int | None
    total_rows: int | None
    has_next: bool
    has_prev: bool


def page_count(total: int, page_size: PageSize) -> int:
    """``ceil(total / page_size)``, at least 1; ``"all"`` is a single page."""
    if page_size == SHOW_ALL or total <= 0:
        return 1
    return max(1, math.ceil(total / page_size))


def _is_valid_size(size: Any) -> bool:
    return isinstance(size, int) and not isinstance(size, bool) and size > 0


class ClientPaginator:
    """Page-index bookkeeping and slicing for client mode.

    Args:
        config: The client paging configuration.
        state: Initial state; defaults to page 0 at ``config.page_size``.
    """

    def __init__(self, config: ClientPaging | None = None, state: PaginationState | None = None) -> None:
        self.config = config or ClientPaging()
        self.state = state or PaginationState(page_index=0, page_size=self.config.page_size)

    @property
    def page_index(self) -> int:
        return self.state.page_index

    @property
    def page_size(self) -> PageSize:
        return self.state.page_size

    def page_count(self, total: int) -> int:
        return page_count(total, self.state.page_size)

    def _clamped_index(self, total: int) -> int:
        return max(0, min(self.state.page_index, self.page_count(total) - 1))

    def clamp(self, total: int) -> PaginationState:
        """Pull the page index back into range after the row count shrinks."""
        index = self._clamped_index(total)
        if index != self.state.page_index:
            self.state = self.state.model_copy(update={"page_index": index})
        return self.state

    def slice(self, rows: Sequence[Any]) -> list[Any]:
        """Rows on the current page (the whole sequence in show-all mode)."""
        if self.state.page_size == SHOW_ALL:
            return list(rows)
        size = self.state.page_size
        start = self._clamped_index(len(rows)) * size
        return list(rows[start:start + size])

    def can_prev(self) -> bool:
        return self.state.page_index > 0

    def can_next(self, total: int) -> bool:
        return self.state.page_index < self.page_count(total) - 1

    def go_to(self, page_index: int, total: int | None = None) -> PaginationState:
        index = max(0, page_index)
        if total is not None:
            index = min(index, self.page_count(total) - 1)
        self.state = self.state.model_copy(update={"page_index": index})
        return self.state

    def next(self, total: int) -> PaginationState:
        if self.can_next(total):
            return self.go_to(self.state.page_index + 1)
        return self.state

    def prev(self) -> PaginationState:
        if self.can_prev():
            return self.go_to(self.state.page_index - 1)
        return self.state

    def reset(self) -> PaginationState:
        return self.go_to(0)

    def set_page_size(self, size: Any) -> PaginationState:
        """Change the page size and return to the first page.

        ``"all"`` is honoured only when ``enable_show_all`` is set.  Any
        other invalid size falls back to the configured default.
        """
        if size == SHOW_ALL:
            if not self.config.enable_show_all:
                logger.debug("[DataTable] show-all page size is disabled; ignoring")
                return self.state
            new_size: PageSize = SHOW_ALL
        elif isinstance(size, str) and size.isdigit() and int(size) > 0:
            new_size = int(size)
        elif _is_valid_size(size):
            new_size = size
        elif _is_valid_size(self.config.page_size):
            new_size = self.config.page_size
        else:
            new_size = _DEFAULT_PAGE_SIZE
        self.state = PaginationState(page_index=0, page_size=new_size)
        return self.state

    def page_info(self, total: int) -> PageInfo:
        index = self._clamped_index(total)
        count = self.page_count(total)
        return PageInfo(
            mode="client",
            page_index=index,
            page_size=self.state.page_size,
            page_count=count,
            total_rows=total,
            has_next=index < count - 1,
            has_prev=index > 0,
        )

    @property
    def page_size_options(self) -> list[PageSize]:
        options: list[PageSize] = list(self.config.page_size_options)
        if self.config.enable_show_all:
            options.append(SHOW_ALL)
        return options


class ServerPaginator:
    """Relay for server-side paging; it never slices rows.

    Args:
        config: Callbacks invoked for navigation intents.
        get_page_info: Returns the caller's current :class:`ServerPageInfo`.
    """

    def __init__(
        self,
        config: ServerPaging,
        get_page_info: Callable[[], ServerPageInfo | None],
    ) -> None:
        self.config = config
        self._get_page_info = get_page_info

    @property
    def info(self) -> ServerPageInfo:
        return self._get_page_info() or ServerPageInfo()

    def can_next(self) -> bool:
        return self.info.has_next

    def can_prev(self) -> bool:
        return self.info.has_prev

    def next(self) -> None:
        if self.can_next():
            self.config.on_next()

    def prev(self) -> None:
        if self.can_prev():
            self.config.on_prev()

    def go_to(self, page_index: int) -> None:
        if self.config.on_page_change is not None:
            self.config.on_page_change(max(0, page_index))

    def set_page_size(self, size: int) -> None:
        if self.config.on_page_size_change is not None and _is_valid_size(size):
            self.config.on_page_size_change(size)

    def page_info(self) -> PageInfo:
        info = self.info
        count = None
        if info.total_rows is not None:
            count = page_count(info.total_rows, info.page_size)
        return PageInfo(
            mode="server",
            page_index=info.page_index,
            page_size=info.page_size,
            page_count=count,
            total_rows=info.total_rows,
            has_next=info.has_next,
            has_prev=info.has_prev,
        )
