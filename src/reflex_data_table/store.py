"""State stores with an injected get/set pair.

The table never assumes where its filter, sort or server-page state
lives.  Each piece sits behind a :class:`Store`: in memory by default,
or in the caller's own state (a Reflex var, the URL query string) via
:class:`CallbackStore`.  The table re-reads every store on each ``view()``.
"""

import copy
from collections.abc import Callable
from typing import Any, Generic, Protocol, TypeVar

T = TypeVar("T")


class Store(Protocol[T]):
    def get(self) -> T: ...

    def set(self, value: T) -> None: ...


class MemoryStore(Generic[T]):
    """Holds the value in the store itself."""

    def __init__(self, initial: T) -> None:
        self._value = copy.copy(initial)

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value


class CallbackStore(Generic[T]):
    """Delegates to caller-owned state.

    Example::

        store = CallbackStore(lambda: state.filters, state.set_filters)
    """

    def __init__(self, get: Callable[[], T], set: Callable[[T], Any]) -> None:  # noqa: A002
        self._get = get
        self._set = set

    def get(self) -> T:
        return self._get()

    def set(self, value: T) -> None:
        self._set(value)
