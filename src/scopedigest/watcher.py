"""Watch records and the per-scope list that holds them.

Removal marks a slot as empty instead of splicing it out, so a watcher can
dispose itself or any other watcher while a digest is walking the list.
Empty slots are dropped by compact(), which the digest calls before it
starts walking a scope.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterator

from scopedigest._equality import are_equal, snapshot

if TYPE_CHECKING:
    from scopedigest.scope import Scope

WatchFn = Callable[["Scope"], Any]
ListenerFn = Callable[[Any, Any, "Scope"], None]

# Stands in for "never evaluated". Equal to nothing, None included.
_INITIAL = object()


def _noop(new_value, old_value, scope) -> None:
    pass


class Watcher:
    """A watch function, its listener, and the value it last saw."""

    __slots__ = ("watch_fn", "listener_fn", "by_value", "last")

    def __init__(
        self,
        watch_fn: WatchFn,
        listener_fn: ListenerFn | None = None,
        by_value: bool = False,
    ) -> None:
        self.watch_fn = watch_fn
        self.listener_fn = listener_fn or _noop
        self.by_value = bool(by_value)
        self.last: Any = _INITIAL

    @property
    def initialized(self) -> bool:
        return self.last is not _INITIAL

    def is_dirty(self, value: Any) -> bool:
        return not are_equal(value, self.last, self.by_value)

    def record(self, value: Any) -> Any:
        """Store value as last seen; return what the listener gets as old value.

        On the first run that is the new value itself.
        """
        old = self.last
        self.last = snapshot(value, self.by_value)
        return value if old is _INITIAL else old

    def __repr__(self) -> str:
        name = getattr(self.watch_fn, "__name__", repr(self.watch_fn))
        state = f"last={self.last!r}" if self.initialized else "initial"
        return f"Watcher({name}, {state})"


class WatcherList:
    """Ordered watchers of one scope, in registration order."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[Watcher | None] = []

    def add(self, watcher: Watcher) -> None:
        self._items.append(watcher)

    def remove(self, watcher: Watcher) -> bool:
        """Tombstone watcher by identity. False if it was not present."""
        for index, item in enumerate(self._items):
            if item is watcher:
                self._items[index] = None
                return True
        return False

    def compact(self) -> None:
        if None in self._items:
            self._items = [w for w in self._items if w is not None]

    def clear(self) -> None:
        self._items = []

    def __iter__(self) -> Iterator[Watcher]:
        # Walks the live list: watchers added mid-walk are visited in the same
        # walk, removed ones are skipped from the moment they are removed.
        index = 0
        while index < len(self._items):
            watcher = self._items[index]
            index += 1
            if watcher is not None:
                yield watcher
