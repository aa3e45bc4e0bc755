"""Scope events — named listeners fired upward (emit) or downward (broadcast).

Deregistering a listener leaves an empty slot in its list rather than
splicing, so listeners may deregister themselves or each other while the
list is being fired. Slots are compacted once no firing is in progress on
that scope.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from scopedigest.scope import Scope

logger = logging.getLogger("scopedigest.events")

EventListener = Callable[..., None]


class Event:
    """Passed as the first argument to every listener of a broadcast."""

    __slots__ = ("name", "target_scope", "current_scope", "default_prevented")

    def __init__(self, name: str, target_scope: Scope) -> None:
        self.name = name
        self.target_scope = target_scope
        self.current_scope: Scope | None = None
        self.default_prevented = False

    def prevent_default(self) -> None:
        self.default_prevented = True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class EmitEvent(Event):
    """An emitted event. Listeners may stop it from reaching further parents."""

    __slots__ = ("propagation_stopped",)

    def __init__(self, name: str, target_scope: Scope) -> None:
        super().__init__(name, target_scope)
        self.propagation_stopped = False

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


class ListenerTable:
    """Per-scope mapping of event name to listeners in registration order."""

    __slots__ = ("_listeners", "_firing")

    def __init__(self) -> None:
        self._listeners: dict[str, list[EventListener | None]] = {}
        self._firing = 0

    def add(self, name: str, listener: EventListener) -> Callable[[], None]:
        listeners = self._listeners.setdefault(name, [])
        listeners.append(listener)

        def _deregister() -> None:
            for index, item in enumerate(listeners):
                if item is listener:
                    listeners[index] = None
                    return

        return _deregister

    def fire(self, event: Event, args: tuple[Any, ...]) -> None:
        listeners = self._listeners.get(event.name)
        if not listeners:
            return
        self._firing += 1
        try:
            index = 0
            while index < len(listeners):
                listener = listeners[index]
                index += 1
                if listener is None:
                    continue
                try:
                    listener(event, *args)
                except Exception:
                    logger.exception("Error in listener for event %r", event.name)
        finally:
            self._firing -= 1
        if not self._firing:
            self._compact(event.name)

    def _compact(self, name: str) -> None:
        listeners = self._listeners.get(name)
        if listeners and None in listeners:
            # In place: deregister closures hold this list object.
            listeners[:] = [item for item in listeners if item is not None]
