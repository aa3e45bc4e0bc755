"""Per-tree shared state.

One instance is created with each root scope and handed by reference to
every scope spawned into that tree, isolated ones included. Scopes never
copy it, so the phase, the short-circuit marker, and the queues are the
same object wherever in the tree they are touched from.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Callable

from scopedigest.scheduler import get_scheduler
from scopedigest.errors import PhaseConflictError

if TYPE_CHECKING:
    from scopedigest.scheduler import Cancellable, Scheduler
    from scopedigest.scope import Scope
    from scopedigest.watcher import Watcher

DEFAULT_TTL = 10


class TreeState:
    __slots__ = (
        "ttl",
        "scheduler",
        "phase",
        "last_dirty_watch",
        "async_queue",
        "apply_async_queue",
        "apply_async_handle",
        "post_digest_queue",
    )

    def __init__(self, ttl: int = DEFAULT_TTL, scheduler: Scheduler | None = None) -> None:
        if ttl < 1:
            raise ValueError(f"ttl must be at least 1, got {ttl}")
        self.ttl = ttl
        self.scheduler = scheduler
        self.phase: str | None = None
        self.last_dirty_watch: Watcher | None = None
        self.async_queue: deque[tuple[Scope, Callable]] = deque()
        self.apply_async_queue: deque[Callable[[], None]] = deque()
        self.apply_async_handle: Cancellable | None = None
        self.post_digest_queue: deque[Callable[[], None]] = deque()

    def begin_phase(self, phase: str) -> None:
        if self.phase is not None:
            raise PhaseConflictError(self.phase, phase)
        self.phase = phase

    def clear_phase(self) -> None:
        self.phase = None

    def defer(self, callback: Callable[[], None]) -> Cancellable | None:
        """Hand callback to this tree's scheduler, or the process default."""
        scheduler = self.scheduler or get_scheduler()
        return scheduler(callback)
