"""Exceptions raised out of scope operations.

Only these escape a digest or apply. Failures inside watch functions,
listeners, and queued callbacks are logged where they happen and never
propagate.
"""

from __future__ import annotations


class ScopeError(RuntimeError):
    """Base class for fatal scope errors."""


class ConvergenceError(ScopeError):
    """The digest kept finding changes after its iteration budget ran out.

    Usually means two or more watchers keep changing each other's values.
    State after this is raised should be treated as unreliable.
    """

    def __init__(self, ttl: int) -> None:
        super().__init__(f"{ttl} digest iterations reached")
        self.ttl = ttl


class PhaseConflictError(ScopeError):
    """A digest or apply was started while another one was in progress."""

    def __init__(self, active: str, requested: str) -> None:
        super().__init__(f"{active} already in progress (cannot begin {requested})")
        self.active = active
        self.requested = requested
