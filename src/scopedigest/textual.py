"""Textual integration for scopedigest. Opt-in — requires textual.

TextualScheduler defers eval_async digests and apply_async flushes onto the
app's message loop, so scope work always runs on the app's thread. watch()
is Scope.watch for listeners that query widgets: it skips while the app is
paused or not running and ignores NoMatches from vanished widgets.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable

from textual.css.query import NoMatches

from scopedigest.scheduler import set_scheduler

if TYPE_CHECKING:
    from textual.app import App
    from textual.timer import Timer

    from scopedigest.scope import Scope
    from scopedigest.watcher import ListenerFn, WatchFn

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded listeners during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


class _TimerHandle:
    __slots__ = ("_timer",)

    def __init__(self, timer: Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()


class TextualScheduler:
    """Scheduler that runs deferred callbacks on a Textual app's loop."""

    def __init__(self, app: App) -> None:
        self._app = app
        self._main = threading.get_ident()

    def __call__(self, callback: Callable[[], None]) -> _TimerHandle:
        if threading.get_ident() != self._main:
            return self._app.call_from_thread(self._schedule, callback)
        return self._schedule(callback)

    def _schedule(self, callback: Callable[[], None]) -> _TimerHandle:
        return _TimerHandle(self._app.set_timer(0, callback))


def install(app: App, scope: Scope | None = None) -> TextualScheduler:
    """Route deferred scope work through app.

    With a scope, only that scope's tree is affected; otherwise the
    TextualScheduler becomes the process default.
    """
    scheduler = TextualScheduler(app)
    if scope is None:
        set_scheduler(scheduler)
    else:
        scope.root._state.scheduler = scheduler
    return scheduler


def watch(
    app: App,
    scope: Scope,
    watch_fn: WatchFn,
    listener_fn: ListenerFn,
    by_value: bool = False,
) -> Callable[[], None]:
    """scope.watch() whose listener safely touches Textual widgets.

    The listener is skipped while the app is paused or not running, and
    NoMatches from widget queries is swallowed.
    """

    def _guarded(new_value, old_value, watched_scope):
        if not is_safe(app):
            return
        try:
            listener_fn(new_value, old_value, watched_scope)
        except NoMatches:
            pass

    return scope.watch(watch_fn, _guarded, by_value)
