"""Deferred-callback scheduling for eval_async and apply_async.

A scheduler is any callable taking a zero-argument callback and returning a
handle with a ``cancel()`` method, or ``None`` when it could not defer the
callback. The default runs callbacks on the running asyncio event loop.

Configure once at startup:
    scopedigest.set_scheduler(my_scheduler)

or per tree:
    root = Scope(scheduler=my_scheduler)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

logger = logging.getLogger("scopedigest.scheduler")


class Cancellable(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[Callable[[], None]], "Cancellable | None"]


def asyncio_scheduler(callback: Callable[[], None]) -> asyncio.Handle | None:
    """Run callback on the next iteration of the running event loop.

    Outside a running loop nothing is scheduled; the queued work is picked
    up by whichever digest runs next.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No running event loop; %r left for the next digest", callback)
        return None
    return loop.call_soon(callback)


_scheduler: Scheduler = asyncio_scheduler


def set_scheduler(scheduler: Scheduler | None) -> None:
    """Set the process-wide default scheduler. None restores the asyncio one.

    Trees created with an explicit ``scheduler=`` keep their own.
    """
    global _scheduler
    _scheduler = scheduler if scheduler is not None else asyncio_scheduler


def get_scheduler() -> Scheduler:
    return _scheduler
