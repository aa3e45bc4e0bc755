import pytest

from scopedigest import Scope


class ManualScheduler:
    """Collects deferred callbacks; run() fires them like one loop tick."""

    class Handle:
        def __init__(self, callback):
            self.callback = callback
            self.cancelled = False

        def cancel(self):
            self.cancelled = True

    def __init__(self):
        self.pending = []

    def __call__(self, callback):
        handle = self.Handle(callback)
        self.pending.append(handle)
        return handle

    @property
    def scheduled(self):
        return sum(1 for h in self.pending if not h.cancelled)

    def run(self):
        while self.pending:
            batch, self.pending = self.pending, []
            for handle in batch:
                if not handle.cancelled:
                    handle.callback()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def scope(scheduler):
    return Scope(scheduler=scheduler)
