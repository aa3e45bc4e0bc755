"""Shallow collection watching.

A collection watch notices elements being added, removed, or replaced in a
sequence or mapping without deep-copying the whole container on every pass.
It keeps its own shallow copy of the last seen contents and bumps a counter
whenever that copy is out of date; the counter is what the underlying
reference-mode watcher actually watches.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from scopedigest._equality import are_equal


def _is_sequence(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


class CollectionTracker:
    """Tracks one watched value and counts the changes seen in it."""

    __slots__ = ("changes", "_old")

    def __init__(self) -> None:
        self.changes = 0
        self._old: Any = None

    def update(self, new: Any) -> int:
        if isinstance(new, Mapping):
            self._update_mapping(new)
        elif _is_sequence(new):
            self._update_sequence(new)
        elif not are_equal(new, self._old):
            self._old = new
            self.changes += 1
        return self.changes

    def _update_sequence(self, new: Sequence) -> None:
        if not isinstance(self._old, list):
            self._old = []
            self.changes += 1
        old = self._old
        if len(old) != len(new):
            del old[len(new):]
            self.changes += 1
        for index, item in enumerate(new):
            if index >= len(old):
                old.append(item)
                self.changes += 1
            elif not are_equal(item, old[index]):
                old[index] = item
                self.changes += 1

    def _update_mapping(self, new: Mapping) -> None:
        if not isinstance(self._old, dict):
            self._old = {}
            self.changes += 1
        old = self._old
        for key, value in new.items():
            if key not in old:
                old[key] = value
                self.changes += 1
            elif not are_equal(value, old[key]):
                old[key] = value
                self.changes += 1
        for key in [k for k in old if k not in new]:
            del old[key]
            self.changes += 1


def shallow_copy(value: Any) -> Any:
    if isinstance(value, Mapping):
        return dict(value)
    if _is_sequence(value):
        return list(value)
    return value
