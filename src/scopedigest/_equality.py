"""Change detection — decides whether a watched value is "dirty".

Reference mode compares by identity, except that immutable scalars of the
same type compare by value (two equal strings or ints are the same value even
when they are different objects, but 1, 1.0 and True are not) and NaN is equal
to NaN. Value mode compares structure recursively, with the same NaN and
scalar rules at every depth; plain objects are compared by their attributes.
"""

from __future__ import annotations

import copy
import numbers
from collections.abc import Mapping, Sequence

_SCALARS = (str, bytes, numbers.Number)


def _is_nan(value: object) -> bool:
    return isinstance(value, float) and value != value


def _same_scalar_type(new: object, old: object) -> bool:
    # 1, 1.0 and True are different values to a watcher.
    return isinstance(new, _SCALARS) and type(new) is type(old)


def _fields(value: object) -> dict[str, object] | None:
    """Instance state of a plain object: its __dict__ plus any __slots__."""
    fields = dict(getattr(value, "__dict__", {}))
    for cls in type(value).__mro__:
        slots = getattr(cls, "__slots__", ())
        for name in (slots,) if isinstance(slots, str) else slots:
            if name not in ("__dict__", "__weakref__") and hasattr(value, name):
                fields[name] = getattr(value, name)
    if not fields and not hasattr(value, "__dict__"):
        return None
    return fields


def _reference_equal(new: object, old: object) -> bool:
    if new is old:
        return True
    if _is_nan(new) and _is_nan(old):
        return True
    if _same_scalar_type(new, old):
        return new == old
    return False


def _deep_equal(new: object, old: object) -> bool:
    if new is old:
        return True
    if _is_nan(new) and _is_nan(old):
        return True
    if isinstance(new, Mapping) and isinstance(old, Mapping):
        if new.keys() != old.keys():
            return False
        return all(_deep_equal(new[key], old[key]) for key in new)
    if (
        isinstance(new, Sequence) and isinstance(old, Sequence)
        and not isinstance(new, (str, bytes)) and not isinstance(old, (str, bytes))
    ):
        if type(new) is not type(old) or len(new) != len(old):
            return False
        return all(_deep_equal(a, b) for a, b in zip(new, old))
    if isinstance(new, _SCALARS) or isinstance(old, _SCALARS):
        return _same_scalar_type(new, old) and new == old
    if type(new) is not type(old):
        return False
    if new == old:
        return True
    if type(new).__eq__ is not object.__eq__:
        return False
    # Objects without their own __eq__ compare by identity; look inside them
    # instead, since a value-mode snapshot is always a different object.
    new_fields, old_fields = _fields(new), _fields(old)
    if new_fields is None or old_fields is None:
        return False
    return _deep_equal(new_fields, old_fields)


def are_equal(new: object, old: object, by_value: bool = False) -> bool:
    """Is `new` unchanged relative to `old` under the given equality mode?"""
    if by_value:
        return _deep_equal(new, old)
    return _reference_equal(new, old)


def snapshot(value: object, by_value: bool = False) -> object:
    """The value a watcher remembers as "last".

    In value mode this is a deep copy, so later in-place mutation of the live
    container is still detected as a change.
    """
    return copy.deepcopy(value) if by_value else value
