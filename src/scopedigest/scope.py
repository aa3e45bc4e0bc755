"""Scopes — hierarchical attribute bags with dirty-checked watchers.

A Scope holds arbitrary attributes, a list of watchers, child scopes, and
event listeners. digest() evaluates every watcher in the scope's subtree,
calling listeners for values that changed, and repeats until a full pass
finds nothing dirty.

Usage:
    root = Scope()
    root.name = "Alice"
    root.watch(lambda s: s.name, lambda new, old, s: print(old, "->", new))
    root.digest()          # prints "Alice -> Alice"
    root.apply(lambda s: setattr(s, "name", "Bob"))   # prints "Alice -> Bob"

Every scope in a tree shares one TreeState: the current phase, the
short-circuit marker, and the async, apply-async and post-digest queues.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, Sequence

from scopedigest._state import DEFAULT_TTL, TreeState
from scopedigest.collection import CollectionTracker, shallow_copy
from scopedigest.errors import ConvergenceError
from scopedigest.events import EmitEvent, Event, EventListener, ListenerTable
from scopedigest.scheduler import Scheduler
from scopedigest.watcher import ListenerFn, Watcher, WatcherList, WatchFn

logger = logging.getLogger("scopedigest.scope")

Disposer = Callable[[], None]

_MISSING = object()


def _disposed() -> None:
    pass


class Scope:
    """A node in a scope tree. Root scopes take no positional arguments.

    Attributes are read and written directly (``scope.name``). Names starting
    with an underscore and names of Scope members (get, set, watch, digest,
    phase, root, parent, children, ...) cannot be written as attributes; use
    set() and get() for those keys.
    """

    __slots__ = (
        "_attrs",
        "_prototype",
        "_parent",
        "_root",
        "_children",
        "_watchers",
        "_listeners",
        "_state",
        "_isolated",
        "_destroyed",
    )

    def __init__(self, *, ttl: int = DEFAULT_TTL, scheduler: Scheduler | None = None) -> None:
        self._init(None, None, None, TreeState(ttl, scheduler), isolated=False)

    def _init(
        self,
        prototype: Scope | None,
        parent: Scope | None,
        root: Scope | None,
        state: TreeState,
        *,
        isolated: bool,
    ) -> None:
        set_ = object.__setattr__
        set_(self, "_attrs", {})
        set_(self, "_prototype", prototype)
        set_(self, "_parent", parent)
        set_(self, "_root", root if root is not None else self)
        set_(self, "_children", [])
        set_(self, "_watchers", WatcherList())
        set_(self, "_listeners", ListenerTable())
        set_(self, "_state", state)
        set_(self, "_isolated", isolated)
        set_(self, "_destroyed", False)

    # --- Attribute bag ---

    def get(self, name: str, default: Any = None) -> Any:
        """Look up name here, then along the inheritance chain."""
        scope: Scope | None = self
        while scope is not None:
            value = scope._attrs.get(name, _MISSING)
            if value is not _MISSING:
                return value
            scope = scope._prototype
        return default

    def set(self, name: str, value: Any) -> None:
        """Write name on this scope, including names reserved for attributes."""
        self._attrs[name] = value

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        value = self.get(name, _MISSING)
        if value is _MISSING:
            raise AttributeError(f"scope has no attribute {name!r}")
        return value

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
        else:
            self._attrs[name] = value

    def __delattr__(self, name: str) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__delattr__(self, name)
        else:
            try:
                del self._attrs[name]
            except KeyError:
                raise AttributeError(name) from None

    def __contains__(self, name: str) -> bool:
        return self.get(name, _MISSING) is not _MISSING

    # --- Tree ---

    @property
    def parent(self) -> Scope | None:
        return self._parent

    @property
    def root(self) -> Scope:
        return self._root

    @property
    def children(self) -> tuple[Scope, ...]:
        return tuple(self._children)

    @property
    def isolated(self) -> bool:
        return self._isolated

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def phase(self) -> str | None:
        """"apply" or "digest" while one is running anywhere in the tree."""
        return self._state.phase

    def spawn(self, isolated: bool = False, hierarchy_parent: Scope | None = None) -> Scope:
        """Create a child scope.

        A non-isolated child reads through to this scope's attributes. The
        child is digested, and receives broadcasts, as part of
        ``hierarchy_parent`` (default: this scope) and shares its tree's
        queues. Isolated children share the queues but inherit no attributes.
        """
        parent = hierarchy_parent if hierarchy_parent is not None else self
        child = object.__new__(type(self))
        child._init(
            None if isolated else self,
            parent,
            parent._root,
            parent._state,
            isolated=isolated,
        )
        parent._children.append(child)
        return child

    def destroy(self) -> None:
        """Detach from the parent and stop digesting this scope's watchers.

        Descendants are not notified; they become unreachable from the
        parent's digests along with this scope.
        """
        if self._destroyed:
            return
        object.__setattr__(self, "_destroyed", True)
        if self._parent is not None:
            siblings = self._parent._children
            for index, sibling in enumerate(siblings):
                if sibling is self:
                    del siblings[index]
                    break
        self._watchers.clear()
        self._state.last_dirty_watch = None

    def _every_scope(self, fn: Callable[[Scope], bool]) -> bool:
        """Pre-order walk; a False from fn stops the walk everywhere."""
        if not fn(self):
            return False
        for child in list(self._children):
            if child._destroyed:
                continue
            if not child._every_scope(fn):
                return False
        return True

    def _walk(self) -> Iterator[Scope]:
        yield self
        for child in list(self._children):
            if not child._destroyed:
                yield from child._walk()

    # --- Watchers ---

    def watch(
        self,
        watch_fn: WatchFn,
        listener_fn: ListenerFn | None = None,
        by_value: bool = False,
    ) -> Disposer:
        """Register a watcher. Returns a function that removes it.

        watch_fn(scope) produces the watched value. listener_fn(new, old,
        scope) runs on the first digest and whenever the value changes; with
        by_value the value is compared structurally and snapshotted by deep
        copy.
        """
        if self._destroyed:
            logger.debug("watch() on destroyed scope ignored")
            return _disposed
        watcher = Watcher(watch_fn, listener_fn, by_value)
        self._watchers.add(watcher)
        self._state.last_dirty_watch = None

        def _deregister() -> None:
            if self._watchers.remove(watcher):
                self._state.last_dirty_watch = None

        return _deregister

    def watch_group(
        self,
        watch_fns: Sequence[WatchFn],
        listener_fn: Callable[[list, list, Scope], None],
    ) -> Disposer:
        """Watch several values, calling listener_fn once per digest pass.

        The listener gets lists of new and old values in watch_fns order.
        On its first call both arguments are the same list object.
        """
        new_values: list[Any] = [None] * len(watch_fns)
        old_values: list[Any] = [None] * len(watch_fns)

        if not watch_fns:
            should_call = True

            def _call_once(scope: Scope) -> None:
                if should_call:
                    listener_fn(new_values, new_values, self)

            self.eval_async(_call_once)

            def _cancel() -> None:
                nonlocal should_call
                should_call = False

            return _cancel

        scheduled = False
        first_run = True

        def _group_listener(scope: Scope) -> None:
            nonlocal scheduled, first_run
            scheduled = False
            if first_run:
                first_run = False
                listener_fn(new_values, new_values, self)
            else:
                listener_fn(new_values, old_values, self)

        def _member(index: int) -> ListenerFn:
            def _on_change(new_value: Any, old_value: Any, scope: Scope) -> None:
                nonlocal scheduled
                new_values[index] = new_value
                old_values[index] = old_value
                if not scheduled:
                    scheduled = True
                    self.eval_async(_group_listener)

            return _on_change

        disposers = [self.watch(fn, _member(i)) for i, fn in enumerate(watch_fns)]

        def _deregister_all() -> None:
            for dispose in disposers:
                dispose()

        return _deregister_all

    def watch_collection(
        self,
        watch_fn: WatchFn,
        listener_fn: ListenerFn | None = None,
    ) -> Disposer:
        """Watch a sequence or mapping for shallow changes.

        Detects added, removed, and replaced elements without deep-copying.
        listener_fn(new, previous, scope) receives a shallow copy of the
        previous contents; on the first call previous is new itself.
        """
        tracker = CollectionTracker()
        current: Any = None
        previous: Any = None
        first_run = True

        def _watch(scope: Scope) -> int:
            nonlocal current
            current = watch_fn(scope)
            return tracker.update(current)

        def _listen(new_count: int, old_count: int, scope: Scope) -> None:
            nonlocal previous, first_run
            if listener_fn is not None:
                listener_fn(current, current if first_run else previous, scope)
            first_run = False
            previous = shallow_copy(current)

        return self.watch(_watch, _listen)

    # --- Digest ---

    def digest(self) -> None:
        """Run watchers in this subtree until nothing changes.

        Raises ConvergenceError when values are still changing after ttl
        passes, and PhaseConflictError when called during another digest or
        apply.
        """
        state = self._state
        ttl = state.ttl
        state.begin_phase("digest")
        state.last_dirty_watch = None

        if state.apply_async_handle is not None or state.apply_async_queue:
            if state.apply_async_handle is not None:
                state.apply_async_handle.cancel()
            self._flush_apply_async()

        try:
            while True:
                self._drain_async_queue()
                dirty = self._digest_once()
                if not (dirty or state.async_queue):
                    break
                ttl -= 1
                if ttl <= 0:
                    raise ConvergenceError(state.ttl)
        finally:
            state.clear_phase()

        self._drain_post_digest()

    def _drain_async_queue(self) -> None:
        queue = self._state.async_queue
        while queue:
            scope, fn = queue.popleft()
            try:
                scope.eval(fn)
            except Exception:
                logger.exception("Error in eval_async function %r", fn)

    def _drain_post_digest(self) -> None:
        queue = self._state.post_digest_queue
        while queue:
            fn = queue.popleft()
            try:
                fn()
            except Exception:
                logger.exception("Error in post_digest function %r", fn)

    def _digest_once(self) -> bool:
        """One pass over the subtree. True if any watcher was dirty."""
        state = self._state
        dirty = False

        def _check_scope(scope: Scope) -> bool:
            nonlocal dirty
            scope._watchers.compact()
            for watcher in scope._watchers:
                try:
                    new_value = watcher.watch_fn(scope)
                    changed = watcher.is_dirty(new_value)
                except Exception:
                    logger.exception("Error in watch function %r", watcher.watch_fn)
                    continue
                if changed:
                    state.last_dirty_watch = watcher
                    old_value = watcher.record(new_value)
                    dirty = True
                    try:
                        watcher.listener_fn(new_value, old_value, scope)
                    except Exception:
                        logger.exception("Error in listener %r", watcher.listener_fn)
                elif state.last_dirty_watch is watcher:
                    return False
            return True

        self._every_scope(_check_scope)
        return dirty

    # --- Scheduling ---

    def eval(self, fn: Callable[..., Any], locals: Any = None) -> Any:
        """Call fn(scope), or fn(scope, locals) when locals is given."""
        if locals is None:
            return fn(self)
        return fn(self, locals)

    def apply(self, fn: Callable[..., Any] | None = None) -> Any:
        """Run fn against this scope, then digest the whole tree.

        The root digest runs even if fn raises; the error propagates after it.
        """
        self._state.begin_phase("apply")
        try:
            if fn is not None:
                return self.eval(fn)
            return None
        finally:
            self._state.clear_phase()
            self._root.digest()

    def eval_async(self, fn: Callable[[Scope], Any]) -> None:
        """Run fn(scope) later in the current digest, or in a digest soon.

        If no digest is running, one is scheduled from the root.
        """
        state = self._state
        if state.phase is None and not state.async_queue:
            state.defer(self._digest_if_async_pending)
        state.async_queue.append((self, fn))

    def _digest_if_async_pending(self) -> None:
        if self._state.async_queue:
            self._root.digest()

    def apply_async(self, fn: Callable[[Scope], Any]) -> None:
        """Run fn(scope) in a later apply, coalesced with other apply_async calls.

        Every call made before the scheduled flush runs is handled by a
        single apply and so a single digest.
        """
        state = self._state
        state.apply_async_queue.append(lambda: self.eval(fn))
        if state.apply_async_handle is None:
            state.apply_async_handle = state.defer(self._apply_async_flush)

    def _apply_async_flush(self) -> None:
        self._root.apply(lambda scope: self._flush_apply_async())

    def _flush_apply_async(self) -> None:
        state = self._state
        queue = state.apply_async_queue
        while queue:
            thunk = queue.popleft()
            try:
                thunk()
            except Exception:
                logger.exception("Error in apply_async function")
        state.apply_async_handle = None

    def post_digest(self, fn: Callable[[], Any]) -> None:
        """Run fn() once, after the next digest has settled."""
        self._state.post_digest_queue.append(fn)

    # --- Events ---

    def on(self, name: str, listener: EventListener) -> Disposer:
        """Listen for name on this scope. listener(event, *args)."""
        return self._listeners.add(name, listener)

    def emit(self, name: str, *args: Any) -> EmitEvent:
        """Fire name on this scope, then each parent up to the root."""
        event = EmitEvent(name, self)
        scope: Scope | None = self
        while scope is not None:
            event.current_scope = scope
            scope._listeners.fire(event, args)
            if event.propagation_stopped:
                break
            scope = scope._parent
        event.current_scope = None
        return event

    def broadcast(self, name: str, *args: Any) -> Event:
        """Fire name on this scope and every descendant, parents first."""
        event = Event(name, self)
        for scope in self._walk():
            event.current_scope = scope
            scope._listeners.fire(event, args)
        event.current_scope = None
        return event

    def __repr__(self) -> str:
        kind = "isolated " if self._isolated else ""
        return f"<{kind}Scope attrs={sorted(self._attrs)!r} children={len(self._children)}>"
