"""scopedigest: dirty-checking scopes, watchers, and events for Python."""

from importlib.metadata import version as _version

__version__ = _version("scopedigest")

from scopedigest._equality import are_equal
from scopedigest.errors import ConvergenceError, PhaseConflictError, ScopeError
from scopedigest.events import EmitEvent, Event
from scopedigest.scheduler import get_scheduler, set_scheduler
from scopedigest.scope import Scope
from scopedigest.watcher import Watcher
# textual NOT auto-imported — opt-in only

__all__ = [
    "Scope",
    "Watcher",
    "Event",
    "EmitEvent",
    "ScopeError",
    "ConvergenceError",
    "PhaseConflictError",
    "set_scheduler",
    "get_scheduler",
    "are_equal",
]
