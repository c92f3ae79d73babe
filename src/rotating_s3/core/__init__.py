"""Building blocks of a rotating stream."""

from .active_file import ActiveFile
from .events import Event, EventBus, EventLevel
from .scheduler import PeriodicTicker

__all__ = [
    "ActiveFile",
    "Event",
    "EventBus",
    "EventLevel",
    "PeriodicTicker",
]
