"""Observer interface for stream events."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from rotating_s3.utils.logging import get_logger

logger = get_logger(__name__)


class EventLevel(str, Enum):
    """Event categories a listener can subscribe to."""

    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Event:
    """
    A single info/error record emitted by a stream.

    Attributes:
        level: INFO for operational narration, ERROR for failures
        message: Human readable text (or one line of transfer output)
        source: Local file path the event refers to
        destination: Remote object the event refers to
        reason: Rotation reason, for rotation events
        error: Exception behind an error event
        code: Transfer status code, for upload failures
    """

    level: EventLevel
    message: str
    source: Optional[str] = None
    destination: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[BaseException] = None
    code: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        """Return set fields only, with level as plain string."""
        data = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }
        data["level"] = self.level.value
        return data


Listener = Callable[[Event], None]


class EventBus:
    """
    Fire-and-forget publisher of stream events.

    Listeners only see events emitted while they are subscribed. A failing
    listener is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._listeners: Dict[EventLevel, List[Listener]] = {
            level: [] for level in EventLevel
        }

    def subscribe(self, level: EventLevel | str, listener: Listener) -> Callable[[], None]:
        """Attach a listener; returns a callable that detaches it again."""
        resolved = EventLevel(level)
        self._listeners[resolved].append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(resolved, listener)

        return _unsubscribe

    def unsubscribe(self, level: EventLevel | str, listener: Listener) -> None:
        listeners = self._listeners[EventLevel(level)]
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, level: EventLevel | str) -> int:
        return len(self._listeners[EventLevel(level)])

    def emit(self, event: Event) -> None:
        # Copy so listeners may (un)subscribe while being notified.
        for listener in list(self._listeners[event.level]):
            try:
                listener(event)
            except Exception as exc:
                logger.error(
                    "event_listener_failed",
                    level=event.level.value,
                    event_message=event.message,
                    exc_info=exc,
                )

    def info(self, message: str, **fields: Any) -> Event:
        event = Event(EventLevel.INFO, message, **fields)
        self.emit(event)
        return event

    def error(self, message: str, **fields: Any) -> Event:
        event = Event(EventLevel.ERROR, message, **fields)
        self.emit(event)
        return event


__all__ = ["Event", "EventBus", "EventLevel", "Listener"]
