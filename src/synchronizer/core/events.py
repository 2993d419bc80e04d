"""Human-readable sync events and the sinks that receive them."""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Protocol

from ..utils.logging import get_logger


class EventKind(str, Enum):
    """Categories of events emitted to the shell."""
    DISCOVERY = "discovery"
    OUTCOME = "outcome"
    LIFECYCLE = "lifecycle"
    VALIDATION = "validation"
    WARNING = "warning"


@dataclass(frozen=True)
class SyncEvent:
    """One log line describing a decision or outcome."""

    kind: EventKind
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    fields: Dict[str, Any] = field(default_factory=dict)
    is_error: bool = False

    def format(self) -> str:
        """Render the event the way a log display shows it."""
        return f"[{self.timestamp.strftime('%Y-%m-%d %H:%M:%S')}] {self.message}"


class EventSink(Protocol):
    """Receives events in the order they occur."""

    def emit(self, event: SyncEvent) -> None:
        ...


class LoggingEventSink:
    """Renders events through the structured logger."""

    def __init__(self, logger_name: str = "Synchronizer"):
        self.logger = get_logger(logger_name)

    def emit(self, event: SyncEvent) -> None:
        if event.is_error:
            self.logger.error(event.message, kind=event.kind.value, **event.fields)
        elif event.kind == EventKind.WARNING or event.kind == EventKind.VALIDATION:
            self.logger.warning(event.message, kind=event.kind.value, **event.fields)
        else:
            self.logger.info(event.message, kind=event.kind.value, **event.fields)


class CollectingEventSink:
    """Keeps events in memory for a shell to display."""

    def __init__(self):
        self._events: List[SyncEvent] = []
        self._lock = threading.Lock()

    def emit(self, event: SyncEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> List[SyncEvent]:
        with self._lock:
            return list(self._events)

    @property
    def messages(self) -> List[str]:
        return [event.message for event in self.events]

    def of_kind(self, kind: EventKind) -> List[SyncEvent]:
        return [event for event in self.events if event.kind == kind]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class CompositeEventSink:
    """Fans each event out to several sinks."""

    def __init__(self, *sinks: EventSink):
        self.sinks = list(sinks)

    def emit(self, event: SyncEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)
