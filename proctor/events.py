from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional, Protocol

logger = logging.getLogger(__name__)


class EventLevel(str, Enum):
    EVENT = "EVENT"
    WARNING = "WARNING"
    VIOLATION = "VIOLATION"
    ERROR = "ERROR"


class Severity(str, Enum):
    INFO = "INFO"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


_DEFAULT_SEVERITY = {
    EventLevel.EVENT: Severity.INFO,
    EventLevel.WARNING: Severity.MEDIUM,
    EventLevel.VIOLATION: Severity.HIGH,
    EventLevel.ERROR: Severity.HIGH,
}


@dataclass(frozen=True)
class Event:
    level: EventLevel
    category: str
    message: str
    severity: Severity
    timestamp: float = field(default_factory=time.time)
    data: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def create(cls, level: EventLevel, category: str, message: str, **data: Any) -> "Event":
        return cls(level=level, category=category, message=message, severity=_DEFAULT_SEVERITY[level], data=data)

    @classmethod
    def violation(cls, category: str, message: str, **data: Any) -> "Event":
        return cls.create(EventLevel.VIOLATION, category, message, **data)

    @classmethod
    def info(cls, category: str, message: str, **data: Any) -> "Event":
        return cls.create(EventLevel.EVENT, category, message, **data)

    @classmethod
    def warning(cls, category: str, message: str, **data: Any) -> "Event":
        return cls.create(EventLevel.WARNING, category, message, **data)

    @classmethod
    def error(cls, category: str, message: str, exc: Optional[BaseException] = None, **data: Any) -> "Event":
        if exc is not None:
            data.setdefault("error", f"{type(exc).__name__}: {exc}")
        return cls.create(EventLevel.ERROR, category, message, **data)

    @property
    def is_violation(self) -> bool:
        return self.level == EventLevel.VIOLATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "level": self.level.value,
            "category": self.category,
            "message": self.message,
            "severity": self.severity.value,
            "data": self.data,
        }


class EventSink(Protocol):
    def emit(self, event: Event) -> None:
        ...


class EventLog:
    """Bounded in-memory history of emitted events."""

    def __init__(self, max_events: int = 1000):
        self.events: Deque[Event] = deque(maxlen=max_events)
        self.lock = threading.Lock()

    def emit(self, event: Event) -> None:
        with self.lock:
            self.events.append(event)

    def snapshot(self) -> List[Event]:
        with self.lock:
            return list(self.events)

    def violations(self, category: Optional[str] = None) -> List[Event]:
        return [
            event
            for event in self.snapshot()
            if event.is_violation and (category is None or event.category == category)
        ]

    def clear(self) -> None:
        with self.lock:
            self.events.clear()

    def stats(self) -> Dict[str, Any]:
        events = self.snapshot()
        levels = Counter(event.level for event in events)
        return {
            "total": len(events),
            "violations": levels[EventLevel.VIOLATION],
            "warnings": levels[EventLevel.WARNING],
            "errors": levels[EventLevel.ERROR],
            "events": levels[EventLevel.EVENT],
            "categories": dict(Counter(event.category for event in events)),
        }

    def export_json(self) -> str:
        return json.dumps([event.to_dict() for event in self.snapshot()], indent=2)


class LoggingSink:
    LEVELS = {
        EventLevel.EVENT: logging.INFO,
        EventLevel.WARNING: logging.WARNING,
        EventLevel.VIOLATION: logging.WARNING,
        EventLevel.ERROR: logging.ERROR,
    }

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logging.getLogger("proctor.events")

    def emit(self, event: Event) -> None:
        self.log.log(self.LEVELS[event.level], "%s %s: %s", event.level.value, event.category, event.message)


class SinkGroup:
    def __init__(self, sinks: Iterable[EventSink] = ()):
        self.sinks: List[EventSink] = list(sinks)

    def add(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    def emit(self, event: Event) -> None:
        for sink in self.sinks:
            try:
                sink.emit(event)
            except Exception:
                logger.exception("Event sink %r failed on %s", sink, event.category)
