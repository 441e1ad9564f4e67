"""
Violation-detection layer for integrity-guard.
"""

from .aggregator import AggregateSnapshot, aggregate
from .config import ProctorSettings
from .errors import ConfigurationError, InvalidCapture, ProctorError, ProviderError, ProviderUnavailable
from .events import Event, EventLevel, EventLog
from .loop import DetectionLoop, TickResult
from .service import ProctorService
from .snapshot import Signal, SignalSnapshot

__all__ = [
    "AggregateSnapshot",
    "ConfigurationError",
    "DetectionLoop",
    "Event",
    "EventLevel",
    "EventLog",
    "InvalidCapture",
    "ProctorError",
    "ProctorService",
    "ProctorSettings",
    "ProviderError",
    "ProviderUnavailable",
    "Signal",
    "SignalSnapshot",
    "TickResult",
    "aggregate",
]
