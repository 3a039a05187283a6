"""
Telemetry and metrics collection
"""
from collections import deque
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
import time

from .constants import TELEMETRY_MAX_RECORDS


@dataclass
class Metric:
    """Single metric value"""
    name: str
    value: float
    timestamp: float = field(default_factory=time.time)
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class Event:
    """Event record"""
    name: str
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)


class Telemetry:
    """Telemetry collector keeping the most recent max_records of each kind"""

    def __init__(self, max_records: int = TELEMETRY_MAX_RECORDS):
        self._metrics: deque[Metric] = deque(maxlen=max_records)
        self._events: deque[Event] = deque(maxlen=max_records)

    def record_metric(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        """Record a metric"""
        self._metrics.append(Metric(name=name, value=value, tags=tags or {}))

    def record_event(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Record an event"""
        self._events.append(Event(name=name, metadata=metadata or {}))

    def get_metrics(self, name: Optional[str] = None) -> list[Metric]:
        """Get recorded metrics, optionally filtered by name"""
        if name is None:
            return list(self._metrics)
        return [m for m in self._metrics if m.name == name]

    def get_events(self, name: Optional[str] = None) -> list[Event]:
        """Get recorded events, optionally filtered by name"""
        if name is None:
            return list(self._events)
        return [e for e in self._events if e.name == name]

    def clear(self) -> None:
        """Clear all metrics and events"""
        self._metrics.clear()
        self._events.clear()


# Global telemetry instance
_telemetry = Telemetry()


def get_telemetry() -> Telemetry:
    """Get global telemetry instance"""
    return _telemetry
