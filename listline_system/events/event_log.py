# listline_system/events/event_log.py
"""
Bounded event log.

Appends are unconditional; once the window is full the oldest entry drops
out. Lifetime counts per kind survive truncation.
"""
import logging
from collections import Counter, deque
from typing import Callable, List, Optional

from models.event import EventKind, Severity, SimulationEvent

logger = logging.getLogger(__name__)


class EventLog:
    """Append-only event window with lifetime counters."""

    def __init__(self, maxlen: int, id_factory: Callable[[], str]):
        self._events = deque(maxlen=maxlen)
        self._id_factory = id_factory
        self.counts = Counter()

    def __len__(self) -> int:
        return len(self._events)

    @property
    def maxlen(self) -> int:
        return self._events.maxlen

    def append(
            self,
            kind: EventKind,
            message: str,
            timestamp: float,
            severity: Optional[Severity] = None
    ) -> SimulationEvent:
        event = SimulationEvent(
            id=self._id_factory(),
            kind=kind,
            message=message,
            timestamp=timestamp,
            severity=severity,
        )
        self._events.append(event)
        self.counts[kind] += 1
        logger.debug(f"[{kind.value}] {message}")
        return event

    def recent(self, kind: Optional[EventKind] = None) -> List[SimulationEvent]:
        """Events most-recent-first, optionally filtered by kind."""
        return [e for e in reversed(self._events) if kind is None or e.kind == kind]

    def resize(self, maxlen: int) -> None:
        """Change the window; shrinking keeps the newest entries."""
        if maxlen == self._events.maxlen:
            return
        self._events = deque(self._events, maxlen=maxlen)
