"""
Structured build events and timing aggregation.

Workers report per-label progress into an EventSink held by the build
context. The sink has its own lock, separate from the result store, so
diagnostic output never blocks result accumulation. Timings are summarised
after the workers join.
"""

import logging
import threading
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventKind(Enum):
    STARTED = "started"
    FINISHED = "finished"
    EMPTY = "empty"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class BuildEvent:
    """One progress/timing record for a label."""
    kind: EventKind
    label: int
    elapsed: float = 0.0  # seconds
    n_vertices: int = 0
    n_faces: int = 0
    message: str = ""
    thread: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["kind"] = self.kind.value
        return d


class EventSink:
    """
    Ordered, lock-guarded event log.

    Each emit is logged immediately (one complete line per event, no
    interleaving) and kept for aggregation after the build.
    """

    def __init__(self, log: Optional[logging.Logger] = None):
        self._lock = threading.Lock()
        self._events: List[BuildEvent] = []
        self._log = log or logger

    def emit(self, event: BuildEvent) -> None:
        if not event.thread:
            event.thread = threading.current_thread().name
        with self._lock:
            self._events.append(event)
            self._log_event(event)

    def _log_event(self, event: BuildEvent) -> None:
        if event.kind is EventKind.STARTED:
            self._log.debug(f"[{event.thread}] Processing label = {event.label}")
        elif event.kind is EventKind.FINISHED:
            self._log.info(
                f"[{event.thread}] Label {event.label} finished in {event.elapsed:.3f} s "
                f"({event.n_vertices} verts, {event.n_faces} tris)"
            )
        elif event.kind is EventKind.EMPTY:
            self._log.info(f"[{event.thread}] Label {event.label} produced empty surface, skip.")
        elif event.kind is EventKind.FAILED:
            self._log.warning(f"[{event.thread}] Label {event.label} failed: {event.message}")
        else:
            self._log.debug(f"Label {event.label} cancelled before processing")

    @property
    def events(self) -> List[BuildEvent]:
        with self._lock:
            return list(self._events)

    def of_kind(self, kind: EventKind) -> List[BuildEvent]:
        return [e for e in self.events if e.kind is kind]


@dataclass
class TimingSummary:
    """Aggregate per-label timings, computed after the join barrier."""
    n_labels: int = 0
    wall_time: float = 0.0
    total_label_time: float = 0.0
    mean_label_time: float = 0.0
    max_label_time: float = 0.0
    slowest_label: Optional[int] = None
    per_label: Dict[int, float] = field(default_factory=dict)

    @classmethod
    def from_events(cls, events: List[BuildEvent], wall_time: float) -> "TimingSummary":
        done = [e for e in events if e.kind in (EventKind.FINISHED, EventKind.EMPTY, EventKind.FAILED)]
        per_label = {e.label: e.elapsed for e in done}
        if not per_label:
            return cls(wall_time=wall_time)

        slowest = max(per_label, key=per_label.get)
        total = sum(per_label.values())
        return cls(
            n_labels=len(per_label),
            wall_time=wall_time,
            total_label_time=total,
            mean_label_time=total / len(per_label),
            max_label_time=per_label[slowest],
            slowest_label=slowest,
            per_label=per_label
        )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["per_label"] = {str(k): v for k, v in self.per_label.items()}
        return d
