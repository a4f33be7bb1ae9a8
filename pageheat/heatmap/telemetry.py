from __future__ import annotations
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional
from pathlib import Path as FSPath
import time
import logging

SnapshotCallback = Optional[Callable[[FSPath], Awaitable[None]]]
_SNAPSHOT_CALLBACK: SnapshotCallback = None


def set_snapshot_callback(cb: SnapshotCallback) -> None:
    """Register an async callback invoked whenever a heatmap snapshot is saved."""
    global _SNAPSHOT_CALLBACK
    _SNAPSHOT_CALLBACK = cb
    logging.getLogger(__name__).info(
        "Heatmap snapshot callback %s", "registered" if cb else "cleared"
    )


def get_snapshot_callback() -> SnapshotCallback:
    return _SNAPSHOT_CALLBACK


@dataclass(frozen=True)
class PointerEvent:
    """One pointer event in document coordinates (scroll offset included).

    Attributes:
        x (float): Document X in CSS pixels.
        y (float): Document Y in CSS pixels.
        t (float): Seconds since the recorder started (monotonic).
        kind (str): Event category, currently always "move".
    """

    x: float
    y: float
    t: float = 0.0
    kind: str = "move"


@dataclass
class PointerRecorder:
    """Keeps the pointer events received during a session, for replay."""

    events: List[PointerEvent] = field(default_factory=list)
    start_ts: float = field(default_factory=lambda: time.perf_counter())

    def _now(self) -> float:
        return time.perf_counter() - self.start_ts

    def log_move(self, x: float, y: float) -> PointerEvent:
        """Append a 'move' event and return it."""
        event = PointerEvent(float(x), float(y), self._now(), "move")
        self.events.append(event)
        return event

    def reset(self) -> None:
        """Clear all recorded events and reset the time origin to now."""
        self.events.clear()
        self.start_ts = time.perf_counter()


def replay(session, events: Iterable[PointerEvent]) -> int:
    """Feed recorded events into a session; returns how many were applied."""
    applied = 0
    for event in events:
        if event.kind == "move" and session.handle_event(event):
            applied += 1
    return applied
