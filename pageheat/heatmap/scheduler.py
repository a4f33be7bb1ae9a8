from __future__ import annotations
import asyncio
import logging
import time
from typing import Any, Callable, Optional

from .config import cfg

Clock = Callable[[], float]
Defer = Callable[[float, Callable[[], None]], Any]


def loop_defer(
    delay_s: float, callback: Callable[[], None]
) -> Optional[asyncio.TimerHandle]:
    """Run callback on the running asyncio loop after delay_s.

    Returns None when no loop is running so the caller can serve the work
    synchronously instead.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.call_later(max(0.0, delay_s), callback)


class RedrawScheduler:
    """Throttle redraws to one per interval without dropping the last request.

    Two states: idle (no handle) and pending (one deferred redraw queued).
    Requests while pending coalesce into the queued redraw. A pending redraw
    is never cancelled; forced redraws simply run alongside it.
    """

    def __init__(
        self,
        redraw: Callable[[], None],
        *,
        interval_s: float = cfg.COLORIZE_INTERVAL_MS / 1000.0,
        frame_interval_s: float = cfg.FRAME_INTERVAL_MS / 1000.0,
        clock: Clock = time.perf_counter,
        defer: Defer = loop_defer,
    ):
        self._redraw = redraw
        self.interval_s = max(0.0, float(interval_s))
        self.frame_interval_s = max(0.0, float(frame_interval_s))
        self._clock = clock
        self._defer = defer
        self._pending: Any = None
        self.last_redraw: Optional[float] = None
        self.redraw_count = 0

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def request(self) -> None:
        """Ask for a redraw; runs now if the interval has elapsed, else defers."""
        if self._pending is not None:
            return
        now = self._clock()
        if self.last_redraw is None or now - self.last_redraw >= self.interval_s:
            self._run(now)
            return

        remaining = self.interval_s - (now - self.last_redraw)
        delay = max(self.frame_interval_s, remaining)
        handle = self._defer(delay, self._fire)
        if handle is None:
            logging.getLogger(__name__).debug(
                "No frame scheduler available; redrawing synchronously"
            )
            self._run(now)
            return
        self._pending = handle

    def force(self) -> None:
        """Redraw synchronously, bypassing the throttle."""
        self._run(self._clock())

    def _fire(self) -> None:
        self._pending = None
        self._run(self._clock())

    def _run(self, now: float) -> None:
        self.last_redraw = now
        self.redraw_count += 1
        self._redraw()
