from __future__ import annotations
import logging
import time
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from PIL import Image

from .colorize import colorize
from .config import GradientStop, HeatmapOptions
from .density import DensityField
from .gradient import GradientLUT, build_gradient_lut
from .scheduler import Clock, Defer, RedrawScheduler, loop_defer
from .telemetry import PointerEvent

SizeProvider = Callable[[], Tuple[int, int]]
SessionListener = Callable[[str, "HeatmapSession"], None]


class OverlaySurface(Protocol):
    """Display surface receiving each colorized frame."""

    def present(self, image: Image.Image) -> None: ...

    def detach(self) -> None: ...


class HeatmapSession:
    """One heatmap: density field, LUT, redraw scheduler and visibility state.

    Tracking (enabled) and display (visible) are independent, except that a
    stopped session is never visible: stop() hides, show() starts.
    """

    def __init__(
        self,
        options: Optional[HeatmapOptions] = None,
        *,
        size_provider: Optional[SizeProvider] = None,
        surface_factory: Optional[Callable[[], OverlaySurface]] = None,
        clock: Clock = time.perf_counter,
        defer: Defer = loop_defer,
    ):
        self.options = options or HeatmapOptions()
        self._size_provider = size_provider
        self._surface_factory = surface_factory
        self._listeners: List[SessionListener] = []

        self.enabled = False
        self.visible = False
        self.surface: Optional[OverlaySurface] = None
        self.image: Optional[Image.Image] = None

        self.field = DensityField(
            radius=self.options.radius, point_alpha=self.options.point_alpha
        )
        self.lut: GradientLUT = build_gradient_lut(self.options.gradient)
        self.scheduler = RedrawScheduler(
            self._colorize_now,
            interval_s=self.options.colorize_interval_s,
            frame_interval_s=self.options.frame_interval_s,
            clock=clock,
            defer=defer,
        )

    # --- listeners ---

    def add_listener(self, listener: SessionListener) -> None:
        """Subscribe to "started" / "stopped" / "shown" / "hidden"."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, signal: str) -> None:
        logging.getLogger(__name__).info("Heatmap session %s", signal)
        for listener in list(self._listeners):
            listener(signal, self)

    # --- lifecycle ---

    def start(self) -> None:
        if self.enabled:
            return
        self.enabled = True
        self._ensure_field()
        self._emit("started")

    def stop(self) -> None:
        if not self.enabled:
            return
        self.enabled = False
        self.hide()
        self._emit("stopped")

    def show(self) -> None:
        if self.visible:
            return
        if not self.enabled:
            self.start()
        self.visible = True
        self._ensure_field()
        if self._surface_factory is not None:
            self.surface = self._surface_factory()
        self.recolor()
        self._emit("shown")

    def hide(self) -> None:
        if not self.visible:
            return
        self.visible = False
        if self.surface is not None:
            self.surface.detach()
        self.surface = None
        self.image = None
        self._emit("hidden")

    def toggle(self) -> None:
        if self.visible:
            self.hide()
        else:
            self.show()

    def clear(self) -> None:
        """Reset accumulated density; a visible overlay is blanked at once."""
        self.field.clear()
        if self.visible:
            self.image = Image.new("RGBA", self.field.size, (0, 0, 0, 0))
            if self.surface is not None:
                self.surface.present(self.image)

    # --- host events ---

    def handle_move(self, x: float, y: float) -> bool:
        """Deposit at document coordinates (x, y); False when not tracking."""
        if not self.enabled:
            return False
        self.field.deposit(x, y)
        if self.visible:
            self.scheduler.request()
        return True

    def handle_event(self, event: PointerEvent) -> bool:
        return self.handle_move(event.x, event.y)

    def handle_resize(self) -> None:
        """Re-read the document size; a visible overlay is recolored at once."""
        if not self.enabled:
            return
        self._ensure_field()
        if self.visible:
            self.recolor()

    def resize(self, width: int, height: int) -> None:
        """Resize the field explicitly (for hosts without a size provider)."""
        if self.field.resize(width, height) and self.visible:
            self.recolor()

    # --- colorization ---

    def set_gradient(self, gradient: Sequence[GradientStop]) -> None:
        self.options.gradient = list(gradient)
        self.lut = build_gradient_lut(self.options.gradient)
        if self.visible:
            self.recolor()

    def recolor(self) -> None:
        """Full recolor, bypassing the throttle."""
        self.scheduler.force()

    def _colorize_now(self) -> None:
        # Deferred redraws may land after hide()/stop().
        if not self.visible:
            return
        self.image = colorize(self.field.image, self.lut)
        if self.surface is not None:
            self.surface.present(self.image)

    def _ensure_field(self) -> None:
        if self._size_provider is None:
            return
        width, height = self._size_provider()
        if self.field.resize(width, height):
            logging.getLogger(__name__).debug(
                "Density field resized to %dx%d", self.field.width, self.field.height
            )
