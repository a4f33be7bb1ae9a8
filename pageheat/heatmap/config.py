from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import List, Sequence, Tuple, Union

from ..utils import clamp

ColorSpec = Union[str, Sequence[int]]
GradientStop = Tuple[float, ColorSpec]


class cfg:
    """Heatmap defaults (accumulation, colorization, presentation)"""

    # --- Accumulation ---
    RADIUS = 24  # influence radius of each deposit
    POINT_ALPHA = 0.07  # opacity per deposit (higher = more "ink")

    # --- Colorization ---
    GRADIENT: Tuple[GradientStop, ...] = (
        (0.00, "#0000ff"),  # blue
        (0.25, "#00ffff"),  # cyan
        (0.50, "#00ff00"),  # green
        (0.75, "#ffff00"),  # yellow
        (1.00, "#ff0000"),  # red
    )
    ALPHA_FLOOR = 40  # faint density stays visible
    LUT_SIZE = 256

    # --- Redraw throttling ---
    COLORIZE_INTERVAL_MS = 80
    FRAME_INTERVAL_MS = 16  # one display refresh at ~60 Hz

    # --- Presentation (overlay + toggle button) ---
    Z_INDEX = 9999
    BUTTON_Z = 999999
    BUTTON_POSITION = "bottom-right"
    BUTTON_POSITIONS = ("bottom-right", "bottom-left", "top-right", "top-left")
    BUTTON_TEXT_SHOW = "Show heatmap"
    BUTTON_TEXT_HIDE = "Hide heatmap"
    AUTO_BUTTON = True

    # --- Browser bridge ---
    BINDING_NAME = "__pageheatEmit"
    CDP_SEND_TIMEOUT_S = 2.0


@dataclass
class HeatmapOptions:
    """Per-session options. Numeric values are clamped into their valid range."""

    radius: int = cfg.RADIUS
    point_alpha: float = cfg.POINT_ALPHA
    gradient: List[GradientStop] = field(default_factory=lambda: list(cfg.GRADIENT))
    colorize_interval_ms: float = cfg.COLORIZE_INTERVAL_MS
    frame_interval_ms: float = cfg.FRAME_INTERVAL_MS
    z_index: int = cfg.Z_INDEX
    button_z: int = cfg.BUTTON_Z
    button_position: str = cfg.BUTTON_POSITION
    button_text_show: str = cfg.BUTTON_TEXT_SHOW
    button_text_hide: str = cfg.BUTTON_TEXT_HIDE
    auto_button: bool = cfg.AUTO_BUTTON

    def __post_init__(self) -> None:
        self.radius = max(1, int(round(float(self.radius))))
        self.point_alpha = clamp(float(self.point_alpha), 0.0, 1.0)
        self.colorize_interval_ms = max(0.0, float(self.colorize_interval_ms))
        self.frame_interval_ms = max(0.0, float(self.frame_interval_ms))
        self.gradient = list(self.gradient)
        if self.button_position not in cfg.BUTTON_POSITIONS:
            self.button_position = cfg.BUTTON_POSITION

    @property
    def colorize_interval_s(self) -> float:
        return self.colorize_interval_ms / 1000.0

    @property
    def frame_interval_s(self) -> float:
        return self.frame_interval_ms / 1000.0

    def replace(self, **overrides) -> "HeatmapOptions":
        """Return a copy with the given fields overridden (and re-validated)."""
        return replace(self, **overrides)
