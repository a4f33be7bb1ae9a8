from .config import cfg, HeatmapOptions
from .gradient import GradientLUT, build_gradient_lut, parse_color
from .density import DensityField
from .colorize import colorize
from .scheduler import RedrawScheduler
from .session import HeatmapSession, OverlaySurface
from .telemetry import PointerEvent, PointerRecorder, replay, set_snapshot_callback
from .render import save_heatmap_png

__all__ = [
    "cfg",
    "HeatmapOptions",
    "GradientLUT",
    "build_gradient_lut",
    "parse_color",
    "DensityField",
    "colorize",
    "RedrawScheduler",
    "HeatmapSession",
    "OverlaySurface",
    "PointerEvent",
    "PointerRecorder",
    "replay",
    "set_snapshot_callback",
    "save_heatmap_png",
]
