from __future__ import annotations
from .heatmap import (
    HeatmapOptions,
    HeatmapSession,
    build_gradient_lut,
    colorize,
    save_heatmap_png,
    set_snapshot_callback,
)
from .browser import PageHeatmapTracker, get_document_size

__all__ = [
    "HeatmapOptions",
    "HeatmapSession",
    "build_gradient_lut",
    "colorize",
    "save_heatmap_png",
    "set_snapshot_callback",
    "PageHeatmapTracker",
    "get_document_size",
]
