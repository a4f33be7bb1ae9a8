from .geometry import get_document_size, DocumentSizeUnavailable
from .overlay import PageOverlay
from .tracker import PageHeatmapTracker

__all__ = [
    "get_document_size",
    "DocumentSizeUnavailable",
    "PageOverlay",
    "PageHeatmapTracker",
]
