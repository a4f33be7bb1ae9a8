from __future__ import annotations
from typing import List

from PIL import Image

from .config import cfg
from .gradient import GradientLUT


def alpha_table(floor: int = cfg.ALPHA_FLOOR) -> List[int]:
    """Alpha per density: 0 stays transparent, otherwise min(255, floor + v)."""
    return [0] + [min(255, floor + v) for v in range(1, 256)]


def colorize(field: Image.Image, lut: GradientLUT) -> Image.Image:
    """Map an "L" density image through the LUT into a fresh RGBA image.

    Zero density yields (0, 0, 0, 0). Every call recomputes the whole field.
    """
    if field.mode != "L":
        field = field.convert("L")
    if field.width == 0 or field.height == 0:
        return Image.new("RGBA", field.size, (0, 0, 0, 0))

    bands = []
    for channel in range(3):
        table = list(lut.band(channel))
        table[0] = 0
        bands.append(field.point(table))
    bands.append(field.point(alpha_table()))
    return Image.merge("RGBA", bands)
