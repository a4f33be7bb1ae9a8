from __future__ import annotations
import math
from functools import lru_cache
from typing import Tuple

from PIL import Image, ImageChops

from .config import cfg


@lru_cache(maxsize=16)
def falloff_stamp(radius: int, point_alpha: float) -> Image.Image:
    """Square "L" stamp of side 2*radius+1 with a linear radial falloff.

    Each pixel holds round(255 * point_alpha * (1 - d / radius)) for d < radius
    and 0 elsewhere, d being the distance to the stamp centre.
    """
    radius = max(1, int(radius))
    peak = 255.0 * float(point_alpha)
    size = 2 * radius + 1
    values = []
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            distance = math.hypot(dx, dy)
            if distance >= radius:
                values.append(0)
            else:
                values.append(min(255, int(peak * (1.0 - distance / radius) + 0.5)))
    stamp = Image.new("L", (size, size), 0)
    stamp.putdata(values)
    return stamp


class DensityField:
    """Document-sized 8-bit intensity field fed by radial deposits.

    Samples saturate at 255. The field grows and shrinks with the document,
    keeping existing samples anchored at (0, 0).
    """

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        *,
        radius: int = cfg.RADIUS,
        point_alpha: float = cfg.POINT_ALPHA,
    ):
        self.radius = max(1, int(radius))
        self.point_alpha = float(point_alpha)
        self._image = Image.new("L", (max(0, int(width)), max(0, int(height))), 0)

    @property
    def image(self) -> Image.Image:
        return self._image

    @property
    def size(self) -> Tuple[int, int]:
        return self._image.size

    @property
    def width(self) -> int:
        return self._image.width

    @property
    def height(self) -> int:
        return self._image.height

    def deposit(self, x: float, y: float) -> None:
        """Add one radial falloff stamp centred at (x, y), clipped to the field."""
        stamp = falloff_stamp(self.radius, self.point_alpha)
        left = int(math.floor(x + 0.5)) - self.radius
        top = int(math.floor(y + 0.5)) - self.radius
        x0 = max(0, left)
        y0 = max(0, top)
        x1 = min(self.width, left + stamp.width)
        y1 = min(self.height, top + stamp.height)
        if x0 >= x1 or y0 >= y1:
            return

        region = self._image.crop((x0, y0, x1, y1))
        stamp_part = stamp.crop((x0 - left, y0 - top, x1 - left, y1 - top))
        self._image.paste(ImageChops.add(region, stamp_part), (x0, y0))

    def resize(self, width: int, height: int) -> bool:
        """Reallocate to (width, height); returns False when the size is unchanged."""
        width, height = max(0, int(width)), max(0, int(height))
        if (width, height) == self.size:
            return False
        resized = Image.new("L", (width, height), 0)
        if 0 not in resized.size and 0 not in self._image.size:
            resized.paste(self._image, (0, 0))
        self._image = resized
        return True

    def clear(self) -> None:
        self._image = Image.new("L", self.size, 0)

    def value_at(self, x: int, y: int) -> int:
        """Density at (x, y); 0 outside the field."""
        if 0 <= x < self.width and 0 <= y < self.height:
            return int(self._image.getpixel((x, y)))
        return 0
