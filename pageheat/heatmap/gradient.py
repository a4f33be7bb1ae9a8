from __future__ import annotations
import logging
import re
from typing import List, Sequence, Tuple

from PIL import ImageColor

from ..utils import clamp
from .config import ColorSpec, GradientStop, cfg

RGB = Tuple[int, int, int]
BLACK: RGB = (0, 0, 0)

_NUMBER_RE = re.compile(r"(\d+\.?\d*)")


def parse_color(color: ColorSpec) -> RGB:
    """Parse "#rgb", "#rrggbb", "rgb(...)"/"rgba(...)" or an RGB triple.

    Functional notation takes the first three numbers, truncated. Anything
    else (named colors, hsl(), malformed hex) resolves to black; this never
    raises.
    """
    if isinstance(color, str):
        text = color.strip().lower()
        if text.startswith("#"):
            try:
                parsed = ImageColor.getrgb(text)
            except ValueError:
                parsed = None
            if parsed is not None:
                return tuple(int(clamp(c, 0, 255)) for c in parsed[:3])
        elif text.startswith("rgb"):
            numbers = _NUMBER_RE.findall(text)
            if len(numbers) >= 3:
                return tuple(int(clamp(int(float(n)), 0, 255)) for n in numbers[:3])
        logging.getLogger(__name__).debug(
            "Unrecognized gradient color %r, using black", color
        )
        return BLACK

    try:
        r, g, b = (int(clamp(int(c), 0, 255)) for c in list(color)[:3])
    except (TypeError, ValueError):
        logging.getLogger(__name__).debug(
            "Unrecognized gradient color %r, using black", color
        )
        return BLACK
    return r, g, b


def _lerp_channel(a: int, b: int, t: float) -> int:
    return int(clamp(int(a + (b - a) * t + 0.5), 0, 255))


def _normalize_stops(stops: Sequence[GradientStop]) -> List[Tuple[float, RGB]]:
    """Clamp positions to [0,1], parse colors and sort ascending by position."""
    normalized = [
        (clamp(float(position), 0.0, 1.0), parse_color(color))
        for position, color in stops
    ]
    normalized.sort(key=lambda stop: stop[0])
    return normalized


class GradientLUT:
    """Immutable 256-entry intensity -> RGB table built from a gradient."""

    __slots__ = ("_colors", "_bands")

    def __init__(self, colors: Sequence[RGB]):
        if len(colors) != cfg.LUT_SIZE:
            raise ValueError(f"LUT needs {cfg.LUT_SIZE} entries, got {len(colors)}")
        self._colors: Tuple[RGB, ...] = tuple(tuple(c) for c in colors)
        self._bands = tuple(
            tuple(color[channel] for color in self._colors) for channel in range(3)
        )

    def __len__(self) -> int:
        return len(self._colors)

    def __getitem__(self, index: int) -> RGB:
        return self._colors[index]

    def __iter__(self):
        return iter(self._colors)

    def __eq__(self, other) -> bool:
        return isinstance(other, GradientLUT) and self._colors == other._colors

    def __hash__(self) -> int:
        return hash(self._colors)

    def band(self, channel: int) -> Tuple[int, ...]:
        """Return the 256 values of one channel (0=R, 1=G, 2=B)."""
        return self._bands[channel]


def build_gradient_lut(stops: Sequence[GradientStop]) -> GradientLUT:
    """Build a 256-entry LUT by linear interpolation between bracketing stops.

    Positions outside the first/last stop clamp to the end colors, and a
    zero-width segment uses the lower stop's color.
    """
    normalized = _normalize_stops(stops)
    if not normalized:
        logging.getLogger(__name__).warning("Empty gradient, LUT will be black")
        return GradientLUT([BLACK] * cfg.LUT_SIZE)
    if len(normalized) == 1:
        return GradientLUT([normalized[0][1]] * cfg.LUT_SIZE)

    last = len(normalized) - 1
    colors: List[RGB] = []
    for i in range(cfg.LUT_SIZE):
        t = i / (cfg.LUT_SIZE - 1)
        j = 0
        while j < last - 1 and t > normalized[j + 1][0]:
            j += 1
        p1, c1 = normalized[j]
        p2, c2 = normalized[j + 1]
        width = p2 - p1
        local = clamp((t - p1) / width, 0.0, 1.0) if width > 1e-6 else 0.0
        colors.append(
            (
                _lerp_channel(c1[0], c2[0], local),
                _lerp_channel(c1[1], c2[1], local),
                _lerp_channel(c1[2], c2[2], local),
            )
        )
    return GradientLUT(colors)
