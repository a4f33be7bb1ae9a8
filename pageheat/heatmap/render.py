from __future__ import annotations
import asyncio
import logging
from pathlib import Path as FSPath
from typing import Optional, Tuple

from PIL import Image, ImageDraw

from .colorize import colorize
from .gradient import GradientLUT
from . import telemetry


def compose_snapshot(
    density: Image.Image,
    lut: GradientLUT,
    *,
    background_color: Optional[Tuple[int, int, int]] = None,
    annotate: bool = False,
) -> Image.Image:
    """Colorize a density image, optionally over an opaque background."""
    overlay = colorize(density, lut)
    if background_color is None:
        image = overlay
    else:
        image = Image.new("RGBA", overlay.size, tuple(background_color) + (255,))
        image.alpha_composite(overlay)

    if annotate and image.width > 0 and image.height > 0:
        peak = density.getextrema()[1]
        ImageDraw.Draw(image).text(
            (8, 8),
            f"{image.width}x{image.height} | peak density {peak}/255",
            fill=(220, 220, 220, 255),
        )
    return image


async def save_heatmap_png(
    session,
    outfile: str = "heatmap.png",
    *,
    background_color: Optional[Tuple[int, int, int]] = None,
    annotate: bool = False,
) -> str:
    """
    Write the session's heatmap to a PNG, whether or not the overlay is shown.
    Rendering is offloaded to a worker thread to avoid blocking the event loop;
    the field is copied first so deposits arriving meanwhile don't race it.
    """
    density = session.field.image.copy()
    lut = session.lut

    def _render() -> str:
        image = compose_snapshot(
            density, lut, background_color=background_color, annotate=annotate
        )
        image.save(outfile, format="PNG", optimize=True)
        return outfile

    outfile_path = await asyncio.to_thread(_render)

    cb = telemetry.get_snapshot_callback()
    if cb is not None:
        try:
            asyncio.create_task(cb(FSPath(outfile_path)))
        except Exception:
            logging.getLogger(__name__).debug(
                "Failed to dispatch snapshot callback", exc_info=True
            )
    else:
        logging.getLogger(__name__).debug(
            "Heatmap saved to %s but no snapshot callback is registered",
            outfile_path,
        )

    return outfile_path
