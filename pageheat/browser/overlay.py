from __future__ import annotations
import asyncio
import base64
import io
import itertools
import json
import logging
from typing import Optional, Set

from PIL import Image

from ..heatmap.config import cfg
from .geometry import evaluate

OVERLAY_ID = "__pageheat_overlay"
OVERLAY_ATTR = "data-pageheat-overlay"

_overlay_ids = itertools.count(1)

_PRESENT_JS = """(() => {
  let el = document.getElementById(%(id)s);
  if (!el) {
    el = document.createElement('img');
    el.id = %(id)s;
    el.setAttribute(%(attr)s, '');
    el.alt = '';
    const s = el.style;
    s.position = 'absolute';
    s.top = '0';
    s.left = '0';
    s.pointerEvents = 'none';
    s.zIndex = %(z)s;
    document.body.appendChild(el);
  }
  el.style.width = %(w)d + 'px';
  el.style.height = %(h)d + 'px';
  el.src = %(src)s;
  return true;
})()"""

_REMOVE_JS = """(() => {
  const el = document.getElementById(%(id)s);
  if (el) el.remove();
  return true;
})()"""


def encode_png_data_url(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def spawn(tasks: Set[asyncio.Task], coro, *, label: str) -> Optional[asyncio.Task]:
    """Start a background CDP task, keeping a reference and logging failures."""
    logger = logging.getLogger(__name__)
    try:
        task = asyncio.get_running_loop().create_task(coro)
    except RuntimeError:
        coro.close()
        logger.warning("No running event loop; skipped %s", label)
        return None

    def _done(t: asyncio.Task) -> None:
        tasks.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.warning("%s failed (skipped)", label, exc_info=exc)

    tasks.add(task)
    task.add_done_callback(_done)
    return task


class PageOverlay:
    """Shows colorized frames as a full-document, click-through <img> on a page.

    Frames presented while a push is in flight replace each other; only the
    latest one is sent once the page is ready again.
    """

    def __init__(self, page, *, z_index: int = cfg.Z_INDEX):
        self.page = page
        self.z_index = int(z_index)
        # One element per overlay, so a late removal never hits a newer one.
        self.element_id = f"{OVERLAY_ID}_{next(_overlay_ids)}"
        self.detached = False
        self.pushed_frames = 0
        self._latest: Optional[Image.Image] = None
        self._pusher: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    def present(self, image: Image.Image) -> None:
        if self.detached:
            return
        self._latest = image
        if self._pusher is None or self._pusher.done():
            self._pusher = spawn(self._tasks, self._push_latest(), label="overlay push")

    def detach(self) -> None:
        if self.detached:
            return
        self.detached = True
        self._latest = None
        spawn(self._tasks, self._remove(), label="overlay removal")

    async def flush(self) -> None:
        """Wait for in-flight pushes (and removal) to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _push_latest(self) -> None:
        while self._latest is not None and not self.detached:
            image, self._latest = self._latest, None
            src = await asyncio.to_thread(encode_png_data_url, image)
            if self.detached:
                return
            await evaluate(
                self.page,
                _PRESENT_JS
                % {
                    "id": json.dumps(self.element_id),
                    "attr": json.dumps(OVERLAY_ATTR),
                    "z": json.dumps(str(self.z_index)),
                    "w": image.width,
                    "h": image.height,
                    "src": json.dumps(src),
                },
            )
            self.pushed_frames += 1

    async def _remove(self) -> None:
        if self._pusher is not None and not self._pusher.done():
            await asyncio.gather(self._pusher, return_exceptions=True)
        await evaluate(self.page, _REMOVE_JS % {"id": json.dumps(self.element_id)})
