from __future__ import annotations
import asyncio
import json
import logging
from typing import Any, Optional, Set, Tuple
from zendriver import cdp

from ..heatmap.config import HeatmapOptions, cfg
from ..heatmap.session import HeatmapSession
from ..heatmap.telemetry import PointerRecorder
from .geometry import DocumentSizeUnavailable, evaluate, get_document_size
from .overlay import OVERLAY_ATTR, PageOverlay, spawn

_BUTTON_CSS = """
.hm-toggle-btn {
  position: fixed;
  padding: 10px 14px;
  border: 0;
  border-radius: 10px;
  background: #111;
  color: #fff;
  font: 14px/1 system-ui, Arial, sans-serif;
  cursor: pointer;
  box-shadow: 0 8px 24px rgba(0,0,0,.25);
  user-select: none;
}
.hm-toggle-btn:active { transform: translateY(1px); }
.hm-toggle-bottom-right { right: 16px; bottom: 16px; }
.hm-toggle-bottom-left  { left: 16px; bottom: 16px; }
.hm-toggle-top-right    { right: 16px; top: 16px; }
.hm-toggle-top-left     { left: 16px; top: 16px; }
"""

# Page-side glue: forwards mousemove (page coords) / resize / button clicks
# through the CDP binding and exposes window.__pageheat for label + teardown.
_INSTALL_JS = """(() => {
  const cfg = %(cfg)s;
  const install = () => {
    if (window.__pageheat) return;
    const emit = (msg) => {
      try { window[cfg.binding](JSON.stringify(msg)); } catch (e) {}
    };
    const onMove = (e) => emit({type: 'move', x: e.pageX, y: e.pageY});
    const onResize = () => emit({type: 'resize'});
    document.addEventListener('mousemove', onMove, {passive: true});
    window.addEventListener('resize', onResize);
    let btn = null, style = null;
    if (cfg.autoButton) {
      style = document.createElement('style');
      style.textContent = cfg.css;
      document.head.appendChild(style);
      btn = document.createElement('button');
      btn.type = 'button';
      btn.className = 'hm-toggle-btn hm-toggle-' + cfg.position;
      btn.style.zIndex = String(cfg.buttonZ);
      btn.textContent = cfg.label;
      btn.addEventListener('click', () => emit({type: 'toggle'}));
      document.body.appendChild(btn);
    }
    window.__pageheat = {
      setLabel(text) { if (btn) btn.textContent = text; },
      detach() {
        document.removeEventListener('mousemove', onMove);
        window.removeEventListener('resize', onResize);
        if (btn) btn.remove();
        if (style) style.remove();
        document.querySelectorAll('[' + cfg.overlayAttr + ']')
          .forEach((el) => el.remove());
        delete window.__pageheat;
      }
    };
  };
  if (document.readyState === 'loading') {
    document.addEventListener('DOMContentLoaded', install);
  } else {
    install();
  }
  return true;
})()"""

_SET_LABEL_JS = (
    "(() => { if (window.__pageheat) window.__pageheat.setLabel(%s); return true; })()"
)
_DETACH_JS = "(() => { if (window.__pageheat) window.__pageheat.detach(); return true; })()"


def build_install_script(
    options: HeatmapOptions, *, label: Optional[str] = None
) -> str:
    """Render the page-side listener/button script for the given options."""
    page_cfg = {
        "binding": cfg.BINDING_NAME,
        "autoButton": bool(options.auto_button),
        "position": options.button_position,
        "buttonZ": int(options.button_z),
        "label": label if label is not None else options.button_text_show,
        "css": _BUTTON_CSS,
        "overlayAttr": OVERLAY_ATTR,
    }
    return _INSTALL_JS % {"cfg": json.dumps(page_cfg)}


def parse_binding_payload(payload: str) -> Optional[dict]:
    """Decode one binding message; None for anything malformed."""
    try:
        message = json.loads(payload)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, dict) or not isinstance(message.get("type"), str):
        return None
    if message["type"] == "move":
        try:
            message["x"] = float(message["x"])
            message["y"] = float(message["y"])
        except (KeyError, TypeError, ValueError):
            return None
    return message


class PageHeatmapTracker:
    """Heatmap session bound to one zendriver page/tab."""

    def __init__(
        self,
        page,
        options: Optional[HeatmapOptions] = None,
        *,
        recorder: Optional[PointerRecorder] = None,
    ):
        """Initialize with a zendriver page/tab (kept as self.page)."""
        self.page = page
        self.options = options or HeatmapOptions()
        self.recorder = recorder if recorder is not None else PointerRecorder()
        self.document_size: Tuple[int, int] = (0, 0)
        self.installed = False
        self._script_id: Any = None
        self._overlay: Optional[PageOverlay] = None
        self._tasks: Set[asyncio.Task] = set()
        self.session = HeatmapSession(
            self.options,
            size_provider=lambda: self.document_size,
            surface_factory=self._new_overlay,
        )
        self.session.add_listener(self._on_session_signal)

    async def install(self) -> "PageHeatmapTracker":
        """Hook the page up and start tracking (overlay hidden).

        The document size is read before anything is registered; if a later
        step fails, the binding, handler and script are removed again so a
        retry starts clean.
        """
        if self.installed:
            return self
        logger = logging.getLogger(__name__)
        await self.page.send(cdp.runtime.enable())
        document_size = await get_document_size(self.page)

        await self.page.send(cdp.runtime.add_binding(name=cfg.BINDING_NAME))
        self.page.add_handler(cdp.runtime.BindingCalled, self._on_binding)
        try:
            script = build_install_script(self.options)
            try:
                self._script_id = await self.page.send(
                    cdp.page.add_script_to_evaluate_on_new_document(source=script)
                )
            except Exception:
                logger.warning(
                    "Could not register heatmap script for new documents",
                    exc_info=True,
                )
            await evaluate(self.page, script)
        except BaseException:
            await self._unregister()
            raise

        self.document_size = document_size
        self.installed = True
        self.session.start()
        logger.info(
            "Heatmap tracker installed (document %dx%d)", *self.document_size
        )
        return self

    async def uninstall(self) -> None:
        """Stop tracking and remove listeners, button and overlay from the page."""
        if not self.installed:
            return
        self.installed = False
        self.session.stop()
        await self._unregister()
        await evaluate(self.page, _DETACH_JS)
        await self.flush()

    async def _unregister(self) -> None:
        """Drop the handler, the new-document script and the binding."""
        self.page.remove_handlers(cdp.runtime.BindingCalled, self._on_binding)
        try:
            if self._script_id is not None:
                await self.page.send(
                    cdp.page.remove_script_to_evaluate_on_new_document(self._script_id)
                )
            await self.page.send(cdp.runtime.remove_binding(name=cfg.BINDING_NAME))
        except Exception:
            logging.getLogger(__name__).warning(
                "Could not remove heatmap binding from page", exc_info=True
            )
        finally:
            self._script_id = None

    async def flush(self) -> None:
        """Wait for pending label updates and overlay pushes."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._overlay is not None:
            await self._overlay.flush()

    def _new_overlay(self) -> PageOverlay:
        self._overlay = PageOverlay(self.page, z_index=self.options.z_index)
        return self._overlay

    # --- delegations ---

    def start(self) -> None:
        self.session.start()

    def stop(self) -> None:
        self.session.stop()

    def show(self) -> None:
        self.session.show()

    def hide(self) -> None:
        self.session.hide()

    def toggle(self) -> None:
        self.session.toggle()

    def clear(self) -> None:
        self.session.clear()

    async def refresh_document_size(self) -> Tuple[int, int]:
        self.document_size = await get_document_size(self.page)
        self.session.handle_resize()
        return self.document_size

    # --- page events ---

    async def _on_binding(self, event) -> None:
        if getattr(event, "name", None) != cfg.BINDING_NAME:
            return
        message = parse_binding_payload(getattr(event, "payload", None))
        if message is None:
            logging.getLogger(__name__).debug(
                "Ignoring malformed heatmap message %r", getattr(event, "payload", None)
            )
            return
        await self.handle_message(message)

    async def handle_message(self, message: dict) -> None:
        kind = message["type"]
        if kind == "move":
            if self.session.handle_move(message["x"], message["y"]):
                self.recorder.log_move(message["x"], message["y"])
        elif kind == "resize":
            if not self.session.enabled:
                return
            try:
                await self.refresh_document_size()
            except DocumentSizeUnavailable:
                logging.getLogger(__name__).warning(
                    "Resize ignored: document size unavailable", exc_info=True
                )
        elif kind == "toggle":
            self.session.toggle()

    def _on_session_signal(self, signal: str, session: HeatmapSession) -> None:
        if signal not in ("shown", "hidden") or not self.installed:
            return
        label = (
            self.options.button_text_hide
            if session.visible
            else self.options.button_text_show
        )
        spawn(
            self._tasks,
            evaluate(self.page, _SET_LABEL_JS % json.dumps(label)),
            label="toggle label update",
        )
