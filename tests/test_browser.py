"""zendriver adapter against a fake page that answers CDP commands."""

import asyncio
import json

import pytest
from zendriver import cdp

from pageheat.browser.geometry import (
    DOCUMENT_SIZE_JS,
    DocumentSizeUnavailable,
    get_document_size,
)
from pageheat.browser.overlay import OVERLAY_ID, PageOverlay
from pageheat.browser.tracker import (
    PageHeatmapTracker,
    build_install_script,
    parse_binding_payload,
)
from pageheat.heatmap.config import HeatmapOptions, cfg
from pageheat.heatmap.session import HeatmapSession
from PIL import Image


class FakePage:
    def __init__(self, width=1024, height=3000):
        self.document_size = {"w": width, "h": height}
        self.requests = []
        self.handlers = []
        self.fail_evaluate = False
        self.fail_script = False
        self.delay = 0.0

    async def send(self, command):
        request = next(command)
        if self.delay:
            await asyncio.sleep(self.delay)
        self.requests.append(request)
        method = request["method"]
        params = request.get("params", {})
        if method == "Runtime.evaluate":
            if self.fail_evaluate:
                raise RuntimeError("target closed")
            if params["expression"] == DOCUMENT_SIZE_JS:
                return ({"value": dict(self.document_size)}, None)
            if self.fail_script:
                raise RuntimeError("script evaluation failed")
            return ({"value": True}, None)
        if method == "Page.addScriptToEvaluateOnNewDocument":
            return cdp.page.ScriptIdentifier("script-1")
        return None

    def add_handler(self, event_type, handler):
        self.handlers.append((event_type, handler))

    def remove_handlers(self, event_type=None, handler=None):
        self.handlers = [h for h in self.handlers if h != (event_type, handler)]

    def methods(self):
        return [r["method"] for r in self.requests]

    def expressions(self):
        return [
            r["params"]["expression"]
            for r in self.requests
            if r["method"] == "Runtime.evaluate"
        ]


class BindingEvent:
    def __init__(self, payload, name=cfg.BINDING_NAME):
        self.name = name
        self.payload = payload


def test_get_document_size():
    page = FakePage(1280, 4200)

    assert asyncio.run(get_document_size(page)) == (1280, 4200)


def test_get_document_size_clamps_negative():
    page = FakePage(-3, 10)

    assert asyncio.run(get_document_size(page)) == (0, 10)


def test_get_document_size_failure_is_reported():
    page = FakePage()
    page.fail_evaluate = True

    with pytest.raises(DocumentSizeUnavailable):
        asyncio.run(get_document_size(page))


def test_parse_binding_payload():
    assert parse_binding_payload('{"type": "move", "x": 3, "y": "4.5"}') == {
        "type": "move",
        "x": 3.0,
        "y": 4.5,
    }
    assert parse_binding_payload('{"type": "toggle"}') == {"type": "toggle"}
    for bad in ("", "nope", "[]", '{"x": 1}', '{"type": "move", "x": "a", "y": 1}', None):
        assert parse_binding_payload(bad) is None


def test_install_script_carries_options():
    options = HeatmapOptions(button_position="top-left", auto_button=False)
    script = build_install_script(options)

    assert '"position": "top-left"' in script
    assert '"autoButton": false' in script
    assert cfg.BINDING_NAME in script


def test_overlay_pushes_latest_frame_and_detaches():
    page = FakePage()

    async def main():
        overlay = PageOverlay(page, z_index=42)
        for shade in (10, 20, 30):
            overlay.present(Image.new("RGBA", (8, 4), (shade, 0, 0, 255)))
        await overlay.flush()
        pushes = overlay.pushed_frames
        overlay.detach()
        overlay.present(Image.new("RGBA", (8, 4)))
        await overlay.flush()
        return pushes, overlay.pushed_frames

    before, after = asyncio.run(main())

    assert 1 <= before <= 2, "frames presented during a push are coalesced"
    assert after == before
    pushes = [e for e in page.expressions() if "data:image/png;base64," in e]
    assert len(pushes) == before
    assert "'none'" in pushes[0] and OVERLAY_ID in pushes[0]
    assert "el.remove()" in page.expressions()[-1]


def test_tracker_install_move_toggle_resize_uninstall():
    page = FakePage(800, 600)

    async def main():
        tracker = await PageHeatmapTracker(page).install()
        assert tracker.session.enabled and not tracker.session.visible
        assert tracker.document_size == (800, 600)
        assert tracker.session.field.size == (800, 600)
        assert page.handlers == [(cdp.runtime.BindingCalled, tracker._on_binding)]

        await tracker._on_binding(
            BindingEvent(json.dumps({"type": "move", "x": 100, "y": 100}))
        )
        await tracker._on_binding(BindingEvent("garbage"))
        await tracker._on_binding(BindingEvent('{"type": "move"}', name="other"))
        assert tracker.session.field.value_at(100, 100) > 0
        assert len(tracker.recorder.events) == 1

        await tracker._on_binding(BindingEvent('{"type": "toggle"}'))
        assert tracker.session.visible
        await tracker.flush()

        page.document_size = {"w": 800, "h": 2000}
        await tracker._on_binding(BindingEvent('{"type": "resize"}'))
        assert tracker.session.field.size == (800, 2000)
        assert tracker.session.image.size == (800, 2000)
        await tracker.flush()

        await tracker.uninstall()
        assert not tracker.session.enabled and not tracker.session.visible
        assert page.handlers == []
        return tracker

    asyncio.run(main())

    methods = page.methods()
    assert methods[:4] == [
        "Runtime.enable",
        "Runtime.evaluate",
        "Runtime.addBinding",
        "Page.addScriptToEvaluateOnNewDocument",
    ]
    assert "Page.removeScriptToEvaluateOnNewDocument" in methods
    assert "Runtime.removeBinding" in methods
    expressions = page.expressions()
    assert any(cfg.BUTTON_TEXT_HIDE in e for e in expressions), "label flipped on show"
    assert any("data:image/png;base64," in e for e in expressions)
    assert any("__pageheat.detach()" in e for e in expressions)


def test_tracker_resize_failure_is_logged_not_raised(caplog):
    page = FakePage(300, 300)

    async def main():
        tracker = await PageHeatmapTracker(page, HeatmapOptions(auto_button=False)).install()
        page.fail_evaluate = True
        await tracker.handle_message({"type": "resize"})
        return tracker

    tracker = asyncio.run(main())

    assert tracker.session.field.size == (300, 300)
    assert "document size unavailable" in caplog.text


def test_failed_install_leaves_nothing_registered_and_retry_is_clean():
    page = FakePage(800, 600)

    async def main():
        tracker = PageHeatmapTracker(page, HeatmapOptions(auto_button=False))

        page.fail_evaluate = True
        with pytest.raises(DocumentSizeUnavailable):
            await tracker.install()
        assert page.handlers == []
        assert "Runtime.addBinding" not in page.methods()
        page.fail_evaluate = False

        page.fail_script = True
        with pytest.raises(RuntimeError):
            await tracker.install()
        assert page.handlers == []
        assert "Runtime.removeBinding" in page.methods()
        assert "Page.removeScriptToEvaluateOnNewDocument" in page.methods()
        assert not tracker.installed
        page.fail_script = False

        await tracker.install()
        assert len(page.handlers) == 1
        await tracker._on_binding(
            BindingEvent(json.dumps({"type": "move", "x": 100, "y": 100}))
        )
        return tracker

    tracker = asyncio.run(main())

    assert tracker.session.field.value_at(100, 100) == 18, "one deposit per move"
    assert len(tracker.recorder.events) == 1


def test_late_removal_of_hidden_overlay_spares_the_new_one():
    page = FakePage()
    page.delay = 0.05
    overlays = []

    def _overlay():
        overlays.append(PageOverlay(page))
        return overlays[-1]

    async def main():
        session = HeatmapSession(
            size_provider=lambda: (40, 30), surface_factory=_overlay
        )
        session.show()
        await asyncio.sleep(0.02)
        session.hide()
        session.show()
        for overlay in overlays:
            await overlay.flush()
        return session

    session = asyncio.run(main())

    first, second = overlays
    assert session.visible and session.surface is second
    assert first.element_id != second.element_id
    removals = [e for e in page.expressions() if "el.remove()" in e]
    pushes = [e for e in page.expressions() if "data:image/png;base64," in e]
    first_id, second_id = json.dumps(first.element_id), json.dumps(second.element_id)
    assert removals and all(first_id in e for e in removals)
    assert not any(second_id in e for e in removals)
    assert any(second_id in e for e in pushes)
