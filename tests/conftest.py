"""Shared fakes for the heatmap tests: manual clock, frame queue, surfaces, page."""

import pytest

from pageheat.heatmap.config import HeatmapOptions
from pageheat.heatmap.session import HeatmapSession


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeFrames:
    """Deferred-callback queue driven by FakeClock instead of a real loop."""

    def __init__(self, clock):
        self.clock = clock
        self.queue = []
        self.delays = []

    def __call__(self, delay, callback):
        handle = object()
        self.delays.append(delay)
        self.queue.append((self.clock.now + delay, handle, callback))
        return handle

    def run_due(self):
        due = [entry for entry in self.queue if entry[0] <= self.clock.now + 1e-9]
        self.queue = [entry for entry in self.queue if entry not in due]
        for _, _, callback in due:
            callback()
        return len(due)


class RecordingSurface:
    def __init__(self):
        self.frames = []
        self.detached = False

    def present(self, image):
        self.frames.append(image.copy())

    def detach(self):
        self.detached = True


class SizeBox:
    def __init__(self, width, height):
        self.size = (width, height)

    def __call__(self):
        return self.size


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def frames(clock):
    return FakeFrames(clock)


@pytest.fixture
def surfaces():
    return []


@pytest.fixture
def doc_size():
    return SizeBox(800, 600)


@pytest.fixture
def make_session(clock, frames, surfaces, doc_size):
    def _make(**overrides):
        def _surface():
            surface = RecordingSurface()
            surfaces.append(surface)
            return surface

        return HeatmapSession(
            HeatmapOptions(**overrides),
            size_provider=doc_size,
            surface_factory=_surface,
            clock=clock,
            defer=frames,
        )

    return _make
