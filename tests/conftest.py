"""
Shared fixtures: fake media backend, fake signal tap, recording canvas and a
manually driven frame scheduler.
"""

import os

# pygame must never try to open a real window under test
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

from typing import Optional

import numpy as np
import pytest

from meditone.core.frames import FrameScheduler
from meditone.domain.playback.exceptions import TrackLoadError
from meditone.domain.playback.media import TrackCallbacks


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTrack:
    """Media track whose load outcome and position the test controls."""

    def __init__(self, url: str, volume: float, loop: bool, callbacks: TrackCallbacks):
        self.url = url
        self.volume = volume
        self.loop = loop
        self.callbacks = callbacks
        self.calls: list[str] = []
        self.volumes: list[float] = [volume]
        self.loaded = False
        self.unloaded = False
        self.want_playing = False
        self._position = 0.0
        self._duration: Optional[float] = None

    # MediaTrack ------------------------------------------------------------

    def play(self) -> None:
        self.calls.append("play")
        if not self.unloaded:
            self.want_playing = True

    def pause(self) -> None:
        self.calls.append("pause")
        self.want_playing = False

    def stop(self) -> None:
        self.calls.append("stop")
        self.want_playing = False
        self._position = 0.0

    def unload(self) -> None:
        self.calls.append("unload")
        self.unloaded = True
        self.want_playing = False

    def set_volume(self, volume: float) -> None:
        self.volume = volume
        self.volumes.append(volume)

    def seek(self, seconds: float) -> None:
        self.calls.append("seek")
        self._position = seconds

    def position(self) -> float:
        return self._position

    def duration(self) -> Optional[float]:
        return self._duration

    def is_playing(self) -> bool:
        return self.loaded and self.want_playing and not self.unloaded

    # Test controls ---------------------------------------------------------

    def complete_load(self, duration: float = 60.0) -> None:
        self.loaded = True
        self._duration = duration
        self.callbacks.on_load()

    def fail(self, message: str = "decode error") -> None:
        self.callbacks.on_load_error(message)

    def advance(self, seconds: float) -> None:
        if self.is_playing():
            self._position = min(self._position + seconds, self._duration or 0.0)

    def finish(self) -> None:
        self.want_playing = False
        self._position = self._duration or 0.0
        self.callbacks.on_end()


class FakeBackend:
    """MediaBackend recording every track it creates."""

    def __init__(self):
        self.tracks: list[FakeTrack] = []
        self.missing: set[str] = set()

    def create_track(self, url, *, volume, loop, callbacks):
        if url in self.missing:
            raise TrackLoadError(url, f"File not found: {url}")
        track = FakeTrack(url, volume, loop, callbacks)
        self.tracks.append(track)
        return track

    def close(self) -> None:
        for track in self.tracks:
            if not track.unloaded:
                track.unload()

    def by_url(self, url: str) -> FakeTrack:
        return [t for t in self.tracks if t.url == url][-1]


class FakeTap:
    """Signal tap stand-in recording bind/release order."""

    def __init__(self):
        self.bound_track = None
        self.events: list[tuple] = []
        self.resumes = 0
        self.frame = np.arange(128, dtype=np.uint8)

    def bind(self, track) -> bool:
        self.events.append(("bind", track.url))
        self.bound_track = track
        return True

    def release(self) -> None:
        self.events.append(("release", self.bound_track.url if self.bound_track else None))
        self.bound_track = None

    def resume(self) -> None:
        self.resumes += 1

    def read(self):
        return self.frame if self.bound_track is not None else None


class RecordingCanvas:
    """Canvas that records draw calls instead of rasterising them."""

    def __init__(self, width: int = 800, height: int = 400):
        self._width = width
        self._height = height
        self.calls: list[tuple[str, tuple, dict]] = []

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def resize(self, width: int, height: int) -> None:
        self._width, self._height = width, height
        self.calls.append(("resize", (width, height), {}))

    def clear(self) -> None:
        self.calls.append(("clear", (), {}))

    def fill_circle(self, *args, **kwargs) -> None:
        self.calls.append(("fill_circle", args, kwargs))

    def fill_circle_radial_gradient(self, *args, **kwargs) -> None:
        self.calls.append(("fill_circle_radial_gradient", args, kwargs))

    def fill_polygon_linear_gradient(self, *args, **kwargs) -> None:
        self.calls.append(("fill_polygon_linear_gradient", args, kwargs))

    def stroke_polyline(self, *args, **kwargs) -> None:
        self.calls.append(("stroke_polyline", args, kwargs))

    def line(self, *args, **kwargs) -> None:
        self.calls.append(("line", args, kwargs))

    def names(self) -> list[str]:
        return [name for name, _, _ in self.calls]

    def of(self, name: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for n, args, kwargs in self.calls if n == name]

    def reset(self) -> None:
        self.calls.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> FrameScheduler:
    return FrameScheduler(clock=clock)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def tap() -> FakeTap:
    return FakeTap()


@pytest.fixture
def canvas() -> RecordingCanvas:
    return RecordingCanvas()
