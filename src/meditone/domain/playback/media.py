"""
Media track interface shared by the mpv backend and test doubles.

A media track plays one URL. Loading is asynchronous: the backend reports
the outcome through the callbacks handed to create_track().
"""

from dataclasses import dataclass
from typing import Callable, Optional, Protocol


def _noop(*args) -> None:
    pass


@dataclass
class TrackCallbacks:
    """Events a media track delivers back to its owner."""

    on_load: Callable[[], None] = _noop
    on_load_error: Callable[[str], None] = _noop
    on_end: Callable[[], None] = _noop


class MediaTrack(Protocol):
    """A single loaded media source with its own transport and volume."""

    url: str
    loop: bool

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def unload(self) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def position(self) -> float: ...

    def duration(self) -> Optional[float]: ...

    def is_playing(self) -> bool: ...


class MediaBackend(Protocol):
    """Factory for media tracks.

    Callbacks are never invoked from inside create_track(); load outcomes
    arrive later, once the owner has stored the returned track.
    """

    def create_track(
        self,
        url: str,
        *,
        volume: float,
        loop: bool,
        callbacks: TrackCallbacks,
    ) -> MediaTrack: ...
