"""
Playback session - one consumer's view of a track controller.

A session creates its own controller, loads the narration and background
tracks on construction and destroys the controller when closed. Consumers
read SessionState and mutate only through toggle_play, toggle_mute, seek
and set_volume.
"""

from dataclasses import dataclass, replace
from typing import Callable, Optional

from loguru import logger

from meditone.core.frames import FrameScheduler
from meditone.core.output import log
from meditone.domain.analysis.tap import SignalTap

from .controller import TrackController
from .media import MediaBackend
from .models import LoadError, TrackRole, clamp_unit

# Background plays quieter than narration by a fixed ratio
BACKGROUND_RATIO = 0.6

DEFAULT_VOLUME = 0.8


@dataclass(frozen=True)
class SessionState:
    """Observable playback state for a single screen."""

    loading: bool = True
    playing: bool = False
    muted: bool = False
    volume: float = DEFAULT_VOLUME
    progress: float = 0.0
    error: Optional[LoadError] = None


class PlaybackSession:
    """Scoped owner of a TrackController bound to observable state.

    Usage:
        with PlaybackSession(backend, scheduler, tap,
                             narration_url="calm.mp3",
                             background_url="rain.mp3") as session:
            session.toggle_play()
    """

    def __init__(
        self,
        backend: MediaBackend,
        scheduler: FrameScheduler,
        tap: Optional[SignalTap] = None,
        *,
        narration_url: Optional[str],
        background_url: Optional[str] = None,
        on_end: Optional[Callable[[], None]] = None,
        volume: float = DEFAULT_VOLUME,
    ):
        self._controller = TrackController(backend, scheduler, tap)
        self._on_end = on_end
        self._subscribers: list[Callable[[SessionState], None]] = []
        self._closed = False
        self._narration_url: Optional[str] = None
        self._background_url: Optional[str] = None
        self._state = SessionState(volume=clamp_unit(volume))

        (
            self._controller.on_play(lambda: self._update(playing=True))
            .on_pause(lambda: self._update(playing=False))
            .on_end(self._handle_end)
            .on_progress(lambda progress: self._update(progress=progress))
            .on_load(self._handle_load)
            .on_error(self._handle_error)
        )

        self._apply_volume(self._state.volume)
        self._load(narration_url, background_url)

    # Read-only state -------------------------------------------------------

    @property
    def controller(self) -> TrackController:
        return self._controller

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def playing(self) -> bool:
        return self._state.playing

    @property
    def muted(self) -> bool:
        return self._state.muted

    @property
    def volume(self) -> float:
        return self._state.volume

    @property
    def progress(self) -> float:
        return self._state.progress

    @property
    def error(self) -> Optional[LoadError]:
        return self._state.error

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: Callable[[SessionState], None]) -> Callable[[], None]:
        """Call `callback` with the new state after every change.

        Returns:
            Function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # Mutations -------------------------------------------------------------

    def toggle_play(self) -> None:
        if self._closed:
            return
        self._update(playing=self._controller.toggle_play())

    def toggle_mute(self) -> None:
        if self._closed:
            return
        self._update(muted=self._controller.toggle_mute())

    def seek(self, progress: float) -> None:
        if self._closed:
            return
        self._controller.seek(clamp_unit(progress))
        self._update(progress=self._controller.get_progress())

    def set_volume(self, volume: float) -> None:
        """Set the overall volume; background follows at BACKGROUND_RATIO."""
        if self._closed:
            return
        volume = clamp_unit(volume)
        self._apply_volume(volume)
        self._update(volume=volume)

    def set_urls(
        self, narration_url: Optional[str], background_url: Optional[str] = None
    ) -> None:
        """Switch content. New URLs reload both tracks; identical URLs are a no-op."""
        if self._closed:
            return
        if (narration_url, background_url) == (
            self._narration_url,
            self._background_url,
        ):
            return
        self._load(narration_url, background_url)

    # Lifecycle -------------------------------------------------------------

    def close(self) -> None:
        """Destroy the controller. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._controller.destroy()
        self._subscribers.clear()
        logger.debug("Playback session closed")

    def __enter__(self) -> "PlaybackSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Internals -------------------------------------------------------------

    def _load(self, narration_url: Optional[str], background_url: Optional[str]) -> None:
        self._narration_url = narration_url
        self._background_url = background_url
        self._update(
            loading=bool(narration_url), playing=False, progress=0.0, error=None
        )
        self._controller.load_narration(narration_url)
        self._controller.load_background(background_url)

    def _apply_volume(self, volume: float) -> None:
        self._controller.set_volume(TrackRole.NARRATION, volume)
        self._controller.set_volume(TrackRole.BACKGROUND, volume * BACKGROUND_RATIO)

    def _handle_load(self, role: TrackRole) -> None:
        if role is TrackRole.NARRATION:
            self._update(loading=False)

    def _handle_error(self, error: LoadError) -> None:
        if error.fatal:
            log(f"Could not load narration {error.url}: {error.message}", level="error")
            self._update(loading=False, playing=False, error=error)
        else:
            self._update(error=error)

    def _handle_end(self) -> None:
        self._update(playing=False, progress=1.0)
        if self._on_end is not None:
            try:
                self._on_end()
            except Exception:
                logger.exception("on_end callback failed")

    def _update(self, **changes) -> None:
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return
        self._state = new_state
        for callback in list(self._subscribers):
            try:
                callback(new_state)
            except Exception:
                logger.exception("Session subscriber failed")
