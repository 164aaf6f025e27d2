"""
Track controller - narration and background tracks under one transport.

Owns the two media tracks of a session, keeps their volumes consistent with
the mute flag, binds the signal tap to the narration track once it loads,
and reports progress once per frame while narration plays.
"""

from typing import Callable, Optional, Union

import numpy as np
from loguru import logger

from meditone.core.frames import FrameScheduler
from meditone.domain.analysis.tap import SignalTap

from .exceptions import PlaybackError
from .media import MediaBackend, MediaTrack, TrackCallbacks
from .models import (
    ControllerState,
    LoadError,
    Track,
    TrackRole,
    VolumeState,
    clamp_unit,
)

EVENTS = ("play", "pause", "end", "progress", "error", "load")


class TrackController:
    """Unified transport over a narration track and a looping background track.

    Media callbacks are checked against the current Track record, so events
    from a track that has since been replaced are dropped.
    """

    def __init__(
        self,
        backend: MediaBackend,
        scheduler: FrameScheduler,
        tap: Optional[SignalTap] = None,
        volume: Optional[VolumeState] = None,
    ):
        self.backend = backend
        self.scheduler = scheduler
        self.tap = tap
        self._volume = volume or VolumeState()

        self._tracks: dict[TrackRole, Optional[Track]] = {
            TrackRole.NARRATION: None,
            TrackRole.BACKGROUND: None,
        }
        self._media: dict[TrackRole, Optional[MediaTrack]] = {
            TrackRole.NARRATION: None,
            TrackRole.BACKGROUND: None,
        }
        self._listeners: dict[str, list[Callable]] = {event: [] for event in EVENTS}
        self._state = ControllerState.EMPTY
        self._play_requested = False
        self._progress_frame: Optional[int] = None

    # Read-only state -------------------------------------------------------

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def volume(self) -> VolumeState:
        """Copy of the current volume state."""
        return VolumeState(
            narration=self._volume.narration,
            background=self._volume.background,
            muted=self._volume.muted,
        )

    @property
    def narration(self) -> Optional[Track]:
        return self._tracks[TrackRole.NARRATION]

    @property
    def background(self) -> Optional[Track]:
        return self._tracks[TrackRole.BACKGROUND]

    def media(self, role: TrackRole) -> Optional[MediaTrack]:
        return self._media[TrackRole(role)]

    @property
    def is_playing(self) -> bool:
        """Whether the narration track is actually playing right now."""
        narration = self._media[TrackRole.NARRATION]
        return narration is not None and narration.is_playing()

    @property
    def progress_pending(self) -> bool:
        return self.scheduler.is_pending(self._progress_frame)

    # Loading ---------------------------------------------------------------

    def load_narration(self, url: Optional[str]) -> "TrackController":
        """Replace the narration track. An empty url just clears it."""
        return self._load(TrackRole.NARRATION, url)

    def load_background(self, url: Optional[str]) -> "TrackController":
        """Replace the looping background track. An empty url just clears it."""
        return self._load(TrackRole.BACKGROUND, url)

    def _load(self, role: TrackRole, url: Optional[str]) -> "TrackController":
        if self._state is ControllerState.DESTROYED:
            return self

        narration = role is TrackRole.NARRATION
        interrupted = narration and (
            self._state is ControllerState.PLAYING or self._play_requested
        )
        self._unload(role)
        if narration:
            self._cancel_progress()
            self._play_requested = False
            if interrupted:
                # Replacing narration stops the session until play is requested again
                background = self._media[TrackRole.BACKGROUND]
                if background is not None:
                    background.pause()
                self._emit("pause")

        if not url:
            if narration:
                logger.warning("No narration URL provided")
                self._state = ControllerState.EMPTY
            return self

        track = Track(url=url, role=role, looping=not narration)
        self._tracks[role] = track
        if narration:
            self._state = ControllerState.LOADING

        callbacks = TrackCallbacks(
            on_load=lambda: self._handle_load(track),
            on_load_error=lambda message: self._handle_load_error(track, message),
            on_end=lambda: self._handle_end(track),
        )
        try:
            self._media[role] = self.backend.create_track(
                url,
                volume=self._volume.effective(role),
                loop=track.looping,
                callbacks=callbacks,
            )
        except PlaybackError as e:
            self._handle_load_error(track, str(e))
            return self

        logger.info(f"Loading {role.value} track: {url}")
        if not narration and (
            self._play_requested or self._state is ControllerState.PLAYING
        ):
            # Keep the new background in step with narration that is already running
            self._media[role].play()
        return self

    def _unload(self, role: TrackRole) -> None:
        """Stop then unload the current track of `role`, if any."""
        media = self._media[role]
        self._media[role] = None
        self._tracks[role] = None
        if media is None:
            return

        if self.tap is not None and self.tap.bound_track is media:
            self.tap.release()
        media.stop()
        media.unload()
        logger.debug(f"Released {role.value} track: {media.url}")

    def _is_current(self, track: Track) -> bool:
        return self._tracks[track.role] is track

    def _handle_load(self, track: Track) -> None:
        if not self._is_current(track):
            logger.debug(f"Ignoring load event from stale track: {track.url}")
            return
        track.loaded = True

        if track.role is TrackRole.NARRATION:
            if self.tap is not None:
                self.tap.bind(self._media[TrackRole.NARRATION])
            if self._state is ControllerState.LOADING:
                self._state = (
                    ControllerState.PLAYING
                    if self._play_requested
                    else ControllerState.READY
                )
            self._start_progress_tracking()

        self._emit("load", track.role)

    def _handle_load_error(self, track: Track, message: str) -> None:
        if not self._is_current(track):
            logger.debug(f"Ignoring load error from stale track: {track.url}")
            return

        error = LoadError(role=track.role, url=track.url, message=message)
        if error.fatal:
            logger.error(f"Error loading narration {track.url}: {message}")
        else:
            logger.warning(f"Background track unavailable, continuing without it: {message}")

        media = self._media[track.role]
        self._media[track.role] = None
        self._tracks[track.role] = None
        if media is not None:
            media.unload()
        if error.fatal:
            self._cancel_progress()
            self._play_requested = False
            self._state = ControllerState.EMPTY
            background = self._media[TrackRole.BACKGROUND]
            if background is not None:
                background.pause()

        self._emit("error", error)

    def _handle_end(self, track: Track) -> None:
        if not self._is_current(track) or track.role is not TrackRole.NARRATION:
            return
        if self._state is not ControllerState.PLAYING:
            logger.debug(f"Ignoring end event in state {self._state.value}")
            return

        self._state = ControllerState.ENDED
        self._play_requested = False
        self._cancel_progress()
        background = self._media[TrackRole.BACKGROUND]
        if background is not None:
            background.pause()

        logger.info(f"Narration finished: {track.url}")
        self._emit("progress", 1.0)
        self._emit("end")

    # Transport -------------------------------------------------------------

    def play(self) -> "TrackController":
        """Start or resume both tracks."""
        if self._state in (ControllerState.DESTROYED, ControllerState.ENDED):
            return self

        narration = self._media[TrackRole.NARRATION]
        background = self._media[TrackRole.BACKGROUND]
        if narration is None:
            # Background never plays on its own
            logger.debug(f"Ignoring play without narration in state {self._state.value}")
            return self

        narration.play()
        if self.tap is not None:
            self.tap.resume()
        if background is not None:
            background.play()

        if self._state is ControllerState.LOADING:
            self._play_requested = True
        elif self._state in (ControllerState.READY, ControllerState.PAUSED):
            self._state = ControllerState.PLAYING
            self._start_progress_tracking()

        self._emit("play")
        return self

    def pause(self) -> "TrackController":
        """Pause both tracks without unloading them."""
        if self._state is ControllerState.DESTROYED:
            return self

        for media in self._media.values():
            if media is not None:
                media.pause()

        self._play_requested = False
        if self._state is ControllerState.PLAYING:
            self._state = ControllerState.PAUSED

        self._emit("pause")
        return self

    def toggle_play(self) -> bool:
        """Toggle playback based on the narration track's real status.

        Returns:
            Whether narration is playing (or queued to play once loaded) afterwards
        """
        if self._state is ControllerState.DESTROYED:
            return False

        if self.is_playing or self._play_requested:
            self.pause()
        else:
            self.play()
        return self.is_playing or self._play_requested

    def set_volume(self, role: Union[TrackRole, str], value: float) -> "TrackController":
        """Set the stored volume for `role`, clamped to [0, 1]."""
        role = TrackRole(role)
        value = clamp_unit(value)
        if role is TrackRole.NARRATION:
            self._volume.narration = value
        else:
            self._volume.background = value

        media = self._media[role]
        if media is not None and not self._volume.muted:
            media.set_volume(value)
        return self

    def toggle_mute(self) -> bool:
        """Flip the mute flag and reapply volumes.

        Returns:
            The new muted state
        """
        self._volume.muted = not self._volume.muted
        for role, media in self._media.items():
            if media is not None:
                media.set_volume(self._volume.effective(role))
        logger.debug(f"Muted: {self._volume.muted}")
        return self._volume.muted

    def seek(self, fraction: float) -> "TrackController":
        """Seek narration to `fraction` of its duration; no-op until it is known."""
        narration = self._media[TrackRole.NARRATION]
        if narration is None:
            return self

        duration = narration.duration()
        if not duration:
            return self

        narration.seek(clamp_unit(fraction) * duration)
        return self

    def get_progress(self) -> float:
        """Narration position as a fraction of its duration."""
        narration = self._media[TrackRole.NARRATION]
        if narration is None:
            return 0.0

        duration = narration.duration()
        if not duration:
            return 0.0
        return clamp_unit(narration.position() / duration)

    def get_frequency_data(self) -> Optional[np.ndarray]:
        """Current frequency frame from the signal tap, if one is bound."""
        if self.tap is None or self._state is ControllerState.DESTROYED:
            return None
        return self.tap.read()

    # Progress polling ------------------------------------------------------

    def _start_progress_tracking(self) -> None:
        # At most one pending progress frame
        self._cancel_progress()
        self._progress_frame = self.scheduler.request_frame(self._update_progress)

    def _cancel_progress(self) -> None:
        self.scheduler.cancel_frame(self._progress_frame)
        self._progress_frame = None

    def _update_progress(self, timestamp: float) -> None:
        self._progress_frame = None
        if self._state is ControllerState.DESTROYED:
            return

        self._emit("progress", self.get_progress())

        if self.is_playing and self._progress_frame is None:
            self._progress_frame = self.scheduler.request_frame(self._update_progress)

    # Listeners -------------------------------------------------------------

    def on_play(self, callback: Callable[[], None]) -> "TrackController":
        return self._subscribe("play", callback)

    def on_pause(self, callback: Callable[[], None]) -> "TrackController":
        return self._subscribe("pause", callback)

    def on_end(self, callback: Callable[[], None]) -> "TrackController":
        return self._subscribe("end", callback)

    def on_progress(self, callback: Callable[[float], None]) -> "TrackController":
        return self._subscribe("progress", callback)

    def on_error(self, callback: Callable[[LoadError], None]) -> "TrackController":
        return self._subscribe("error", callback)

    def on_load(self, callback: Callable[[TrackRole], None]) -> "TrackController":
        return self._subscribe("load", callback)

    def _subscribe(self, event: str, callback: Callable) -> "TrackController":
        if self._state is not ControllerState.DESTROYED:
            self._listeners[event].append(callback)
        return self

    def _emit(self, event: str, *args) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(*args)
            except Exception:
                logger.exception(f"{event} listener failed")

    # Lifecycle -------------------------------------------------------------

    def destroy(self) -> None:
        """Stop and unload both tracks, release the tap and drop listeners."""
        if self._state is ControllerState.DESTROYED:
            return

        self._cancel_progress()
        self._unload(TrackRole.NARRATION)
        self._unload(TrackRole.BACKGROUND)
        for listeners in self._listeners.values():
            listeners.clear()
        self._play_requested = False
        self._state = ControllerState.DESTROYED
        logger.debug("Track controller destroyed")
