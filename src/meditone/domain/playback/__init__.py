"""Playback domain - dual-track transport and session state.

This domain handles:
- MPV media tracks driven over JSON IPC
- The track controller (narration + looping background, one transport)
- Playback sessions exposing observable state to a single consumer
"""

from .controller import TrackController
from .exceptions import MpvUnavailableError, PlaybackError, TrackLoadError
from .media import MediaBackend, MediaTrack, TrackCallbacks
from .models import ControllerState, LoadError, Track, TrackRole, VolumeState
from .mpv import MpvBackend, MpvTrack, check_mpv_available
from .session import BACKGROUND_RATIO, PlaybackSession, SessionState

__all__ = [
    # Controller
    "TrackController",
    "ControllerState",
    # Models
    "LoadError",
    "Track",
    "TrackRole",
    "VolumeState",
    # Media
    "MediaBackend",
    "MediaTrack",
    "TrackCallbacks",
    "MpvBackend",
    "MpvTrack",
    "check_mpv_available",
    # Session
    "BACKGROUND_RATIO",
    "PlaybackSession",
    "SessionState",
    # Errors
    "MpvUnavailableError",
    "PlaybackError",
    "TrackLoadError",
]
