"""Playback-specific exceptions for error handling."""


class PlaybackError(Exception):
    """Base exception for playback operations."""

    pass


class MpvUnavailableError(PlaybackError):
    """Raised when the mpv executable cannot be started."""

    pass


class TrackLoadError(PlaybackError):
    """Raised when a media track fails to load."""

    def __init__(self, url: str, message: str = None):
        self.url = url
        super().__init__(message or f"Failed to load {url}")
