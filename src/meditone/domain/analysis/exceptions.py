"""Audio-platform exceptions for the signal analysis graph."""


class AudioPlatformError(Exception):
    """Base exception for audio graph operations."""

    pass


class SourceAlreadyConnectedError(AudioPlatformError):
    """Raised when a media element already has a source node in this context."""

    pass


class ContextClosedError(AudioPlatformError):
    """Raised when using an audio context after close()."""

    pass
