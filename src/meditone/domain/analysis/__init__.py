"""Analysis domain - live frequency data for visualization.

This domain handles:
- The audio processing context and its analyser node
- Media-element sources reading the PCM a track is playing
- The signal tap shared by track controllers
"""

from .context import AnalyserNode, AudioContext, MediaElement, MediaElementSource
from .exceptions import (
    AudioPlatformError,
    ContextClosedError,
    SourceAlreadyConnectedError,
)
from .tap import SignalTap

__all__ = [
    "AnalyserNode",
    "AudioContext",
    "AudioPlatformError",
    "ContextClosedError",
    "MediaElement",
    "MediaElementSource",
    "SignalTap",
    "SourceAlreadyConnectedError",
]
