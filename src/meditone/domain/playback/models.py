"""
Playback domain models.

Contains data structures for tracks, volumes, controller state and load errors.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TrackRole(str, Enum):
    """Which of the two layered tracks a media track plays."""

    NARRATION = "narration"
    BACKGROUND = "background"


class ControllerState(str, Enum):
    """Track controller lifecycle.

    EMPTY -> LOADING -> READY <-> PLAYING <-> PAUSED -> (ENDED | DESTROYED)
    """

    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    DESTROYED = "destroyed"


@dataclass
class Track:
    """A media track owned by the track controller.

    Replaced wholesale when a new URL is loaded for the same role.
    """

    url: str
    role: TrackRole
    loaded: bool = False
    looping: bool = False  # Background only


@dataclass
class VolumeState:
    """Per-role volumes plus the global mute flag."""

    narration: float = 0.8
    background: float = 0.5
    muted: bool = False

    def effective(self, role: TrackRole) -> float:
        """Volume actually applied to a track of the given role."""
        if self.muted:
            return 0.0
        if role is TrackRole.NARRATION:
            return self.narration
        return self.background


@dataclass(frozen=True)
class LoadError:
    """A failed track load reported through the controller's error channel.

    NARRATION failures mean nothing can play; BACKGROUND failures leave a
    narration-only session.
    """

    role: TrackRole
    url: str
    message: str

    @property
    def fatal(self) -> bool:
        return self.role is TrackRole.NARRATION


def clamp_unit(value: Optional[float]) -> float:
    """Clamp a value into [0, 1], treating None/NaN as 0."""
    if value is None or value != value:
        return 0.0
    return max(0.0, min(1.0, float(value)))
