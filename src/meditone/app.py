"""
meditone application wiring.

Builds the long-lived pieces once (frame scheduler, mpv backend, signal tap,
window and visualizer) and hands a fresh PlaybackSession to each piece of
content that is opened.
"""

from typing import Callable, Optional

import numpy as np
from loguru import logger

from meditone.core.config import Config, ensure_directories, load_config
from meditone.core.output import setup_from_config
from meditone.domain.analysis import SignalTap
from meditone.domain.playback import MpvBackend, PlaybackSession, check_mpv_available
from meditone.visualizer import PygameHost, Visualizer


class MeditationPlayer:
    """One window playing one narration/background pair at a time.

    Usage:
        with MeditationPlayer() as player:
            player.open_session("calm.ogg", "rain.ogg")
            player.session.toggle_play()
            player.run()
    """

    def __init__(self, config: Optional[Config] = None, host: Optional[PygameHost] = None):
        self.config = config or load_config()
        self.host = host or PygameHost(self.config.visualizer)
        self.scheduler = self.host.scheduler
        self.backend = MpvBackend(self.scheduler, self.config.player)
        # Shared across sessions so the analysis graph survives content switches
        self.tap = SignalTap(self.config.analyzer)
        self.session: Optional[PlaybackSession] = None
        self.visualizer: Optional[Visualizer] = None
        self._unfollow: Optional[Callable[[], None]] = None

    def start(self) -> None:
        """Set up logging, open the window and mount the visualizer."""
        ensure_directories()
        setup_from_config(self.config.logging)
        if not check_mpv_available(self.config.player.mpv_path):
            logger.warning(f"mpv not found at {self.config.player.mpv_path}, tracks will fail to load")

        canvas = self.host.open()
        self.visualizer = Visualizer(self.scheduler, canvas, self._frequency_data, self.config.visualizer)
        self.host.on_resize(self.visualizer.resize)
        self.visualizer.mount()

    def open_session(
        self,
        narration_url: str,
        background_url: Optional[str] = None,
        on_end: Optional[Callable[[], None]] = None,
    ) -> PlaybackSession:
        """Replace the current session with one playing the given tracks."""
        self.close_session()
        self.session = PlaybackSession(
            self.backend,
            self.scheduler,
            self.tap,
            narration_url=narration_url,
            background_url=background_url,
            on_end=on_end,
            volume=self.config.player.volume,
        )
        if self.visualizer is not None:
            self._unfollow = self.visualizer.follow(self.session)
        return self.session

    def close_session(self) -> None:
        if self._unfollow is not None:
            self._unfollow()
            self._unfollow = None
        if self.session is not None:
            self.session.close()
            self.session = None
        if self.visualizer is not None:
            self.visualizer.set_playing(False)

    def run(self, max_frames: Optional[int] = None) -> None:
        if self.visualizer is None:
            self.start()
        self.host.run(max_frames=max_frames)

    def close(self) -> None:
        self.close_session()
        if self.visualizer is not None:
            self.visualizer.unmount()
            self.visualizer = None
        self.tap.destroy()
        self.backend.close()
        self.host.close()

    def __enter__(self) -> "MeditationPlayer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _frequency_data(self) -> Optional[np.ndarray]:
        if self.session is None:
            return None
        return self.session.controller.get_frequency_data()
