"""
Signal tap - frequency data for the visualizer.

Owns one audio context and one analyser. The host creates a single tap and
hands it to whichever track controller is active, so only one track is
tapped at a time. Every failure here is non-fatal: visualization falls back
to placeholder data and playback carries on.
"""

from typing import Callable, Optional

import numpy as np
from loguru import logger

from meditone.core.config import AnalyzerConfig

from .context import AnalyserNode, AudioContext, MediaElement, MediaElementSource
from .exceptions import AudioPlatformError, SourceAlreadyConnectedError


class SignalTap:
    """Lazily initialized analyser that can be re-bound to new tracks."""

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        context_factory: Callable[[], AudioContext] = AudioContext,
    ):
        self.config = config or AnalyzerConfig()
        self._context_factory = context_factory
        self._context: Optional[AudioContext] = None
        self._analyser: Optional[AnalyserNode] = None
        self._buffer: Optional[np.ndarray] = None
        self._source: Optional[MediaElementSource] = None
        self._unavailable = False

    @property
    def is_initialized(self) -> bool:
        return self._analyser is not None

    @property
    def is_bound(self) -> bool:
        return self._source is not None

    @property
    def bound_track(self) -> Optional[MediaElement]:
        return self._source.element if self._source else None

    @property
    def context_state(self) -> Optional[str]:
        return self._context.state if self._context else None

    @property
    def analyser(self) -> Optional[AnalyserNode]:
        return self._analyser

    def initialize(self) -> bool:
        """Create the context and analyser once.

        Returns:
            True if the tap is usable
        """
        if self._analyser is not None:
            return True
        if self._unavailable:
            return False

        try:
            context = self._context_factory()
            analyser = context.create_analyser(
                fft_size=self.config.fft_size,
                smoothing_time_constant=self.config.smoothing_time_constant,
                min_decibels=self.config.min_decibels,
                max_decibels=self.config.max_decibels,
            )
        except Exception as e:
            # Platform audio missing: visualization only, never fatal
            logger.error(f"Failed to initialize audio analyser: {e}")
            self._unavailable = True
            return False

        self._context = context
        self._analyser = analyser
        self._buffer = np.zeros(analyser.frequency_bin_count, dtype=np.uint8)
        logger.debug(f"Signal tap initialized (fft_size={self.config.fft_size})")
        return True

    def bind(self, track: MediaElement) -> bool:
        """Tap `track`, releasing any previous binding first.

        Binding the track that is already bound is a no-op.

        Returns:
            True if `track` is bound when this returns
        """
        if track is None or not self.initialize():
            return False

        if self._source is not None and self._source.element is track:
            return True

        self.release()

        try:
            source = self._context.create_media_element_source(track)
        except SourceAlreadyConnectedError:
            # The element was tapped before; its source node is still valid
            source = self._context.source_for(track)
            logger.debug(f"Reusing existing source node for {track.url}")
        except AudioPlatformError as e:
            logger.warning(f"Failed to connect {track.url} to analyser: {e}")
            return False

        if source is None:
            return False

        source.connect(self._analyser)
        self._source = source
        logger.debug(f"Signal tap bound to {track.url}")
        return True

    def read(self) -> Optional[np.ndarray]:
        """Refresh and return the shared frequency buffer.

        Returns:
            The frame (same array every call), or None if not initialized or bound
        """
        if self._analyser is None or self._source is None:
            return None
        self._analyser.get_byte_frequency_data(self._buffer)
        return self._buffer

    def resume(self) -> None:
        """Resume a suspended context; playback must not depend on it."""
        if self._context is None or self._context.state != AudioContext.SUSPENDED:
            return
        try:
            self._context.resume()
        except AudioPlatformError as e:
            logger.warning(f"Failed to resume audio context: {e}")

    def release(self) -> None:
        """Disconnect the current binding. Safe to call repeatedly."""
        if self._source is None:
            return
        self._source.disconnect()
        self._source = None
        logger.debug("Signal tap released")

    def destroy(self) -> None:
        """Tear down the context; the next initialize() starts fresh."""
        self.release()
        if self._context is not None:
            self._context.close()
        self._context = None
        self._analyser = None
        self._buffer = None
        self._unavailable = False
