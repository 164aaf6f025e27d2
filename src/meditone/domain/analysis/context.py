"""
Audio processing graph used for visualization.

Models the small part of a processing graph the signal tap needs: a context
with a suspended/running/closed state, media-element sources that read the
PCM a track is currently playing, and an analyser producing byte frequency
data. Audible output stays with the media backend; this graph only listens.
"""

import weakref
from typing import Optional, Protocol

import numpy as np
import soundfile as sf
from loguru import logger

from .exceptions import ContextClosedError, SourceAlreadyConnectedError


class MediaElement(Protocol):
    """What a source node needs from a playing track."""

    url: str

    def position(self) -> float: ...

    def is_playing(self) -> bool: ...


class MediaElementSource:
    """Source node reading the samples around a track's playback position.

    The file is decoded lazily and windowed reads seek into it, so long
    narrations are never loaded whole.
    """

    def __init__(self, context: "AudioContext", element: MediaElement):
        self.context = context
        self._element = weakref.ref(element)
        self._outputs: list["AnalyserNode"] = []
        self._decoder: Optional[sf.SoundFile] = None
        self._undecodable = False

    @property
    def element(self) -> Optional[MediaElement]:
        return self._element()

    @property
    def outputs(self) -> list["AnalyserNode"]:
        return list(self._outputs)

    def connect(self, node: "AnalyserNode") -> None:
        if node not in self._outputs:
            self._outputs.append(node)
            node._inputs.append(self)

    def disconnect(self) -> None:
        for node in self._outputs:
            if self in node._inputs:
                node._inputs.remove(self)
        self._outputs = []
        self.close_decoder()

    def close_decoder(self) -> None:
        if self._decoder is not None:
            self._decoder.close()
            self._decoder = None

    def read_window(self, size: int) -> np.ndarray:
        """Return the `size` mono samples that end at the current position.

        Silence when the track is paused, gone, or cannot be decoded.
        """
        window = np.zeros(size, dtype=np.float32)
        element = self.element
        if element is None or not element.is_playing() or self._undecodable:
            return window

        decoder = self._open_decoder(element)
        if decoder is None:
            return window

        end = int(element.position() * decoder.samplerate)
        end = max(0, min(end, decoder.frames))
        start = max(0, end - size)
        if end <= start:
            return window

        try:
            decoder.seek(start)
            data = decoder.read(end - start, dtype="float32", always_2d=True)
        except (sf.LibsndfileError, RuntimeError) as e:
            logger.warning(f"Failed to read samples from {element.url}: {e}")
            return window

        mono = data.mean(axis=1)
        window[size - len(mono):] = mono
        return window

    def _open_decoder(self, element: MediaElement) -> Optional[sf.SoundFile]:
        if self._decoder is None:
            try:
                self._decoder = sf.SoundFile(element.url)
            except (sf.LibsndfileError, RuntimeError, OSError) as e:
                logger.warning(
                    f"Cannot decode {element.url} for visualization: {e}"
                )
                self._undecodable = True
                return None
        return self._decoder


class AnalyserNode:
    """Byte frequency analyser with a fixed transform size.

    Follows the usual real-time analyser pipeline: Blackman window, FFT,
    magnitude normalised by the transform size, exponential smoothing
    between frames, then decibels mapped linearly onto 0-255.
    """

    def __init__(
        self,
        context: "AudioContext",
        fft_size: int = 256,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ):
        self.context = context
        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self._inputs: list[MediaElementSource] = []
        self._window = np.blackman(fft_size).astype(np.float32)
        self._smoothed = np.zeros(self.frequency_bin_count, dtype=np.float64)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    @property
    def inputs(self) -> list[MediaElementSource]:
        return list(self._inputs)

    def get_byte_frequency_data(self, out: np.ndarray) -> None:
        """Fill `out` in place. A context that is not running leaves it unchanged."""
        if self.context.state != AudioContext.RUNNING:
            return

        samples = np.zeros(self.fft_size, dtype=np.float32)
        for source in self._inputs:
            samples += source.read_window(self.fft_size)

        spectrum = np.fft.rfft(samples * self._window)[: self.frequency_bin_count]
        magnitude = np.abs(spectrum) / self.fft_size

        tau = self.smoothing_time_constant
        self._smoothed = tau * self._smoothed + (1.0 - tau) * magnitude

        decibels = 20.0 * np.log10(np.maximum(self._smoothed, 1e-12))
        span = self.max_decibels - self.min_decibels
        scaled = (decibels - self.min_decibels) * (255.0 / span)
        count = min(len(out), self.frequency_bin_count)
        out[:count] = np.clip(np.floor(scaled[:count]), 0, 255).astype(np.uint8)


class AudioContext:
    """Processing context; starts suspended until resumed by user action."""

    SUSPENDED = "suspended"
    RUNNING = "running"
    CLOSED = "closed"

    def __init__(self):
        self.state = self.SUSPENDED
        self._sources: "weakref.WeakKeyDictionary[MediaElement, MediaElementSource]" = (
            weakref.WeakKeyDictionary()
        )

    def resume(self) -> None:
        if self.state == self.CLOSED:
            raise ContextClosedError("Cannot resume a closed audio context")
        if self.state != self.RUNNING:
            logger.debug("Audio context resumed")
        self.state = self.RUNNING

    def suspend(self) -> None:
        if self.state == self.RUNNING:
            self.state = self.SUSPENDED

    def close(self) -> None:
        for source in list(self._sources.values()):
            source.disconnect()
        self._sources = weakref.WeakKeyDictionary()
        self.state = self.CLOSED

    def create_analyser(self, **options) -> AnalyserNode:
        self._check_open()
        return AnalyserNode(self, **options)

    def create_media_element_source(self, element: MediaElement) -> MediaElementSource:
        """Create the one source node a media element may ever have.

        Raises:
            SourceAlreadyConnectedError: If the element already has a source
            ContextClosedError: If the context was closed
        """
        self._check_open()
        if element in self._sources:
            raise SourceAlreadyConnectedError(
                f"{element.url} is already connected to a source node"
            )
        source = MediaElementSource(self, element)
        self._sources[element] = source
        return source

    def source_for(self, element: MediaElement) -> Optional[MediaElementSource]:
        return self._sources.get(element)

    def _check_open(self) -> None:
        if self.state == self.CLOSED:
            raise ContextClosedError("Audio context is closed")
