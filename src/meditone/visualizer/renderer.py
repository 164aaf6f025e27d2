"""
Visualizer render loop.

While mounted, the visualizer redraws the whole canvas once per frame:
a pulsing placeholder when nothing plays, otherwise the current style fed
with the live frequency frame (or a synthetic one when no signal is
available).
"""

import time
from typing import Callable, Optional, Union

import numpy as np
from loguru import logger

from meditone.core.config import VisualizerConfig
from meditone.core.frames import FrameScheduler
from meditone.domain.playback.session import PlaybackSession, SessionState

from .canvas import Canvas
from .styles import STYLE_RENDERERS, VisualizerStyle, draw_placeholder, synthetic_frame

FrequencySource = Callable[[], Optional[np.ndarray]]


class Visualizer:
    """Frame-driven renderer bound to a canvas and a frequency source.

    The data source is only consulted while playing. At most one frame
    callback is pending at any time.
    """

    def __init__(
        self,
        scheduler: FrameScheduler,
        canvas: Canvas,
        data_source: FrequencySource,
        config: Optional[VisualizerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[np.random.Generator] = None,
    ):
        config = config or VisualizerConfig()
        self.scheduler = scheduler
        self.canvas = canvas
        self.data_source = data_source
        self.clock = clock
        self.rng = rng or np.random.default_rng()

        self.style = VisualizerStyle.parse(config.style)
        self.color = config.color
        self.intensity = max(0.0, min(1.0, config.intensity))

        self._playing = False
        self._mounted = False
        self._frame: Optional[int] = None

    @property
    def playing(self) -> bool:
        return self._playing

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def frame_pending(self) -> bool:
        return self.scheduler.is_pending(self._frame)

    # Lifecycle -------------------------------------------------------------

    def mount(self) -> "Visualizer":
        """Start the render loop."""
        if not self._mounted:
            self._mounted = True
            self._schedule()
            logger.debug(f"Visualizer mounted with style {self.style.value}")
        return self

    def unmount(self) -> None:
        """Stop the render loop; no frame callback survives this call."""
        self._mounted = False
        self.scheduler.cancel_frame(self._frame)
        self._frame = None

    def follow(self, session: PlaybackSession) -> Callable[[], None]:
        """Track a session's playing flag.

        Returns:
            Function that stops following
        """
        self.set_playing(session.playing)

        def on_state(state: SessionState) -> None:
            self.set_playing(state.playing)

        return session.subscribe(on_state)

    # Inputs ----------------------------------------------------------------

    def set_playing(self, playing: bool) -> None:
        self._playing = bool(playing)

    def set_style(self, style: Union[VisualizerStyle, str]) -> None:
        """Switch style; the pending frame is cancelled and the loop restarted."""
        style = VisualizerStyle.parse(style)
        if style is self.style:
            return
        self.style = style
        if self._mounted:
            self._schedule()

    def set_color(self, color: str) -> None:
        self.color = color

    def set_intensity(self, intensity: float) -> None:
        self.intensity = max(0.0, min(1.0, intensity))

    def resize(self, width: int, height: int) -> None:
        self.canvas.resize(width, height)

    # Drawing ---------------------------------------------------------------

    def render_frame(self, timestamp: float) -> None:
        self._frame = None
        if not self._mounted:
            return
        # Reschedule first so a failing draw does not end the loop
        self._schedule()
        self.draw()

    def draw(self) -> None:
        """Clear and redraw the canvas once."""
        self.canvas.clear()

        if not self._playing:
            draw_placeholder(self.canvas, self.color, self.clock())
            return

        data = self.data_source()
        if data is None:
            data = synthetic_frame(self.rng)
        STYLE_RENDERERS[self.style](self.canvas, data, self.color, self.intensity)

    def _schedule(self) -> None:
        self.scheduler.cancel_frame(self._frame)
        self._frame = self.scheduler.request_frame(self.render_frame)
