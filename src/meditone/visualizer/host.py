"""
Pygame host - window, event pump and frame clock.

The host owns the display (or an off-screen surface), drives the frame
scheduler once per displayed frame and forwards window resizes to its
listeners.
"""

from typing import Callable, Optional

import pygame
from loguru import logger

from meditone.core.config import VisualizerConfig
from meditone.core.frames import FrameScheduler

from .canvas import PygameCanvas

ResizeListener = Callable[[int, int], None]


class PygameHost:
    """Runs the frame loop for a PygameCanvas.

    Usage:
        with PygameHost(config.visualizer) as host:
            visualizer = Visualizer(host.scheduler, host.canvas, controller.get_frequency_data)
            host.on_resize(visualizer.resize)
            visualizer.mount()
            host.run()
    """

    def __init__(
        self,
        config: Optional[VisualizerConfig] = None,
        scheduler: Optional[FrameScheduler] = None,
        surface: Optional[pygame.Surface] = None,
        title: str = "meditone",
    ):
        self.config = config or VisualizerConfig()
        self.scheduler = scheduler or FrameScheduler()
        self.title = title
        self.running = False
        self.canvas: Optional[PygameCanvas] = None

        self._surface = surface
        self._owns_display = surface is None
        self._clock: Optional[pygame.time.Clock] = None
        self._resize_listeners: list[ResizeListener] = []

    def open(self) -> PygameCanvas:
        """Initialise pygame and create the canvas."""
        if self.canvas is not None:
            return self.canvas

        pygame.init()
        if self._owns_display:
            self._surface = pygame.display.set_mode(
                (self.config.width, self.config.height), pygame.RESIZABLE
            )
            pygame.display.set_caption(self.title)
        self.canvas = PygameCanvas(self._surface, background=self.config.background_color)
        self._clock = pygame.time.Clock()
        logger.debug(
            f"Pygame host opened {self.canvas.width}x{self.canvas.height} at {self.config.fps} fps"
        )
        return self.canvas

    def close(self) -> None:
        self.running = False
        if self.canvas is None:
            return
        self.canvas = None
        self._resize_listeners.clear()
        pygame.quit()
        logger.debug("Pygame host closed")

    def __enter__(self) -> "PygameHost":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def on_resize(self, listener: ResizeListener) -> Callable[[], None]:
        """Register a resize listener.

        Returns:
            Function that removes the listener
        """
        self._resize_listeners.append(listener)

        def remove() -> None:
            if listener in self._resize_listeners:
                self._resize_listeners.remove(listener)

        return remove

    def handle_event(self, event: pygame.event.Event) -> bool:
        """Dispatch one pygame event.

        Returns:
            True if the event was handled
        """
        if event.type == pygame.QUIT:
            self.running = False
            return True

        if event.type == pygame.VIDEORESIZE:
            for listener in list(self._resize_listeners):
                try:
                    listener(event.w, event.h)
                except Exception:
                    logger.exception("Resize listener failed")
            return True

        return False

    def step(self) -> int:
        """Process pending events, run one scheduler tick and present it.

        Returns:
            Number of frame callbacks that ran
        """
        if self.canvas is None:
            self.open()

        for event in pygame.event.get():
            self.handle_event(event)

        ran = self.scheduler.tick()
        if self._owns_display:
            pygame.display.flip()
        self._clock.tick(self.config.fps)
        return ran

    def run(self, max_frames: Optional[int] = None) -> None:
        """Loop until the window is closed (or max_frames frames ran)."""
        self.running = True
        frames = 0
        while self.running:
            self.step()
            frames += 1
            if max_frames is not None and frames >= max_frames:
                break
        self.running = False
