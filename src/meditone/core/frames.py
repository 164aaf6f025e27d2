"""
Frame scheduler - cooperative animation-frame callbacks.

Everything in meditone runs on one thread. Loops that need to run once per
displayed frame (progress polling, rendering, media pumping) request a frame
callback here and the host calls tick() once per frame.
"""

import itertools
import time
from typing import Callable, Optional

from loguru import logger

FrameCallback = Callable[[float], None]


class FrameScheduler:
    """Queue of one-shot frame callbacks, drained once per tick.

    A callback requested while a tick is running is deferred to the next
    tick, so a loop that reschedules itself runs exactly once per frame.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._callbacks: dict[int, FrameCallback] = {}
        self._due: dict[int, FrameCallback] = {}
        self._ids = itertools.count(1)
        self.frame_count = 0

    def request_frame(self, callback: FrameCallback) -> int:
        """Schedule callback for the next tick.

        Args:
            callback: Called with the frame timestamp in seconds

        Returns:
            Handle usable with cancel_frame()
        """
        handle = next(self._ids)
        self._callbacks[handle] = callback
        return handle

    def cancel_frame(self, handle: Optional[int]) -> None:
        """Cancel a pending callback. Unknown or spent handles are ignored."""
        if handle is not None:
            self._callbacks.pop(handle, None)
            # Also drop it from the tick in progress
            self._due.pop(handle, None)

    def is_pending(self, handle: Optional[int]) -> bool:
        return handle is not None and handle in self._callbacks

    @property
    def pending(self) -> int:
        """Number of callbacks waiting for the next tick."""
        return len(self._callbacks)

    def tick(self, timestamp: Optional[float] = None) -> int:
        """Run every callback that was pending when the tick started.

        Args:
            timestamp: Frame time in seconds (defaults to the scheduler clock)

        Returns:
            Number of callbacks invoked
        """
        now = self._clock() if timestamp is None else timestamp
        self._due = self._callbacks
        self._callbacks = {}
        self.frame_count += 1

        ran = 0
        while self._due:
            handle = next(iter(self._due))
            callback = self._due.pop(handle)
            try:
                callback(now)
            except Exception:
                logger.exception(f"Frame callback {handle} failed")
            ran += 1
        return ran
