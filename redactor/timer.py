"""
Frame timing for the control loop.

FrameTimer accumulates elapsed time over start/stop pairs and reports
frames per second, in the manner of cv2.TickMeter. The loop keeps two:
one around detection only, one around the whole iteration. FrameStats
carries both figures to the display overlay.
"""

import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class FrameStats:
    """Measurements for one presented frame.

    Attributes:
        detection_fps: FPS of the detection step alone (the
                       model cost).
        detection_ms: Detection latency of this frame.
        frame_ms: End-to-end latency of the previous iteration, from
                  frame acquisition to quit-key poll. 0.0 on the first frame.
        faces: Number of detections redacted on this frame.
    """

    detection_fps: float = 0.0
    detection_ms: float = 0.0
    frame_ms: float = 0.0
    faces: int = 0


class FrameTimer:
    """Start/stop/reset timer producing an FPS figure.

    Args:
        clock: Monotonic clock returning seconds. Defaults to
               time.perf_counter; tests inject a fake.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._started_at = None
        self._elapsed = 0.0
        self._count = 0

    def start(self) -> None:
        self._started_at = self._clock()

    def stop(self) -> None:
        """Close the current measurement. A stop without start is ignored."""
        if self._started_at is None:
            return
        self._elapsed += self._clock() - self._started_at
        self._count += 1
        self._started_at = None

    def reset(self) -> None:
        self._started_at = None
        self._elapsed = 0.0
        self._count = 0

    @property
    def running(self) -> bool:
        return self._started_at is not None

    @property
    def count(self) -> int:
        """Completed start/stop pairs since the last reset."""
        return self._count

    @property
    def elapsed(self) -> float:
        """Accumulated seconds since the last reset."""
        return self._elapsed

    @property
    def elapsed_ms(self) -> float:
        return self._elapsed * 1000.0

    @property
    def fps(self) -> float:
        """Completed measurements per second of measured time (0.0 if none)."""
        if self._count == 0 or self._elapsed <= 0:
            return 0.0
        return self._count / self._elapsed
