"""
Display sink for the redaction pipeline.

Responsibility:
    Own the single OpenCV window of the session: create it at startup,
    overlay frame statistics, present frames, poll for the quit key, and
    destroy it at shutdown.

Non-goals:
    - No detection or redaction.
    - No file writing.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from redactor.errors import PresentationError
from redactor.timer import FrameStats

logger = logging.getLogger(__name__)

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.5
_FONT_THICKNESS = 1
_TEXT_COLOR = (0, 0, 255)  # red, BGR
_TEXT_ORIGIN = (10, 20)
_LINE_SPACING = 18


def draw_stats(frame: np.ndarray, stats: FrameStats) -> None:
    """Overlay FPS and latency text onto a frame, in place."""
    lines = [
        f"FPS: {stats.detection_fps:.2f}",
        f"detect {stats.detection_ms:.1f} ms | frame {stats.frame_ms:.1f} ms",
    ]
    x, y = _TEXT_ORIGIN
    for line in lines:
        cv2.putText(
            frame,
            line,
            (x, y),
            _FONT,
            _FONT_SCALE,
            _TEXT_COLOR,
            _FONT_THICKNESS,
            cv2.LINE_8,
        )
        y += _LINE_SPACING


class Window:
    """A named HighGUI window sized to the capture resolution.

    Usage:
        with Window("window", 640, 480) as window:
            window.show(frame, stats)
            key = window.poll_key(1)
    """

    def __init__(
        self,
        name: str,
        width: int,
        height: int,
        show_stats: bool = True,
    ) -> None:
        """Create the window.

        Raises:
            PresentationError: If HighGUI cannot create a window
                               (e.g. no display available).
        """
        self._name = name
        self._show_stats = show_stats
        self._open = False

        try:
            cv2.namedWindow(name, cv2.WINDOW_GUI_NORMAL | cv2.WINDOW_KEEPRATIO)
            cv2.resizeWindow(name, width, height)
        except cv2.error as e:
            raise PresentationError(f"Failed to create window '{name}': {e}") from e

        self._open = True
        logger.info("Window created: name=%s, size=%dx%d", name, width, height)

    @property
    def name(self) -> str:
        return self._name

    def show(self, frame: np.ndarray, stats: Optional[FrameStats] = None) -> None:
        """Overlay stats (if enabled) onto the frame and present it.

        Raises:
            PresentationError: If HighGUI rejects the frame.
        """
        if self._show_stats and stats is not None:
            draw_stats(frame, stats)

        try:
            cv2.imshow(self._name, frame)
        except cv2.error as e:
            raise PresentationError(f"Failed to present frame: {e}") from e

    def poll_key(self, delay_ms: int = 1) -> int:
        """Wait up to delay_ms for a key press.

        Returns:
            The key code (low 8 bits), or 255 when no key was pressed.
        """
        return cv2.waitKey(delay_ms) & 0xFF

    def release(self) -> None:
        """Destroy the window."""
        if self._open:
            try:
                cv2.destroyWindow(self._name)
            except cv2.error as e:
                logger.debug("destroyWindow failed for '%s': %s", self._name, e)
            self._open = False
            logger.debug("Window destroyed: %s", self._name)

    def __enter__(self) -> "Window":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
