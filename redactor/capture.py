"""
Frame capture for the redaction pipeline.

Responsibility:
    Own the single cv2.VideoCapture of the session. Opens a webcam device
    or a video file at a fixed resolution and hands out one frame per poll.

Non-goals:
    - No detection, redaction, or display.
    - No retry policy; the control loop decides what a miss means.
    - No resizing; detection-space scaling happens in the detector.

Robustness:
    - Validates the source at initialization time (fatal if unavailable).
    - A failed grab returns None instead of raising.
    - Releases the device on release(), context exit, or garbage collection.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from redactor.errors import CaptureUnavailableError

logger = logging.getLogger(__name__)

# Video extensions recognized as file sources
_VIDEO_EXTENSIONS = {".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv"}


class CaptureSource:
    """Single capture source: a webcam device index or a video file.

    The source type is auto-detected at initialization:
        - Integer or digit string  → webcam device index
        - File with video extension → video file

    Usage:
        with CaptureSource("0", 640, 480) as capture:
            frame = capture.grab_frame()   # None on a missed grab

    A video file that has run out of frames sets ``exhausted``; a webcam
    never does.
    """

    def __init__(self, source: Union[str, int], width: int, height: int) -> None:
        """Open and validate the capture source.

        Args:
            source: Device index (int or digit string) or video file path.
            width: Requested capture width in pixels.
            height: Requested capture height in pixels.

        Raises:
            CaptureUnavailableError: If the source does not exist or
                                     cannot be opened.
        """
        self._cap: Optional[cv2.VideoCapture] = None
        self._exhausted = False

        source_str = str(source).strip()

        if source_str.isdigit():
            self._mode = "webcam"
            target: Union[str, int] = int(source_str)
            source_desc = f"webcam device {target}"
        elif os.path.isfile(source_str):
            ext = Path(source_str).suffix.lower()
            if ext not in _VIDEO_EXTENSIONS:
                raise CaptureUnavailableError(
                    f"Unrecognized video extension: '{ext}' for source '{source_str}'. "
                    f"Supported videos: {_VIDEO_EXTENSIONS}."
                )
            self._mode = "video"
            target = source_str
            source_desc = f"video file '{source_str}'"
        else:
            raise CaptureUnavailableError(
                f"Capture source not found: '{source_str}'. "
                f"Provide a device index or a video file path."
            )

        self._cap = cv2.VideoCapture(target)
        if not self._cap.isOpened():
            self._cap.release()
            self._cap = None
            raise CaptureUnavailableError(
                f"Failed to open {source_desc}. "
                f"Ensure the source exists and is accessible."
            )

        if self._mode == "webcam":
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        self._frame_size = self._read_frame_size(width, height)

        logger.info(
            "CaptureSource opened: mode=%s, source=%s, size=%dx%d",
            self._mode, source_str, *self._frame_size,
        )

    def _read_frame_size(self, width: int, height: int) -> Tuple[int, int]:
        """Actual (width, height) delivered, falling back to the request."""
        actual_w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if actual_w <= 0 or actual_h <= 0:
            return width, height
        if (actual_w, actual_h) != (width, height):
            logger.warning(
                "Requested %dx%d capture, source delivers %dx%d.",
                width, height, actual_w, actual_h,
            )
        return actual_w, actual_h

    @property
    def frame_size(self) -> Tuple[int, int]:
        """(width, height) of frames produced by this source."""
        return self._frame_size

    @property
    def exhausted(self) -> bool:
        """True once a video file source has no more frames."""
        return self._exhausted

    def is_opened(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def grab_frame(self) -> Optional[np.ndarray]:
        """Read the next frame.

        Returns:
            A BGR frame, or None if this poll produced nothing.
        """
        if self._cap is None:
            return None

        ret, frame = self._cap.read()
        if not ret or frame is None:
            if self._mode == "video":
                self._exhausted = True
                logger.info("End of video reached.")
            return None

        return frame

    def release(self) -> None:
        """Release the capture handle."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.debug("VideoCapture released.")

    def __enter__(self) -> "CaptureSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __del__(self) -> None:
        """Safety net: release resources if not explicitly released."""
        # __init__ may have raised before _cap existed
        if getattr(self, "_cap", None) is not None:
            self.release()
