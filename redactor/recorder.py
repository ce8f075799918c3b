"""
Persistence sinks for the redaction pipeline.

Responsibility:
    - VideoRecorder: encode fully redacted frames to a video file.
    - RedactionLog: keep the regions actually redacted on each frame and
      write them as a JSON or CSV audit at shutdown.

Both are optional and configured at startup; when disabled they are not
constructed at all.

Non-goals:
    - No detection or redaction.
    - No display.
"""

import logging
from pathlib import Path
from typing import List, Tuple

import cv2
import numpy as np

from redactor.config import resolve_path
from redactor.errors import RecordingError
from redactor.redaction import RedactedRegion
from redactor.serializer import RegionsByFrame, write_csv, write_json

logger = logging.getLogger(__name__)


class VideoRecorder:
    """cv2.VideoWriter wrapper for redacted output.

    Usage:
        with VideoRecorder("output/redacted.mp4", "mp4v", 20.0, (640, 480)) as rec:
            rec.write(frame)
    """

    def __init__(
        self,
        path: str,
        fourcc: str,
        fps: float,
        size: Tuple[int, int],
    ) -> None:
        """Open the video writer.

        Args:
            path: Output file (relative paths resolve against the project root).
            fourcc: Four-character codec code, e.g. 'mp4v' or 'XVID'.
            fps: Frame rate stamped into the file.
            size: (width, height) of the frames that will be written.

        Raises:
            RecordingError: If the writer cannot be opened.
        """
        output_file = resolve_path(path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        self._path = output_file
        self._size = tuple(size)
        self._frames_written = 0

        code = cv2.VideoWriter_fourcc(*fourcc)
        self._writer = cv2.VideoWriter(str(output_file), code, fps, self._size)
        if not self._writer.isOpened():
            self._writer.release()
            raise RecordingError(
                f"Failed to open video writer: {output_file} "
                f"(fourcc={fourcc}, fps={fps}, size={self._size[0]}x{self._size[1]})."
            )

        logger.info(
            "Video writer opened: %s (%dx%d @ %.1f fps)",
            output_file, self._size[0], self._size[1], fps,
        )

    @property
    def path(self) -> Path:
        return self._path

    @property
    def frames_written(self) -> int:
        return self._frames_written

    def is_opened(self) -> bool:
        return self._writer is not None and self._writer.isOpened()

    def write(self, frame: np.ndarray) -> None:
        """Encode one frame.

        Raises:
            RecordingError: If the frame size does not match the writer or
                            the encoder fails.
        """
        h, w = frame.shape[:2]
        if (w, h) != self._size:
            # VideoWriter silently drops mismatched frames; make it visible
            raise RecordingError(
                f"Frame size {w}x{h} does not match writer size "
                f"{self._size[0]}x{self._size[1]}."
            )

        try:
            self._writer.write(frame)
        except cv2.error as e:
            raise RecordingError(f"Failed to encode frame: {e}") from e
        self._frames_written += 1

    def release(self) -> None:
        """Flush and close the video file."""
        if self._writer is not None:
            self._writer.release()
            self._writer = None
            logger.info(
                "Video writer released: %s (%d frames).", self._path, self._frames_written
            )

    def __enter__(self) -> "VideoRecorder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class RedactionLog:
    """Audit of the regions redacted on each frame, written on close().

    The output format follows the file suffix: '.json' or '.csv'.
    """

    def __init__(self, path: str) -> None:
        self._path = resolve_path(path)
        self._regions: RegionsByFrame = {}

    @property
    def path(self) -> Path:
        return self._path

    @property
    def frames_logged(self) -> int:
        return len(self._regions)

    def add(self, frame_id: int, regions: List[RedactedRegion]) -> None:
        """Record what was redacted on one presented frame."""
        self._regions[frame_id] = list(regions)

    def close(self) -> None:
        """Write the audit and clear it. Nothing is written if no frame was logged."""
        if not self._regions:
            logger.info("Redaction log empty; nothing written to %s.", self._path)
            return

        if self._path.suffix.lower() == ".csv":
            write_csv(self._regions, str(self._path))
        else:
            write_json(self._regions, str(self._path))
        self._regions = {}
