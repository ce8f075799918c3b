"""
Frame pipeline and control loop.

Responsibility:
    - FramePipeline: detect faces on one frame and redact them in place
      under the fixed policy.
    - RedactionLoop: drive capture → detect → redact → record → present →
      quit-poll, one frame at a time, with detection FPS and end-to-end
      latency measurement.

Loop states:
    IDLE → CAPTURING → DETECTING → REDACTING → PRESENTING → IDLE
    with a single terminal transition to TERMINATED on the quit key or
    the end of a video file.

Failure policy:
    - A missed grab is skipped silently; too many in a row is fatal.
    - A per-frame failure (FrameError) is logged. If detection failed the
      frame is dropped, never shown or recorded unredacted. Too many
      failures in a row is fatal.
    - Everything else propagates to the caller.

The loop is single-threaded. The current frame is owned by step() for the
duration of one iteration and is never retained.
"""

import logging
import time
from enum import Enum
from typing import Callable, List, Optional

import numpy as np

from redactor.config import AppConfig
from redactor.detection import Detection
from redactor.detector import FaceDetector
from redactor.errors import CaptureUnavailableError, DetectionError, FrameError, RecordingError
from redactor.redaction import RedactedRegion, apply_redactions
from redactor.timer import FrameStats, FrameTimer

logger = logging.getLogger(__name__)


class LoopState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    DETECTING = "detecting"
    REDACTING = "redacting"
    PRESENTING = "presenting"
    TERMINATED = "terminated"


class FramePipeline:
    """Detection plus redaction for a single frame.

    Usage:
        pipeline = FramePipeline(detector, config)
        detections = pipeline.process(frame)   # frame is redacted in place
    """

    def __init__(self, detector: FaceDetector, config: AppConfig) -> None:
        self._detector = detector
        self._redaction = config.redaction
        self._inverse_factor = config.detection.scale_factor_inverse

    @property
    def inverse_factor(self) -> int:
        return self._inverse_factor

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """Run the detector. Rectangles come back in detection space."""
        return self._detector.detect(frame)

    def redact(self, frame: np.ndarray, detections: List[Detection]) -> List[RedactedRegion]:
        """Apply the redaction policy to every detection, in place.

        Returns the clamped display-space regions that were touched.
        """
        return apply_redactions(frame, detections, self._redaction, self._inverse_factor)

    def process(self, frame: np.ndarray) -> List[Detection]:
        """Detect and redact in one call. Returns the detections."""
        detections = self.detect(frame)
        self.redact(frame, detections)
        return detections


class RedactionLoop:
    """The per-frame control loop.

    Collaborators are duck-typed so tests can substitute stubs:
        capture:   grab_frame() -> Optional[ndarray], exhausted
        display:   show(frame, stats), poll_key(delay_ms) -> int
        recorder:  is_opened() -> bool, write(frame)
        redaction_log: add(frame_id, regions)

    display, recorder, and redaction_log are optional.
    """

    def __init__(
        self,
        capture,
        pipeline: FramePipeline,
        config: AppConfig,
        display=None,
        recorder=None,
        redaction_log=None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._capture = capture
        self._pipeline = pipeline
        self._display = display
        self._recorder = recorder
        self._redaction_log = redaction_log

        self._loop_config = config.pipeline
        self._quit_key = config.display.quit_key
        self._wait_ms = config.display.wait_ms

        self._detection_timer = FrameTimer(clock)
        self._frame_timer = FrameTimer(clock)
        self._last_frame_ms = 0.0

        self._state = LoopState.IDLE
        self._next_frame_id = 0
        self._frames_presented = 0
        self._frames_dropped = 0
        self._over_budget = 0
        self._consecutive_misses = 0
        self._consecutive_failures = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def frames_presented(self) -> int:
        return self._frames_presented

    @property
    def frames_dropped(self) -> int:
        return self._frames_dropped

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self) -> int:
        """Iterate until the quit key or end of stream.

        Returns:
            The number of frames presented.

        Raises:
            CaptureUnavailableError: If the source stops producing frames.
            FrameError: If per-frame failures exceed the configured limit.
            PresentationError: If the display rejects a frame.
        """
        logger.info("Redaction loop started.")
        while self.step():
            pass
        logger.info(
            "Redaction loop stopped: %d frame(s) presented, %d dropped.",
            self._frames_presented, self._frames_dropped,
        )
        return self._frames_presented

    def step(self) -> bool:
        """Run one iteration.

        Returns:
            False once the loop has terminated, True otherwise.
        """
        if self._state is LoopState.TERMINATED:
            return False

        self._state = LoopState.CAPTURING
        frame = self._capture.grab_frame()
        if frame is None:
            return self._on_missed_grab()
        self._consecutive_misses = 0

        frame_id = self._next_frame_id
        self._next_frame_id += 1
        self._frame_timer.reset()
        self._frame_timer.start()

        # Detection alone is timed for the FPS figure
        self._state = LoopState.DETECTING
        self._detection_timer.start()
        try:
            detections = self._pipeline.detect(frame)
        except DetectionError as e:
            self._detection_timer.reset()
            self._on_frame_failure(frame_id, e, dropped=True)
            return self._poll_quit()
        self._detection_timer.stop()

        self._state = LoopState.REDACTING
        regions = self._pipeline.redact(frame, detections)

        recorded = self._record(frame_id, frame)
        if recorded:
            self._consecutive_failures = 0

        if self._redaction_log is not None:
            self._redaction_log.add(frame_id, regions)

        self._state = LoopState.PRESENTING
        stats = FrameStats(
            detection_fps=self._detection_timer.fps,
            detection_ms=self._detection_timer.elapsed_ms,
            frame_ms=self._last_frame_ms,
            faces=len(regions),
        )
        if self._display is not None:
            self._display.show(frame, stats)
        self._frames_presented += 1
        self._detection_timer.reset()

        keep_going = self._poll_quit()

        self._frame_timer.stop()
        self._last_frame_ms = self._frame_timer.elapsed_ms
        self._check_budget(frame_id)
        self._log_progress(stats)

        return keep_going

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _on_missed_grab(self) -> bool:
        """Handle a poll that produced no frame."""
        if self._capture.exhausted:
            logger.info("Capture source exhausted.")
            self._state = LoopState.TERMINATED
            return False

        self._consecutive_misses += 1
        if self._consecutive_misses >= self._loop_config.max_consecutive_misses:
            self._state = LoopState.TERMINATED
            raise CaptureUnavailableError(
                f"Capture produced {self._consecutive_misses} consecutive empty "
                f"grabs. Stopping to avoid an infinite loop."
            )

        logger.debug("Missed grab (%d in a row).", self._consecutive_misses)
        self._state = LoopState.IDLE
        return True

    def _record(self, frame_id: int, frame: np.ndarray) -> bool:
        """Write the redacted frame if a recorder is open. False on failure."""
        if self._recorder is None or not self._recorder.is_opened():
            return True
        try:
            self._recorder.write(frame)
        except RecordingError as e:
            # The frame is already redacted; it is still safe to present
            self._on_frame_failure(frame_id, e, dropped=False)
            return False
        return True

    def _on_frame_failure(self, frame_id: int, error: FrameError, dropped: bool) -> None:
        """Log a per-frame failure; escalate after too many in a row."""
        self._consecutive_failures += 1
        if dropped:
            self._frames_dropped += 1

        logger.warning(
            "Frame %d: %s failed (%s): %s",
            frame_id,
            error.stage,
            "frame dropped" if dropped else "continuing",
            error,
        )

        limit = self._loop_config.max_consecutive_failures
        if self._consecutive_failures >= limit:
            self._state = LoopState.TERMINATED
            raise type(error)(
                f"{self._consecutive_failures} consecutive frame failures; last: {error}"
            ) from error

        if dropped:
            self._state = LoopState.IDLE

    def _poll_quit(self) -> bool:
        """Poll the display for the quit key and move to IDLE or TERMINATED."""
        if self._display is not None:
            key = self._display.poll_key(self._wait_ms)
            if key == self._quit_key:
                logger.info("Quit signal received (key press).")
                self._state = LoopState.TERMINATED
                return False

        self._state = LoopState.IDLE
        return True

    def _check_budget(self, frame_id: int) -> None:
        """Flag iterations slower than the frame budget."""
        budget = self._loop_config.frame_budget_ms
        if self._last_frame_ms <= budget:
            return

        self._over_budget += 1
        if self._over_budget == 1:
            logger.warning(
                "Frame %d took %.1f ms, over the %.1f ms budget.",
                frame_id, self._last_frame_ms, budget,
            )
        else:
            logger.debug("Frame %d over budget: %.1f ms.", frame_id, self._last_frame_ms)

    def _log_progress(self, stats: FrameStats) -> None:
        if self._frames_presented % self._loop_config.log_interval != 0:
            return
        logger.info(
            "Presented %d frames (detect %.1f ms, frame %.1f ms, %d over budget, %d dropped).",
            self._frames_presented,
            stats.detection_ms,
            self._last_frame_ms,
            self._over_budget,
            self._frames_dropped,
        )
