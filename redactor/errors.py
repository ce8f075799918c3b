"""
Exception hierarchy for the redaction pipeline.

Each exception names the pipeline stage that failed so the CLI can report
it on exit. Failures are split into two families:

    - Fatal: capture unavailable, detector initialization, presentation.
      These terminate the process.
    - Per-frame (FrameError): detection or recording failures on a single
      frame. The control loop drops the frame and continues.

Degenerate rectangles are NOT errors and have no exception type.
"""


class RedactorError(Exception):
    """Base class for all pipeline errors."""

    stage = "pipeline"


class CaptureUnavailableError(RedactorError, RuntimeError):
    """The capture device or file could not be opened, or stopped producing frames."""

    stage = "capture"


class DetectorInitError(RedactorError, RuntimeError):
    """A detector model is missing, unreadable, or rejected by OpenCV."""

    stage = "detector init"


class PresentationError(RedactorError, RuntimeError):
    """The display sink rejected a frame."""

    stage = "presentation"


class FrameError(RedactorError):
    """A failure confined to one frame. The loop may recover from it."""


class DetectionError(FrameError):
    """The detector backend raised during inference."""

    stage = "detection"


class RecordingError(FrameError):
    """The persistence sink could not be opened or rejected a frame."""

    stage = "recording"
