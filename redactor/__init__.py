"""
Face Redactor — real-time face blurring and outlining with OpenCV.

Public API:
    - load_config / AppConfig: Frozen, validated configuration.
    - create_detector / FaceDetector: Detector variants behind one contract.
    - FramePipeline: Detect and redact one frame in place.
    - RedactionLoop: The capture → redact → present control loop.
    - Detection, Rect, RedactedRegion: Data types flowing between stages.

Usage:
    from redactor import FramePipeline, create_detector, load_config

    config = load_config()
    pipeline = FramePipeline(create_detector(config), config)
    detections = pipeline.process(frame)   # frame is redacted in place
"""

from redactor.config import AppConfig, load_config
from redactor.detection import Detection
from redactor.detector import FaceDetector, create_detector
from redactor.geometry import Rect
from redactor.pipeline import FramePipeline, RedactionLoop
from redactor.redaction import RedactedRegion

__all__ = [
    "AppConfig",
    "Detection",
    "FaceDetector",
    "FramePipeline",
    "Rect",
    "RedactedRegion",
    "RedactionLoop",
    "create_detector",
    "load_config",
]
