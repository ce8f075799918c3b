"""
Detector — the uniform face detection contract for the redaction pipeline.

Public contract:
    FaceDetector.detect(frame: np.ndarray) -> list[Detection]

Two interchangeable variants implement it:
    - CascadeDetector: one or more Haar cascades (front face, profile, ...)
      run in sequence on a grayscale, equalized copy of the frame.
    - YuNetDetector: OpenCV's FaceDetectorYN run on the raw color frame.

The variant is chosen once at startup by create_detector(); the control
loop depends only on FaceDetector.

Constraints:
    - Input must be a BGR numpy array (as returned by OpenCV).
    - Returned rectangles are in detection space (see geometry).
    - Detection is not re-entrant; one handle serves one loop.

Non-goals:
    - No camera access, redaction, or display.
    - No tracking or temporal state.
"""

import abc
import logging
from typing import List, Sequence

import cv2
import numpy as np

from redactor.config import AppConfig, DetectionConfig
from redactor.detection import Detection
from redactor.errors import DetectionError
from redactor.model_loader import load_cascades, load_yunet
from redactor.postprocessor import (
    filter_by_confidence,
    parse_cascade_output,
    parse_yunet_output,
)
from redactor.preprocessor import resize_for_detection, to_equalized_gray

logger = logging.getLogger(__name__)


class FaceDetector(abc.ABC):
    """Base class for detector variants.

    Subclasses implement _infer() against their backend. detect() wraps it
    with input validation, detection-space resizing, backend error
    translation, and confidence filtering, so every variant honours the
    same contract.
    """

    name = "detector"

    def __init__(self, config: DetectionConfig) -> None:
        self._config = config

    @property
    def config(self) -> DetectionConfig:
        """Return the active detection configuration (read-only)."""
        return self._config

    def detect(self, frame: np.ndarray) -> List[Detection]:
        """Detect faces in a single BGR frame.

        Args:
            frame: A BGR image as a numpy array with shape (H, W, 3)
                   and dtype uint8.

        Returns:
            Detections with confidence >= the configured threshold, in
            backend order, with rectangles in detection space.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame has incorrect shape or is empty.
            DetectionError: If the backend fails during inference.
        """
        self._validate_frame(frame)

        image = resize_for_detection(frame, self._config.scale_factor)

        try:
            candidates = self._infer(image)
        except cv2.error as e:
            raise DetectionError(f"{self.name} inference failed: {e}") from e

        detections = filter_by_confidence(candidates, self._config.confidence_threshold)

        if detections:
            logger.debug(
                "%s: %d face(s) kept of %d candidate(s): %s",
                self.name,
                len(detections),
                len(candidates),
                [d.rect.as_tuple() for d in detections],
            )

        return detections

    @abc.abstractmethod
    def _infer(self, image: np.ndarray) -> List[Detection]:
        """Run the backend on a detection-space BGR image."""

    @staticmethod
    def _validate_frame(frame: np.ndarray) -> None:
        """Validate that the input frame meets the API contract.

        Raises:
            TypeError: If frame is not a numpy ndarray.
            ValueError: If frame is empty or has wrong dimensions.
        """
        if not isinstance(frame, np.ndarray):
            raise TypeError(
                f"Expected frame to be a numpy ndarray, "
                f"got {type(frame).__name__}. "
                f"Use VideoCapture.read() to obtain frames."
            )

        if frame.size == 0:
            raise ValueError(
                "Frame is empty (zero size). "
                "Ensure the capture source is providing valid frames."
            )

        if frame.ndim != 3:
            raise ValueError(
                f"Expected a 3-dimensional frame (H, W, C), "
                f"got {frame.ndim} dimensions with shape {frame.shape}."
            )

        if frame.shape[2] != 3:
            raise ValueError(
                f"Expected 3 channels (BGR), got {frame.shape[2]} channels."
            )


class CascadeDetector(FaceDetector):
    """Haar cascade variant.

    Each cascade runs against the same equalized grayscale image and its
    hits are appended to one list, in cascade order. Overlapping hits from
    different cascades are kept; redacting a region twice is harmless.
    """

    name = "cascade"

    def __init__(
        self,
        classifiers: Sequence[cv2.CascadeClassifier],
        config: DetectionConfig,
    ) -> None:
        super().__init__(config)
        if not classifiers:
            raise ValueError("CascadeDetector needs at least one classifier.")
        self._classifiers = list(classifiers)
        self._min_size = (config.min_size, config.min_size)

    def _infer(self, image: np.ndarray) -> List[Detection]:
        gray = to_equalized_gray(image)

        detections: List[Detection] = []
        for classifier in self._classifiers:
            rects = classifier.detectMultiScale(
                gray,
                scaleFactor=self._config.cascade_scale_factor,
                minNeighbors=self._config.min_neighbors,
                minSize=self._min_size,
            )
            detections.extend(parse_cascade_output(rects))
        return detections


class YuNetDetector(FaceDetector):
    """YuNet neural variant (cv2.FaceDetectorYN).

    The handle's input size must match the image it runs on; it is
    refreshed whenever an incoming image differs from the last one.
    """

    name = "yunet"

    def __init__(self, face_detector: cv2.FaceDetectorYN, config: DetectionConfig) -> None:
        super().__init__(config)
        self._face_detector = face_detector
        self._input_size = None

    def _infer(self, image: np.ndarray) -> List[Detection]:
        h, w = image.shape[:2]
        if self._input_size != (w, h):
            self._face_detector.setInputSize((w, h))
            self._input_size = (w, h)

        _, faces = self._face_detector.detect(image)
        return parse_yunet_output(faces)


def detection_input_size(config: AppConfig):
    """(width, height) of detection-space images for the configured capture."""
    inverse = config.detection.scale_factor_inverse
    return (
        max(1, config.capture.width // inverse),
        max(1, config.capture.height // inverse),
    )


def create_detector(config: AppConfig) -> FaceDetector:
    """Build the configured detector variant, loading its models.

    Raises:
        DetectorInitError: If model files are missing or invalid.
    """
    if config.model.detector == "cascade":
        detector = CascadeDetector(load_cascades(config.model), config.detection)
    else:
        handle = load_yunet(
            config.model,
            input_size=detection_input_size(config),
            score_threshold=config.detection.confidence_threshold,
        )
        detector = YuNetDetector(handle, config.detection)

    logger.info(
        "Detector initialized (variant=%s, confidence_threshold=%.2f, scale_factor=%.3f)",
        detector.name,
        config.detection.confidence_threshold,
        config.detection.scale_factor,
    )
    return detector
