"""
Tests for the detector module.
"""

from pathlib import Path

import cv2
import numpy as np
import pytest

from redactor.config import AppConfig, DetectionConfig, ModelConfig
from redactor.detection import Detection
from redactor.detector import (
    CascadeDetector,
    FaceDetector,
    YuNetDetector,
    create_detector,
    detection_input_size,
)
from redactor.errors import DetectionError, DetectorInitError
from redactor.geometry import Rect

# Skip integration tests if model files are missing
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_YUNET_EXISTS = (_PROJECT_ROOT / "models/face_detection_yunet_2023mar.onnx").exists()


class _StubDetector(FaceDetector):
    """Backend returning canned candidates and recording what it saw."""

    name = "stub"

    def __init__(self, candidates, config=None):
        super().__init__(config or DetectionConfig())
        self.candidates = candidates
        self.seen_shapes = []

    def _infer(self, image):
        self.seen_shapes.append(image.shape)
        return list(self.candidates)


class _FailingDetector(FaceDetector):
    name = "failing"

    def _infer(self, image):
        raise cv2.error("backend exploded")


class _FakeCascade:
    """Stands in for cv2.CascadeClassifier."""

    def __init__(self, rects):
        self.rects = rects
        self.calls = []

    def detectMultiScale(self, image, scaleFactor, minNeighbors, minSize):
        self.calls.append((image.shape, scaleFactor, minNeighbors, minSize))
        return self.rects


class _FakeYuNet:
    """Stands in for cv2.FaceDetectorYN."""

    def __init__(self, faces):
        self.faces = faces
        self.input_sizes = []

    def setInputSize(self, size):
        self.input_sizes.append(size)

    def detect(self, image):
        return 1, self.faces


def _yunet_row(x, y, w, h, score):
    row = np.zeros(15, dtype=np.float32)
    row[:4] = (x, y, w, h)
    row[14] = score
    return row


def test_filters_below_threshold():
    """Detections under the threshold are dropped; at-threshold ones kept."""
    detector = _StubDetector(
        [
            Detection(Rect(0, 0, 10, 10), 0.5),
            Detection(Rect(5, 5, 10, 10), 0.7),
            Detection(Rect(9, 9, 10, 10), 0.95),
        ],
        DetectionConfig(confidence_threshold=0.7),
    )

    detections = detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))

    assert [d.confidence for d in detections] == [0.7, 0.95]


def test_detect_resizes_into_detection_space():
    """With scale_factor 0.5 the backend sees a half-size image."""
    detector = _StubDetector([], DetectionConfig(scale_factor=0.5))

    detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))

    assert detector.seen_shapes == [(240, 320, 3)]


def test_backend_error_becomes_detection_error():
    """OpenCV errors during inference surface as DetectionError."""
    detector = _FailingDetector(DetectionConfig())
    with pytest.raises(DetectionError, match="backend exploded"):
        detector.detect(np.zeros((48, 64, 3), dtype=np.uint8))


def test_detector_input_validation():
    """Test strict input validation."""
    detector = _StubDetector([])

    # 1. Wrong type
    with pytest.raises(TypeError):
        detector.detect("not a frame")

    # 2. Empty frame
    with pytest.raises(ValueError):
        detector.detect(np.array([]))

    # 3. Wrong shape (grayscale)
    gray = np.zeros((100, 100), dtype=np.uint8)
    with pytest.raises(ValueError, match="3-dimensional"):
        detector.detect(gray)

    # 4. Wrong channels (BGRA)
    bgra = np.zeros((100, 100, 4), dtype=np.uint8)
    with pytest.raises(ValueError, match="3 channels"):
        detector.detect(bgra)


def test_cascade_runs_every_classifier_on_gray():
    """All cascades see the same grayscale image; hits are concatenated."""
    front = _FakeCascade(np.array([[10, 20, 30, 40]], dtype=np.int32))
    profile = _FakeCascade(np.array([[100, 120, 50, 50], [300, 200, 60, 60]], dtype=np.int32))
    detector = CascadeDetector([front, profile], DetectionConfig(min_size=30))

    detections = detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))

    assert [d.rect for d in detections] == [
        Rect(10, 20, 30, 40),
        Rect(100, 120, 50, 50),
        Rect(300, 200, 60, 60),
    ]
    assert all(d.confidence == 1.0 for d in detections)
    assert front.calls[0][0] == (480, 640)
    assert front.calls[0][3] == (30, 30)
    assert profile.calls[0][0] == (480, 640)


def test_cascade_no_hits():
    """OpenCV returns an empty tuple when nothing is found."""
    detector = CascadeDetector([_FakeCascade(())], DetectionConfig())
    assert detector.detect(np.zeros((48, 64, 3), dtype=np.uint8)) == []


def test_cascade_requires_classifier():
    with pytest.raises(ValueError):
        CascadeDetector([], DetectionConfig())


def test_yunet_parses_and_filters():
    """YuNet rows become detections; low scores are dropped."""
    faces = np.stack([
        _yunet_row(100.7, 100.2, 100.9, 100.0, 0.95),
        _yunet_row(10, 10, 20, 20, 0.5),
    ])
    handle = _FakeYuNet(faces)
    detector = YuNetDetector(handle, DetectionConfig(confidence_threshold=0.7))

    detections = detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))

    assert len(detections) == 1
    assert detections[0].rect == Rect(100, 100, 100, 100)
    assert detections[0].confidence == pytest.approx(0.95)


def test_yunet_updates_input_size_once():
    """The input size is set on first use and when the image size changes."""
    handle = _FakeYuNet(None)
    detector = YuNetDetector(handle, DetectionConfig())

    detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))
    detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))
    detector.detect(np.zeros((240, 320, 3), dtype=np.uint8))

    assert handle.input_sizes == [(640, 480), (320, 240)]


def test_detection_input_size():
    config = AppConfig(detection=DetectionConfig(scale_factor=0.5))
    assert detection_input_size(config) == (320, 240)


def test_create_detector_missing_model(tmp_path):
    """A missing YuNet model fails at startup with the expected path."""
    config = AppConfig(model=ModelConfig(yunet_path=str(tmp_path / "missing.onnx")))
    with pytest.raises(DetectorInitError, match="missing.onnx"):
        create_detector(config)


def test_create_detector_missing_cascade(tmp_path):
    config = AppConfig(
        model=ModelConfig(detector="cascade", cascade_paths=(str(tmp_path / "nope.xml"),))
    )
    with pytest.raises(DetectorInitError, match="nope.xml"):
        create_detector(config)


def test_create_detector_bundled_cascade():
    """Bare cascade names resolve to the files shipped with opencv-python."""
    config = AppConfig(
        model=ModelConfig(detector="cascade", cascade_paths=("haarcascade_frontalface_alt.xml",))
    )
    detector = create_detector(config)

    assert isinstance(detector, CascadeDetector)
    assert detector.detect(np.zeros((240, 320, 3), dtype=np.uint8)) == []


@pytest.mark.skipif(not _YUNET_EXISTS, reason="Model files not found")
def test_yunet_integration_smoke():
    """Smoke test: YuNet initializes and runs on a dummy frame."""
    detector = create_detector(AppConfig())

    detections = detector.detect(np.zeros((480, 640, 3), dtype=np.uint8))
    assert isinstance(detections, list)
