"""
Tests for the postprocessing module.
"""

import numpy as np
import pytest

from redactor.detection import Detection
from redactor.geometry import Rect
from redactor.postprocessor import (
    CASCADE_CONFIDENCE,
    filter_by_confidence,
    parse_cascade_output,
    parse_yunet_output,
)


def test_parse_yunet_valid_detection():
    """Test parsing a single YuNet output row."""
    # [x, y, w, h, 10 landmark coordinates, score]
    row = [100.0, 50.0, 80.0, 90.0] + [0.0] * 10 + [0.92]
    faces = np.array([row], dtype=np.float32)

    detections = parse_yunet_output(faces)

    assert len(detections) == 1
    det = detections[0]
    assert det.rect == Rect(100, 50, 80, 90)
    assert det.confidence == pytest.approx(0.92, abs=1e-5)


def test_parse_yunet_keeps_out_of_frame_boxes():
    """Negative origins are passed through for later clamping."""
    row = [-12.0, -3.0, 60.0, 60.0] + [0.0] * 10 + [0.8]
    detections = parse_yunet_output(np.array([row], dtype=np.float32))
    assert detections[0].rect == Rect(-12, -3, 60, 60)


def test_parse_yunet_none():
    """YuNet returns None when no face is found."""
    assert parse_yunet_output(None) == []
    assert parse_yunet_output(np.zeros((0, 15), dtype=np.float32)) == []


def test_parse_cascade_output():
    """Cascade boxes get the fixed cascade confidence."""
    detections = parse_cascade_output(np.array([[1, 2, 3, 4]], dtype=np.int32))
    assert detections == [Detection(Rect(1, 2, 3, 4), CASCADE_CONFIDENCE)]
    assert parse_cascade_output(()) == []


def test_filter_by_confidence_preserves_order():
    """Filtering keeps order and includes the threshold itself."""
    dets = [
        Detection(Rect(0, 0, 1, 1), 0.9),
        Detection(Rect(1, 1, 1, 1), 0.5),
        Detection(Rect(2, 2, 1, 1), 0.7),
    ]
    kept = filter_by_confidence(dets, 0.7)
    assert [d.rect.x for d in kept] == [0, 2]
