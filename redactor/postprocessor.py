"""
Postprocessing for the detection stage.

Responsibility:
    Parse raw detector backend output into lists of Detection objects.
    No thresholding and no clamping happen here; boxes keep whatever
    coordinates the backend produced, in detection space.

Non-goals:
    - No drawing, redaction, or display logic.
    - No model loading or inference.

Hard-coded:
    - YuNet output layout: (N, 15) float32 rows of
      [x, y, w, h, 10 landmark coordinates, score].
    - Cascade output layout: (N, 4) int rows of [x, y, w, h], no score.
"""

from typing import List, Optional

import numpy as np

from redactor.detection import Detection
from redactor.geometry import Rect

# Column of the face score in a YuNet output row
_YUNET_SCORE_COLUMN = 14

# Cascades report hits without a score; every hit is taken at full confidence
CASCADE_CONFIDENCE = 1.0


def parse_yunet_output(faces: Optional[np.ndarray]) -> List[Detection]:
    """Parse FaceDetectorYN.detect() output into Detection objects.

    Args:
        faces: The second element returned by FaceDetectorYN.detect():
               an (N, 15) array, or None when no face was found.

    Returns:
        Detections in backend order. Landmarks are discarded.
    """
    if faces is None:
        return []

    raw = np.asarray(faces, dtype=np.float32)
    if raw.size == 0:
        return []

    detections: List[Detection] = []
    for row in raw.reshape(-1, raw.shape[-1]):
        # Truncate toward zero, matching integer pixel indexing
        rect = Rect(
            x=int(row[0]),
            y=int(row[1]),
            width=int(row[2]),
            height=int(row[3]),
        )
        detections.append(Detection(rect=rect, confidence=float(row[_YUNET_SCORE_COLUMN])))

    return detections


def parse_cascade_output(rects) -> List[Detection]:
    """Parse CascadeClassifier.detectMultiScale() output into Detection objects.

    Args:
        rects: Sequence (or array) of (x, y, w, h) boxes. An empty tuple
               is what OpenCV returns when nothing was found.

    Returns:
        Detections in backend order, each with CASCADE_CONFIDENCE.
    """
    return [
        Detection(
            rect=Rect(x=int(x), y=int(y), width=int(w), height=int(h)),
            confidence=CASCADE_CONFIDENCE,
        )
        for (x, y, w, h) in rects
    ]


def filter_by_confidence(
    detections: List[Detection],
    confidence_threshold: float,
) -> List[Detection]:
    """Keep detections whose confidence is at or above the threshold.

    Order is preserved.
    """
    return [d for d in detections if d.confidence >= confidence_threshold]
