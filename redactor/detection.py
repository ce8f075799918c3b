"""
Detection data transfer object.

This module defines the Detection dataclass, the single output type
returned by FaceDetector.detect(). It is a frozen container with no
behavior beyond data access.

Non-goals:
    - No rendering or redaction logic.
    - No coordinate transformation (that belongs in geometry).
"""

from dataclasses import dataclass

from redactor.geometry import Rect


@dataclass(frozen=True, slots=True)
class Detection:
    """A single candidate face with bounding box and confidence score.

    Attributes:
        rect: Bounding box in the coordinate space of the image the
              detector ran on. May extend past the image edges.
        confidence: Detection confidence score in [0.0, 1.0].
    """

    rect: Rect
    confidence: float
