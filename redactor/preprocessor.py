"""
Preprocessing for the detection stage.

Responsibility:
    Derive the image a detector runs on from the captured frame:
    downscale into detection space, and for the cascade backend,
    convert to grayscale and equalize contrast.

Non-goals:
    - No frame acquisition or I/O.
    - No inference or coordinate mapping.

The captured frame is never modified; every function returns a new array.
"""

import cv2
import numpy as np

from redactor.geometry import inverse_scale_factor


def resize_for_detection(frame: np.ndarray, scale_factor: float) -> np.ndarray:
    """Downscale a frame into detection space.

    Args:
        frame: Input BGR image (H, W, 3).
        scale_factor: Ratio in (0, 1], taken as 1/n. Each side is divided
                      by n so scale_rect(rect, n) maps boxes back exactly.
                      1.0 returns the frame unchanged.

    Returns:
        The resized image, or the input itself when no scaling is needed.

    Raises:
        ValueError: If the frame is empty.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot resize an empty frame. "
            "Ensure the capture source is providing valid frames."
        )

    inverse = inverse_scale_factor(scale_factor)
    if inverse == 1:
        return frame

    height, width = frame.shape[:2]
    size = (max(1, width // inverse), max(1, height // inverse))
    return cv2.resize(frame, size, interpolation=cv2.INTER_AREA)


def to_equalized_gray(frame: np.ndarray) -> np.ndarray:
    """Convert a BGR frame to a contrast-equalized single-channel image.

    Args:
        frame: Input BGR image (H, W, 3).

    Returns:
        A uint8 array of shape (H, W).

    Raises:
        ValueError: If the frame is empty.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the capture source is providing valid frames."
        )

    gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    return cv2.equalizeHist(gray)
