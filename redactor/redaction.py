"""
Redaction of face regions on a live frame.

Responsibility:
    Apply one redaction action per detection, in place, on the frame the
    control loop currently owns:

        - OUTLINE: draw a rectangle around the face (reversible annotation).
        - BLUR: replace the face region with a heavily smoothed copy
          (destructive; original pixels cannot be recovered).

Non-goals:
    - No detection, display, or file output.
    - No per-frame policy changes; the policy is fixed at startup.

Degenerate rectangles (no pixels inside the frame) are silently skipped.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import cv2
import numpy as np

from redactor.config import RedactionConfig
from redactor.detection import Detection
from redactor.geometry import Rect, clamp_to_bounds, scale_rect

logger = logging.getLogger(__name__)

_OUTLINE_COLOR = (0, 0, 255)  # red, BGR
_OUTLINE_THICKNESS = 2
_BLUR_STRENGTH = 177

# Largest kernel run at full resolution; bigger ones run on a shrunken ROI
MAX_DIRECT_KERNEL = 31


class RedactionPolicy(str, Enum):
    """How detected faces are redacted."""

    OUTLINE = "outline"
    BLUR = "blur"


@dataclass(frozen=True)
class RedactedRegion:
    """What one redaction actually touched on a frame.

    Attributes:
        rect: Display-space region, clamped to the frame.
        policy: 'blur' or 'outline'.
        confidence: Confidence of the detection behind it.
        kernel_size: Effective Gaussian kernel in display pixels (0 for outline).
    """

    rect: Rect
    policy: str
    confidence: float
    kernel_size: int = 0

    def to_dict(self) -> dict:
        return {
            "policy": self.policy,
            "x": self.rect.x,
            "y": self.rect.y,
            "width": self.rect.width,
            "height": self.rect.height,
            "confidence": round(self.confidence, 4),
            "kernel_size": self.kernel_size,
        }


def blur_kernel_size(region: Rect, strength: int, adaptive: bool = True) -> int:
    """Odd Gaussian kernel size used to blur a region.

    With ``adaptive`` the configured strength is raised so the kernel is
    at least as wide as the region's longer side; every output pixel then
    mixes in the whole face.
    """
    ksize = strength
    if adaptive:
        ksize = max(ksize, region.width, region.height)
    return ksize | 1


def _smooth(roi: np.ndarray, ksize: int) -> np.ndarray:
    """Gaussian-smooth an ROI with an effective kernel of ``ksize`` pixels.

    Kernels above MAX_DIRECT_KERNEL run on a copy shrunk by the same
    ratio and are scaled back up, so cost no longer grows with face size.
    """
    shrink = -(-ksize // MAX_DIRECT_KERNEL)
    if shrink <= 1:
        return cv2.GaussianBlur(roi, (ksize, ksize), 0)

    height, width = roi.shape[:2]
    small = cv2.resize(
        roi,
        (max(1, width // shrink), max(1, height // shrink)),
        interpolation=cv2.INTER_AREA,
    )
    small_ksize = (ksize // shrink) | 1
    small = cv2.GaussianBlur(small, (small_ksize, small_ksize), 0)
    return cv2.resize(small, (width, height), interpolation=cv2.INTER_LINEAR)


def draw_outline(
    frame: np.ndarray,
    rect: Rect,
    inverse_factor: int = 1,
    color: Tuple[int, int, int] = _OUTLINE_COLOR,
    thickness: int = _OUTLINE_THICKNESS,
) -> Optional[Rect]:
    """Draw a rectangle outline just inside a face region, in place.

    The rectangle is scaled from detection space to display space first.
    The line path is inset by half the thickness, rounded up, so the
    stroke stays inside the rectangle; OpenCV clips it at the frame edge.

    Args:
        frame: BGR frame to annotate (modified in place).
        rect: Face rectangle in detection space.
        inverse_factor: Integer detection-to-display scale.
        color: BGR outline color.
        thickness: Line thickness in pixels.

    Returns:
        The clamped display-space region drawn on, or None if nothing
        of it is inside the frame.
    """
    frame_height, frame_width = frame.shape[:2]
    scaled = scale_rect(rect, inverse_factor)
    visible = clamp_to_bounds(scaled, frame_width, frame_height)
    if scaled.is_degenerate or visible.is_degenerate:
        return None

    # A thick stroke spreads about half its width to each side of the path
    inset = (thickness + 1) // 2 if thickness > 1 else 0
    x1, y1 = scaled.x + inset, scaled.y + inset
    x2 = scaled.x + scaled.width - 1 - inset
    y2 = scaled.y + scaled.height - 1 - inset
    if x2 < x1 or y2 < y1:
        # Too small for an open outline; fill what there is
        x1, y1 = scaled.x, scaled.y
        x2, y2 = scaled.x + scaled.width - 1, scaled.y + scaled.height - 1
        thickness = cv2.FILLED

    cv2.rectangle(frame, (x1, y1), (x2, y2), color=color, thickness=thickness, lineType=cv2.LINE_8)
    return visible


def redact_blur(
    frame: np.ndarray,
    rect: Rect,
    inverse_factor: int = 1,
    strength: int = _BLUR_STRENGTH,
    adaptive: bool = True,
) -> Optional[Rect]:
    """Irreversibly blur a face region, in place.

    Steps:
        1. Scale the rectangle into display space.
        2. Clamp it to the frame's actual dimensions.
        3. Skip if nothing is left.
        4. Copy the region out as a snapshot.
        5. Gaussian-blur the snapshot.
        6. Write the blurred snapshot back over the same region.

    Reading from a snapshot keeps the blur from seeing its own partial
    output.

    Args:
        frame: BGR frame to redact (modified in place).
        rect: Face rectangle in detection space.
        inverse_factor: Integer detection-to-display scale.
        strength: Odd base kernel size.
        adaptive: Raise the kernel to span the whole region.

    Returns:
        The clamped display-space region that was blurred, or None.
    """
    frame_height, frame_width = frame.shape[:2]
    region = clamp_to_bounds(scale_rect(rect, inverse_factor), frame_width, frame_height)
    if region.is_degenerate:
        logger.debug("Skipping blur for out-of-frame rectangle %s", rect.as_tuple())
        return None

    y1, y2 = region.y, region.y + region.height
    x1, x2 = region.x, region.x + region.width

    snapshot = frame[y1:y2, x1:x2].copy()
    ksize = blur_kernel_size(region, strength, adaptive)
    frame[y1:y2, x1:x2] = _smooth(snapshot, ksize)
    return region


def apply_redactions(
    frame: np.ndarray,
    detections: Iterable[Detection],
    config: RedactionConfig,
    inverse_factor: int = 1,
) -> List[RedactedRegion]:
    """Apply the configured redaction to every detection, in order.

    Args:
        frame: BGR frame to redact (modified in place).
        detections: Detections in detection space.
        config: Redaction policy and parameters.
        inverse_factor: Integer detection-to-display scale.

    Returns:
        One RedactedRegion per detection that touched the frame. Detections
        entirely outside the frame are left out.
    """
    policy = RedactionPolicy(config.policy)
    regions = []

    for det in detections:
        if policy is RedactionPolicy.BLUR:
            touched = redact_blur(
                frame,
                det.rect,
                inverse_factor=inverse_factor,
                strength=config.blur_strength,
                adaptive=config.adaptive_kernel,
            )
            ksize = 0
            if touched is not None:
                ksize = blur_kernel_size(touched, config.blur_strength, config.adaptive_kernel)
        else:
            touched = draw_outline(
                frame,
                det.rect,
                inverse_factor=inverse_factor,
                color=config.outline_color,
                thickness=config.outline_thickness,
            )
            ksize = 0

        if touched is not None:
            regions.append(RedactedRegion(touched, policy.value, det.confidence, ksize))

    return regions
