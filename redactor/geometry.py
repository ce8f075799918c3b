"""
Rectangle geometry for the redaction pipeline.

Responsibility:
    Pure functions that move face rectangles between coordinate spaces
    and constrain them to a frame. No OpenCV calls, no pixel access.

Coordinate spaces:
    - Detection space: the (possibly downscaled) image the detector ran on.
    - Display space: the captured frame that is redacted and shown.

Scaling and clamping are separate steps; callers compose them in the
order their context requires.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True, slots=True)
class Rect:
    """Axis-aligned integer rectangle.

    Attributes:
        x: Left edge (may be negative before clamping).
        y: Top edge (may be negative before clamping).
        width: Extent along x. Non-positive means empty.
        height: Extent along y. Non-positive means empty.
    """

    x: int
    y: int
    width: int
    height: int

    @property
    def is_degenerate(self) -> bool:
        """True when the rectangle covers no pixels."""
        return self.width <= 0 or self.height <= 0

    @property
    def area(self) -> int:
        if self.is_degenerate:
            return 0
        return self.width * self.height

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)


def clamp_to_bounds(rect: Rect, frame_width: int, frame_height: int) -> Rect:
    """Constrain a rectangle to [0, frame_width) x [0, frame_height).

    Negative origins are moved to zero, then width and height are shrunk
    so the far edges do not pass the frame. Width and height only ever
    shrink. A rectangle lying wholly to the right of or below the frame
    comes out degenerate; callers must check ``is_degenerate`` before
    slicing pixels with the result.

    Args:
        rect: Rectangle in the frame's coordinate space.
        frame_width: Frame width in pixels.
        frame_height: Frame height in pixels.

    Returns:
        The clamped rectangle.
    """
    x, y, width, height = rect.as_tuple()

    if x < 0:
        x = 0
    if y < 0:
        y = 0
    if x + width > frame_width:
        width = frame_width - x
    if y + height > frame_height:
        height = frame_height - y

    return Rect(x=x, y=y, width=width, height=height)


def scale_rect(rect: Rect, inverse_factor: int) -> Rect:
    """Map a detection-space rectangle into display space.

    Every component is multiplied by the integer inverse scale factor.
    No clamping is performed.
    """
    if inverse_factor == 1:
        return rect
    return Rect(
        x=rect.x * inverse_factor,
        y=rect.y * inverse_factor,
        width=rect.width * inverse_factor,
        height=rect.height * inverse_factor,
    )


def inverse_scale_factor(scale_factor: float) -> int:
    """Integer inverse of a detection scale factor: round(1 / scale_factor)."""
    if scale_factor <= 0:
        raise ValueError(f"scale_factor must be positive, got {scale_factor}.")
    return int(round(1.0 / scale_factor))
