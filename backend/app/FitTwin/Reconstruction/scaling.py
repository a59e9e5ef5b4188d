"""
Scaling engine: converts pixel lengths in the front photo to centimeters.

Every downstream measurement depends on this single scalar, so any doubt
about it is a hard failure rather than a silent fallback.
"""
import math
from dataclasses import dataclass
from typing import Optional

from .exceptions import CalibrationError
from .landmarks import Absent, ImageFrame, LandmarkSet

HEAD_TOP = "head_top"
FEET_CENTER = "feet_center"


def _is_positive_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


def compute_cm_per_pixel(pixel_height: float, real_height_cm: float) -> float:
    """
    cm_per_pixel = real_height_cm / pixel_height

    Raises:
      CalibrationError: if either input is missing, non-finite or <= 0.
    """
    if not _is_positive_number(real_height_cm):
        raise CalibrationError(f"reference height must be a positive number of cm, got {real_height_cm!r}.")
    if not _is_positive_number(pixel_height):
        raise CalibrationError(f"pixel height must be positive, got {pixel_height!r}.")
    return float(real_height_cm) / float(pixel_height)


@dataclass(frozen=True)
class CalibrationReference:
    real_height_cm: float
    pixel_height: float
    source: str = "landmarks"

    def __post_init__(self):
        compute_cm_per_pixel(self.pixel_height, self.real_height_cm)

    @property
    def cm_per_pixel(self) -> float:
        return compute_cm_per_pixel(self.pixel_height, self.real_height_cm)

    def to_cm(self, pixels: float) -> float:
        return pixels * self.cm_per_pixel

    def to_dict(self) -> dict:
        return {
            "pixel_height": self.pixel_height,
            "real_height_cm": self.real_height_cm,
            "cm_per_pixel": self.cm_per_pixel,
            "source": self.source,
        }


def calibrate(
    front: LandmarkSet,
    frame: ImageFrame,
    real_height_cm: float,
    declared_pixel_height: Optional[float] = None,
) -> CalibrationReference:
    """
    Build the calibration reference for one subject.

    Pixel height is the vertical distance head_top -> feet_center in the
    front frame. When either landmark is missing, a pixel height declared by
    the vision collaborator is used instead; without one, calibration fails.
    """
    head = front.observe(HEAD_TOP)
    feet = front.observe(FEET_CENTER)

    if isinstance(head, Absent) or isinstance(feet, Absent):
        if declared_pixel_height is None:
            missing = [o.name for o in (head, feet) if isinstance(o, Absent)]
            raise CalibrationError(
                f"cannot measure pixel height: missing {', '.join(missing)} and no declared pixel height."
            )
        reference = CalibrationReference(real_height_cm, declared_pixel_height, source="declared")
    else:
        pixel_height = frame.distance(head.point, feet.point, axis="y")
        reference = CalibrationReference(real_height_cm, pixel_height, source="landmarks")

    return reference
