import math
import os
import sys

import pytest

sys.path.append(os.path.abspath("."))

from backend.app.FitTwin.Reconstruction.exceptions import CalibrationError  # noqa: E402
from backend.app.FitTwin.Reconstruction.landmarks import ImageFrame, LandmarkSet  # noqa: E402
from backend.app.FitTwin.Reconstruction.scaling import (  # noqa: E402
    CalibrationReference,
    calibrate,
    compute_cm_per_pixel,
)

FRAME = ImageFrame(1000, 1000)


def test_cm_per_pixel_from_height():
    assert compute_cm_per_pixel(900, 180) == pytest.approx(0.2)


@pytest.mark.parametrize("pixel_height,real_height", [(900, 180), (1234.5, 171.2), (37, 95)])
def test_scale_identity(pixel_height, real_height):
    factor = compute_cm_per_pixel(pixel_height, real_height)
    assert factor > 0
    assert factor * pixel_height == pytest.approx(real_height)


@pytest.mark.parametrize("pixel_height", [0, -10, float("nan"), float("inf"), None, "900"])
def test_invalid_pixel_height_raises(pixel_height):
    with pytest.raises(CalibrationError):
        compute_cm_per_pixel(pixel_height, 180)


@pytest.mark.parametrize("real_height", [0, -180, float("nan"), None])
def test_invalid_reference_height_raises(real_height):
    with pytest.raises(CalibrationError):
        compute_cm_per_pixel(900, real_height)


def test_reference_rejects_zero_pixel_height():
    with pytest.raises(CalibrationError):
        CalibrationReference(real_height_cm=180, pixel_height=0)


def test_calibrate_uses_vertical_distance_only():
    front = LandmarkSet.from_payload("front", {
        "head_top": {"x": 0.45, "y": 0.05},
        "feet_center": {"x": 0.55, "y": 0.95},
    })
    reference = calibrate(front, FRAME, 180)
    assert reference.source == "landmarks"
    assert reference.pixel_height == pytest.approx(900)
    assert reference.cm_per_pixel == pytest.approx(0.2)
    assert reference.to_cm(250) == pytest.approx(50)


def test_calibrate_collapsed_landmarks_fail():
    front = LandmarkSet.from_payload("front", {
        "head_top": {"x": 0.5, "y": 0.5},
        "feet_center": {"x": 0.5, "y": 0.5},
    })
    with pytest.raises(CalibrationError):
        calibrate(front, FRAME, 180)


def test_calibrate_missing_feet_without_declared_height():
    front = LandmarkSet.from_payload("front", {"head_top": {"x": 0.5, "y": 0.05}})
    with pytest.raises(CalibrationError) as excinfo:
        calibrate(front, FRAME, 180)
    assert "feet_center" in str(excinfo.value)


def test_calibrate_falls_back_to_declared_pixel_height():
    front = LandmarkSet.from_payload("front", {"head_top": {"x": 0.5, "y": 0.05}})
    reference = calibrate(front, FRAME, 180, declared_pixel_height=720)
    assert reference.source == "declared"
    assert reference.cm_per_pixel == pytest.approx(0.25)
    assert math.isfinite(reference.to_dict()["cm_per_pixel"])


def test_calibrate_declared_zero_pixel_height_fails():
    front = LandmarkSet.from_payload("front", {})
    with pytest.raises(CalibrationError):
        calibrate(front, FRAME, 180, declared_pixel_height=0)
