import math
import os
import sys

import pytest

sys.path.append(os.path.abspath("."))

from backend.app.FitTwin.Reconstruction.circumference import ellipse_circumference  # noqa: E402
from backend.app.FitTwin.Reconstruction.exceptions import MissingLandmarkError, PayloadError  # noqa: E402
from backend.app.FitTwin.Reconstruction.landmarks import ImageFrame, LandmarkPoint, LandmarkSet  # noqa: E402
from backend.app.FitTwin.Reconstruction.mapper import formulas, map_measurements, raw_measurements  # noqa: E402
from backend.app.FitTwin.Reconstruction.measurements import MeasurementSet, Provenance  # noqa: E402
from backend.app.FitTwin.Reconstruction.regions import (  # noqa: E402
    CIRCUMFERENCE_FIELDS,
    LENGTH_FIELDS,
    population_default,
    validate_tables,
)
from backend.app.FitTwin.Reconstruction.scaling import calibrate  # noqa: E402

from conftest import FRONT_LANDMARKS, SIDE_LANDMARKS  # noqa: E402

FRAME = ImageFrame(1000, 1000)


def _map(front=None, side=None, height=180):
    front_set = LandmarkSet.from_payload("front", FRONT_LANDMARKS if front is None else front)
    side_set = LandmarkSet.from_payload("side", SIDE_LANDMARKS if side is None else side)
    calibration = calibrate(front_set, FRAME, height)
    return map_measurements(front_set, side_set, calibration, FRAME)


def _without(landmarks, *names):
    return {k: v for k, v in landmarks.items() if k not in names}


# ------------------------------------------------------------------------------
# Landmark model
# ------------------------------------------------------------------------------
def test_landmark_point_accepts_dict_and_pair():
    assert LandmarkPoint.parse({"x": 0.2, "y": 0.4}) == LandmarkPoint(0.2, 0.4)
    assert LandmarkPoint.parse([0.2, 0.4]) == LandmarkPoint(0.2, 0.4)
    assert LandmarkPoint.parse(None) is None


@pytest.mark.parametrize("raw", [{"x": 1.5, "y": 0.2}, {"x": "a", "y": 0.2}, [0.1], "0.1,0.2"])
def test_landmark_point_rejects_malformed(raw):
    with pytest.raises(ValueError):
        LandmarkPoint.parse(raw)


def test_landmark_set_records_rejected_points():
    landmarks = LandmarkSet.from_payload("front", {"knee_left": {"x": 1.5, "y": 0.7}, "hip_left": [0.4, 0.5]})
    assert landmarks["knee_left"] is None
    assert "knee_left" in landmarks.rejected
    assert landmarks.present_names() == ["hip_left"]


def test_landmark_set_require_reports_field_and_view():
    landmarks = LandmarkSet.from_payload("side", {})
    with pytest.raises(MissingLandmarkError) as excinfo:
        landmarks.require("hip_front", field="hips")
    assert excinfo.value.landmark == "hip_front"
    assert excinfo.value.field == "hips"
    assert excinfo.value.view == "side"


def test_landmark_set_rejects_non_object():
    with pytest.raises(PayloadError):
        LandmarkSet.from_payload("front", ["head_top"])


def test_region_tables_are_complete():
    validate_tables()


# ------------------------------------------------------------------------------
# Mapping
# ------------------------------------------------------------------------------
def test_full_landmarks_measure_every_field():
    ms = _map()
    assert ms.defaults_used == ()
    assert ms.warnings == ()
    assert ms.cm_per_pixel == pytest.approx(0.2)
    for name in CIRCUMFERENCE_FIELDS:
        assert ms.circumference(name) > 0
    for name in LENGTH_FIELDS:
        assert ms.length(name) > 0


def test_measured_regions_use_front_width_and_side_depth():
    ms = _map()
    # shoulders 220px narrowed to the rib cage, side depth 140px
    assert ms.circumference("chest") == pytest.approx(ellipse_circumference(220 * 0.86 * 0.2, 140 * 0.2))
    assert ms.circumference("waist") == pytest.approx(ellipse_circumference(32, 24))
    assert ms.circumference("hips") == pytest.approx(ellipse_circumference(36, 28))
    assert ms.provenance["hips"] == Provenance.MEASURED


def test_lengths_from_landmark_paths():
    ms = _map()
    assert ms.length("shoulder_width") == pytest.approx(44)
    assert ms.length("torso_length") == pytest.approx(70)
    # hip center -> knee center -> ankle center, 420px shortened to the crotch
    assert ms.length("inseam") == pytest.approx(420 * 0.2 * 0.9)


def test_derived_regions_follow_measured_sources():
    ms = _map()
    assert ms.provenance["thigh"] == Provenance.DERIVED
    assert ms.regions["thigh"].width_cm == pytest.approx(36 * 0.5)
    assert ms.provenance["neck"] == Provenance.DERIVED
    assert ms.regions["neck"].width_cm == pytest.approx(44 * 0.3)
    # neck depth is the horizontal gap neck_point -> back_spine
    assert ms.regions["neck"].depth_cm == pytest.approx(12)


def test_missing_hip_front_estimates_depth():
    ms = _map(side=_without(SIDE_LANDMARKS, "hip_front"))
    assert ms.circumference("hips") == pytest.approx(ellipse_circumference(36, 36 * 0.78))
    assert ms.provenance["hips"] == Provenance.ESTIMATED_DEPTH
    assert "hips" not in ms.defaults_used


def test_missing_side_view_estimates_every_depth():
    ms = _map(side={})
    assert ms.defaults_used == ()
    assert ms.provenance["chest"] == Provenance.ESTIMATED_DEPTH
    assert ms.provenance["waist"] == Provenance.ESTIMATED_DEPTH
    assert ms.regions["waist"].depth_px is None


def test_missing_shoulder_falls_back_to_defaults():
    ms = _map(front=_without(FRONT_LANDMARKS, "shoulder_left"))
    for name in ("shoulder_width", "chest", "neck", "bicep", "wrist"):
        assert name in ms.defaults_used
    assert ms.length("shoulder_width") == pytest.approx(population_default("shoulder_width", 180))
    assert ms.circumference("chest") == pytest.approx(population_default("chest", 180))
    # right arm path is still complete
    assert ms.provenance["sleeve"] == Provenance.MEASURED
    assert any(w.startswith("chest:") for w in ms.warnings)


def test_collapsed_waist_is_degenerate_and_defaulted():
    front = dict(FRONT_LANDMARKS, waist_right=FRONT_LANDMARKS["waist_left"])
    ms = _map(front=front)
    assert ms.provenance["waist"] == Provenance.DEFAULT
    assert ms.circumference("waist") == pytest.approx(population_default("waist", 180))


def test_technical_breakdown_lists_pixels_and_formulas():
    ms = _map()
    raw = raw_measurements(ms)
    assert raw["hips"]["width_px"] == pytest.approx(180)
    assert raw["thigh"]["width_px"] is None
    assert "pi * [3(a+b)" in formulas(ms)["chest"]


def test_mapping_is_deterministic():
    assert _map().to_dict() == _map().to_dict()


def test_imperial_output():
    data = _map().to_dict(units="imperial")
    assert data["units"] == "in"
    assert data["height"] == pytest.approx(round(180 / 2.54, 2))
    assert data["measurements"]["shoulder_width"] == pytest.approx(round(44 / 2.54, 2))


def test_measurement_set_is_read_only():
    ms = MeasurementSet(height_cm=180, circumferences={"chest": 100.0})
    with pytest.raises(TypeError):
        ms.circumferences["chest"] = 1.0
    assert ms.circumference("thigh") is None


def test_chest_from_shoulder_span_and_side_depth():
    # shoulders 250/0.86 px apart -> 250px chest width; 200px chest depth; 0.2 cm/px
    half_span = 250 / 0.86 / 1000 / 2
    front = dict(
        FRONT_LANDMARKS,
        shoulder_left={"x": 0.5 - half_span, "y": 0.2},
        shoulder_right={"x": 0.5 + half_span, "y": 0.2},
    )
    side = dict(SIDE_LANDMARKS, chest_front={"x": 0.4, "y": 0.27}, chest_back={"x": 0.6, "y": 0.27})
    ms = _map(front=front, side=side)

    assert ms.regions["chest"].width_cm == pytest.approx(50)
    assert ms.regions["chest"].depth_cm == pytest.approx(40)
    assert ms.circumference("chest") == pytest.approx(math.pi * (3 * 45 - math.sqrt(95 * 85)))
    assert ms.provenance["chest"] == Provenance.MEASURED


def test_missing_depth_landmark_is_warned():
    ms = _map(side=_without(SIDE_LANDMARKS, "hip_front"))
    assert "hips: depth estimated from width (hip_front not detected)" in ms.warnings
    assert not any(w.startswith("waist:") for w in ms.warnings)


def test_collapsed_depth_is_warned_and_estimated():
    side = dict(SIDE_LANDMARKS, waist_back=SIDE_LANDMARKS["waist_front"])
    ms = _map(side=side)
    assert ms.provenance["waist"] == Provenance.ESTIMATED_DEPTH
    assert ms.circumference("waist") == pytest.approx(ellipse_circumference(32, 32 * 0.80))
    assert any(w.startswith("waist: depth estimated") for w in ms.warnings)


def test_unmeasured_source_is_named_as_a_measurement():
    ms = _map(front=_without(FRONT_LANDMARKS, "shoulder_left"))
    neck_warning = next(w for w in ms.warnings if w.startswith("neck:"))
    assert "Source measurement 'shoulder_width' was not measured" in neck_warning
    assert "Landmark 'shoulder_width'" not in neck_warning
