import json
import os
import sys

import pytest

sys.path.append(os.path.abspath("."))

from backend.app.FitTwin.Reconstruction.engine import ReconstructionEngine  # noqa: E402
from backend.app.FitTwin.Reconstruction.exceptions import CalibrationError, PayloadError  # noqa: E402
from backend.app.FitTwin.Reconstruction.landmarks import ImageFrame  # noqa: E402
from backend.app.FitTwin.Reconstruction.measurements import MeasurementSet  # noqa: E402
from backend.app.FitTwin.Reconstruction.mesh import LAYOUT_TOLERANCE, build_mesh  # noqa: E402


@pytest.fixture
def engine():
    return ReconstructionEngine()


def test_run_produces_measurements_mesh_and_trace(engine, vision_payload):
    result, trace = engine.run(vision_payload)

    assert [stage["stage"] for stage in trace] == [
        "parse_landmarks", "calibrate", "map_measurements", "build_mesh", "engine_total"
    ]
    assert result.calibration.cm_per_pixel == pytest.approx(0.2)
    assert result.measurements.defaults_used == ()
    assert result.confidence == 87.0
    assert abs(result.mesh.stack_height() - 180) / 180 <= LAYOUT_TOLERANCE


def test_result_dict_is_serializable(engine, vision_payload):
    result, _ = engine.run(vision_payload)
    data = json.loads(json.dumps(result.to_dict()))

    assert data["units"] == "cm"
    assert data["provenance"]["chest"] == "measured"
    assert data["technical_analysis"]["scaling"]["source"] == "landmarks"
    assert data["technical_analysis"]["raw_measurements"]["waist"]["width_px"] == pytest.approx(160)
    assert data["rejected_landmarks"] == {"front": {}, "side": {}}
    assert data["mesh"]["segments"]


def test_image_dimensions_default_when_missing(vision_payload):
    vision_payload.pop("image")
    result, _ = ReconstructionEngine(default_frame=ImageFrame(2000, 2000)).run(vision_payload)
    assert result.calibration.pixel_height == pytest.approx(1800)
    assert result.calibration.cm_per_pixel == pytest.approx(0.1)


def test_missing_head_top_without_declared_height_fails(engine, vision_payload):
    del vision_payload["landmarks_front"]["head_top"]
    with pytest.raises(CalibrationError):
        engine.run(vision_payload)


def test_declared_pixel_height_rescues_calibration(engine, vision_payload):
    del vision_payload["landmarks_front"]["feet_center"]
    vision_payload["technical_analysis"] = {"scaling": {"pixel_height": 900}}
    result, _ = engine.run(vision_payload)
    assert result.calibration.source == "declared"
    assert result.calibration.cm_per_pixel == pytest.approx(0.2)


def test_zero_declared_pixel_height_fails(engine, vision_payload):
    del vision_payload["landmarks_front"]["feet_center"]
    vision_payload["technical_analysis"] = {"scaling": {"pixel_height": 0}}
    with pytest.raises(CalibrationError):
        engine.run(vision_payload)


@pytest.mark.parametrize("height", [None, "180", 20, 400, True])
def test_height_out_of_bounds(engine, vision_payload, height):
    vision_payload["height_cm"] = height
    with pytest.raises(PayloadError):
        engine.run(vision_payload)


def test_landmarks_must_be_objects(engine, vision_payload):
    vision_payload["landmarks_side"] = ["chest_front"]
    with pytest.raises(PayloadError):
        engine.run(vision_payload)


def test_bad_image_dimensions(engine, vision_payload):
    vision_payload["image"]["front"] = {"width": 0, "height": 1000}
    with pytest.raises(PayloadError):
        engine.run(vision_payload)


def test_rejected_landmark_is_reported_and_skipped(engine, vision_payload):
    vision_payload["landmarks_front"]["knee_left"] = {"x": 1.7, "y": 0.72}
    result, _ = engine.run(vision_payload)

    assert "knee_left" in result.to_dict()["rejected_landmarks"]["front"]
    # inseam falls back to the hip -> floor path
    assert result.measurements.length("inseam") == pytest.approx(450 * 0.2 * 0.9)


def test_record_rebuilds_the_same_mesh(engine, vision_payload):
    result, _ = engine.run(vision_payload)
    record = json.loads(json.dumps(result.to_record()))

    assert record["shoulder"] == pytest.approx(44)
    assert record["scaling_factor"] == pytest.approx(0.2)
    assert record["full_json"]["defaults_used"] == []

    rebuilt = MeasurementSet.from_record(record)
    assert rebuilt.length("shoulder_width") == pytest.approx(44)
    assert dict(rebuilt.provenance) == dict(result.measurements.provenance)

    mesh = build_mesh(rebuilt)
    assert mesh.defaults_used == ()
    assert mesh.find("chest").radius_top == pytest.approx(result.mesh.find("chest").radius_top, rel=1e-3)


@pytest.mark.parametrize("analysis", ["n/a", ["scaling"], 5, {"scaling": "900px"}, {"scaling": [900]}])
def test_malformed_technical_analysis(engine, vision_payload, analysis):
    vision_payload["technical_analysis"] = analysis
    with pytest.raises(PayloadError):
        engine.run(vision_payload)


def test_missing_hip_front_still_builds_mesh(engine, vision_payload):
    del vision_payload["landmarks_side"]["hip_front"]
    result, _ = engine.run(vision_payload)

    assert result.measurements.provenance["hips"].value == "estimated_depth"
    assert result.mesh.find("hips").radius_bottom > 0
    assert abs(result.mesh.stack_height() - 180) / 180 <= LAYOUT_TOLERANCE
