import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import PayloadError
from .landmarks import FRONT_VIEW, SIDE_VIEW, ImageFrame, LandmarkSet
from .mapper import formulas, map_measurements, raw_measurements
from .measurements import MeasurementSet
from .mesh import BodyMesh, build_mesh
from .regions import CIRCUMFERENCE_FIELDS, LENGTH_FIELDS
from .scaling import CalibrationReference, calibrate

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------------------
# Validation / Bounds (aligned with API)
# ------------------------------------------------------------------------------
MIN_HEIGHT_CM = 80
MAX_HEIGHT_CM = 260
DEFAULT_FRAME_WIDTH_PX = 1000
DEFAULT_FRAME_HEIGHT_PX = 1000


@dataclass(frozen=True)
class ReconstructionResult:
    """Immutable output of one reconstruction run."""

    measurements: MeasurementSet
    mesh: BodyMesh
    calibration: CalibrationReference
    front: LandmarkSet
    side: LandmarkSet
    confidence: Optional[float] = None

    @property
    def warnings(self) -> Tuple[str, ...]:
        return self.measurements.warnings

    def technical_analysis(self) -> Dict[str, Any]:
        return {
            "scaling": self.calibration.to_dict(),
            "raw_measurements": raw_measurements(self.measurements),
            "formulas": formulas(self.measurements),
        }

    def to_dict(self, units: str = "metric") -> Dict[str, Any]:
        payload = self.measurements.to_dict(units=units)
        payload["confidence"] = self.confidence
        payload["technical_analysis"] = self.technical_analysis()
        payload["mesh"] = self.mesh.summary()
        payload["rejected_landmarks"] = {
            FRONT_VIEW: dict(self.front.rejected),
            SIDE_VIEW: dict(self.side.rejected),
        }
        return payload

    def to_record(self) -> Dict[str, Any]:
        """
        Flat record for the persistence collaborator.

        Circumferences and lengths are top-level numeric columns (cm); raw
        landmarks and the technical breakdown travel as JSON.
        """
        m = self.measurements
        record: Dict[str, Any] = {name: round(m.circumference(name), 2) for name in CIRCUMFERENCE_FIELDS}
        for name in LENGTH_FIELDS:
            column = "shoulder" if name == "shoulder_width" else name
            record[column] = round(m.length(name), 2)
        record.update({
            "height": m.height_cm,
            "scaling_factor": m.cm_per_pixel,
            "confidence": self.confidence,
            "landmarks_json": {FRONT_VIEW: self.front.to_dict(), SIDE_VIEW: self.side.to_dict()},
            "full_json": {
                "technical_analysis": self.technical_analysis(),
                "provenance": {name: p.value for name, p in m.provenance.items()},
                "defaults_used": list(m.defaults_used),
                "warnings": list(m.warnings),
            },
        })
        return record


class ReconstructionEngine:
    """
    Runs the full pipeline for one subject:
      parse landmarks -> calibrate -> map measurements -> build mesh.

    Deterministic and side-effect free; each call is independent.
    """

    def __init__(self, default_frame: Optional[ImageFrame] = None):
        self.default_frame = default_frame or ImageFrame(DEFAULT_FRAME_WIDTH_PX, DEFAULT_FRAME_HEIGHT_PX)

    def run(self, payload: Dict[str, Any]) -> Tuple[ReconstructionResult, List[Dict[str, Any]]]:
        """
        Args:
          payload: vision collaborator result (height_cm, landmarks_front,
                   landmarks_side, optional image dimensions and declared
                   pixel height). Notes/quality fields are ignored.

        Returns:
          (result, trace) where trace lists per-stage timings in ms.

        Raises:
          PayloadError: structurally invalid payload
          CalibrationError: no usable cm-per-pixel factor
        """
        start = time.time()
        trace: List[Dict[str, Any]] = []

        stage = time.time()
        height_cm, declared_pixel_height, confidence = self._validate_payload(payload)
        front = LandmarkSet.from_payload(FRONT_VIEW, payload.get("landmarks_front"))
        side = LandmarkSet.from_payload(SIDE_VIEW, payload.get("landmarks_side"))
        front_frame, side_frame = self._frames(payload.get("image"))
        trace.append({"stage": "parse_landmarks", "ms": _elapsed_ms(stage)})

        stage = time.time()
        calibration = calibrate(front, front_frame, height_cm, declared_pixel_height)
        trace.append({"stage": "calibrate", "ms": _elapsed_ms(stage)})

        stage = time.time()
        measurements = map_measurements(front, side, calibration, front_frame, side_frame)
        trace.append({"stage": "map_measurements", "ms": _elapsed_ms(stage)})

        stage = time.time()
        mesh = build_mesh(measurements)
        trace.append({"stage": "build_mesh", "ms": _elapsed_ms(stage)})

        trace.append({"stage": "engine_total", "ms": _elapsed_ms(start)})
        if measurements.defaults_used:
            logger.info("Reconstruction used defaults for: %s", ", ".join(measurements.defaults_used))

        result = ReconstructionResult(
            measurements=measurements,
            mesh=mesh,
            calibration=calibration,
            front=front,
            side=side,
            confidence=confidence,
        )
        return result, trace

    # --------------------------------------------------------------------------
    # Input validation / normalization
    # --------------------------------------------------------------------------
    def _validate_payload(self, payload: Any) -> Tuple[float, Optional[float], Optional[float]]:
        if not isinstance(payload, dict):
            raise PayloadError("payload must be an object.")

        height_cm = payload.get("height_cm")
        if not _is_number(height_cm) or not (MIN_HEIGHT_CM <= float(height_cm) <= MAX_HEIGHT_CM):
            raise PayloadError(f"height_cm must be between {MIN_HEIGHT_CM} and {MAX_HEIGHT_CM}.")

        for key in ("landmarks_front", "landmarks_side"):
            if payload.get(key) is not None and not isinstance(payload[key], dict):
                raise PayloadError(f"{key} must be an object.")

        # Declared pixel height is only a calibration fallback; bad values are dropped here
        # and left for the scaling engine to reject if it is the only source.
        declared = None
        analysis = payload.get("technical_analysis")
        if analysis is None:
            analysis = {}
        if not isinstance(analysis, dict):
            raise PayloadError("technical_analysis must be an object.")
        scaling = analysis.get("scaling")
        if scaling is None:
            scaling = {}
        if not isinstance(scaling, dict):
            raise PayloadError("technical_analysis.scaling must be an object.")
        if scaling.get("pixel_height") is not None:
            declared = scaling["pixel_height"] if _is_number(scaling["pixel_height"]) else None

        confidence = payload.get("confidence")
        confidence = float(confidence) if _is_number(confidence) else None

        return float(height_cm), declared, confidence

    def _frames(self, raw: Any) -> Tuple[ImageFrame, ImageFrame]:
        if raw is None:
            return self.default_frame, self.default_frame
        if not isinstance(raw, dict):
            raise PayloadError("image must be an object.")

        frames = []
        for view in (FRONT_VIEW, SIDE_VIEW):
            dims = raw.get(view)
            if dims is None:
                frames.append(self.default_frame)
                continue
            if not isinstance(dims, dict) or not _is_number(dims.get("width")) or not _is_number(dims.get("height")):
                raise PayloadError(f"image.{view} must have numeric width and height.")
            frames.append(ImageFrame(float(dims["width"]), float(dims["height"])))
        return frames[0], frames[1]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _elapsed_ms(since: float) -> int:
    return int((time.time() - since) * 1000)
