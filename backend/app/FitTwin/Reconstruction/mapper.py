"""
Landmark-to-measurement mapper.

Turns the front/side landmark sets plus the calibration reference into a
complete MeasurementSet. Field-level problems (a landmark not detected, a
collapsed distance) degrade that one field to its population default; only
calibration problems abort the mapping.
"""
import logging
from typing import Dict, List, Optional

from .circumference import ellipse_circumference, format_formula
from .exceptions import DegenerateGeometryError, MissingLandmarkError, UnmeasuredSourceError
from .landmarks import FRONT_VIEW, ImageFrame, LandmarkPoint, LandmarkSet
from .measurements import MeasurementSet, Provenance, RegionMeasurement
from .regions import (
    CIRCUMFERENCE_FIELDS,
    LENGTH_FIELDS,
    LENGTH_RULES,
    REGION_RULES,
    DerivedWidth,
    LandmarkPair,
    LengthRule,
    PointRef,
    population_default,
)
from .scaling import CalibrationReference

logger = logging.getLogger(__name__)


class LandmarkMapper:
    """
    Maps one subject's landmark sets to measurements.

    An instance holds only the immutable inputs of one run; ``map()`` can be
    called repeatedly and always returns an equal result.
    """

    def __init__(
        self,
        front: LandmarkSet,
        side: LandmarkSet,
        calibration: CalibrationReference,
        front_frame: ImageFrame,
        side_frame: Optional[ImageFrame] = None,
    ):
        self.front = front
        self.side = side
        self.calibration = calibration
        self.frames = {FRONT_VIEW: front_frame, side.view: side_frame or front_frame}
        self.sets = {front.view: front, side.view: side}

    # --------------------------------------------------------------------------
    # Entry point
    # --------------------------------------------------------------------------
    def map(self) -> MeasurementSet:
        height = self.calibration.real_height_cm
        warnings: List[str] = []
        provenance: Dict[str, Provenance] = {}

        lengths: Dict[str, float] = {}
        for name in LENGTH_FIELDS:
            try:
                lengths[name] = self.measure_length(LENGTH_RULES[name])
                provenance[name] = Provenance.MEASURED
            except (MissingLandmarkError, DegenerateGeometryError) as exc:
                lengths[name] = population_default(name, height)
                provenance[name] = Provenance.DEFAULT
                warnings.append(self._fallback_warning(name, exc))

        # Measured widths (cm) that derived regions may reference.
        sources: Dict[str, float] = {
            name: value for name, value in lengths.items() if provenance[name] == Provenance.MEASURED
        }

        regions: Dict[str, RegionMeasurement] = {}
        # Landmark-bounded regions first so derived widths can reference them.
        ordered = sorted(CIRCUMFERENCE_FIELDS, key=lambda n: isinstance(REGION_RULES[n].width, DerivedWidth))
        for name in ordered:
            try:
                region = self.measure_region(name, sources, warnings)
            except (MissingLandmarkError, UnmeasuredSourceError, DegenerateGeometryError) as exc:
                region = self._default_region(name, height)
                warnings.append(self._fallback_warning(name, exc))
            else:
                if region.provenance != Provenance.DERIVED and region.width_px is not None:
                    sources[name] = region.width_cm
            regions[name] = region
            provenance[name] = region.provenance

        return MeasurementSet(
            height_cm=height,
            circumferences={name: regions[name].circumference_cm for name in CIRCUMFERENCE_FIELDS},
            lengths=lengths,
            cm_per_pixel=self.calibration.cm_per_pixel,
            provenance=provenance,
            regions={name: regions[name] for name in CIRCUMFERENCE_FIELDS},
            warnings=tuple(warnings),
        )

    # --------------------------------------------------------------------------
    # Regions
    # --------------------------------------------------------------------------
    def measure_region(self, name: str, sources: Dict[str, float],
                       warnings: Optional[List[str]] = None) -> RegionMeasurement:
        """
        Measure one circumference region.

        Raises:
          MissingLandmarkError: width landmarks absent
          UnmeasuredSourceError: derived width source was not measured
          DegenerateGeometryError: width collapses to zero
        """
        rule = REGION_RULES[name]
        cm_per_px = self.calibration.cm_per_pixel

        if isinstance(rule.width, LandmarkPair):
            width_px = self.pair_distance(rule.width, name)
            width_cm = width_px * cm_per_px
            provenance = Provenance.MEASURED
        else:
            source_cm = sources.get(rule.width.source)
            if source_cm is None:
                raise UnmeasuredSourceError(rule.width.source, field=name)
            width_px = None
            width_cm = source_cm * rule.width.ratio
            provenance = Provenance.DERIVED

        if width_cm <= 0:
            raise DegenerateGeometryError(name, width_cm)

        depth_px = None
        depth_cm = None
        if rule.depth is not None:
            reason = None
            try:
                depth_px = self.pair_distance(rule.depth, name)
            except MissingLandmarkError as exc:
                reason = f"{exc.landmark} not detected"
            else:
                depth_cm = depth_px * cm_per_px
                if depth_cm <= 0:
                    depth_px, depth_cm = None, None
                    reason = "side-view depth collapsed"
            if reason is not None:
                message = f"{name}: depth estimated from width ({reason})"
                logger.warning(message)
                if warnings is not None:
                    warnings.append(message)

        if depth_cm is None:
            depth_cm = width_cm * rule.depth_ratio
            if provenance == Provenance.MEASURED:
                provenance = Provenance.ESTIMATED_DEPTH

        circumference = ellipse_circumference(width_cm, depth_cm)
        if circumference <= 0:
            raise DegenerateGeometryError(name, circumference)

        return RegionMeasurement(
            name=name,
            width_px=width_px,
            depth_px=depth_px,
            width_cm=width_cm,
            depth_cm=depth_cm,
            circumference_cm=circumference,
            provenance=provenance,
            formula=format_formula(width_cm, depth_cm),
        )

    def _default_region(self, name: str, height: float) -> RegionMeasurement:
        circumference = population_default(name, height)
        return RegionMeasurement(
            name=name,
            width_px=None,
            depth_px=None,
            width_cm=0.0,
            depth_cm=0.0,
            circumference_cm=circumference,
            provenance=Provenance.DEFAULT,
            formula=f"population default scaled by height ratio = {circumference:.2f}cm",
        )

    # --------------------------------------------------------------------------
    # Lengths
    # --------------------------------------------------------------------------
    def measure_length(self, rule: LengthRule) -> float:
        """
        Scaled polyline length of the first candidate path fully present.

        Raises:
          MissingLandmarkError: no candidate path has all its landmarks
          DegenerateGeometryError: the measured length is <= 0
        """
        landmarks = self.sets[rule.view]
        frame = self.frames[rule.view]
        first_missing: Optional[MissingLandmarkError] = None

        for path in rule.candidates:
            try:
                points = [self.resolve(landmarks, ref, rule.name) for ref in path]
            except MissingLandmarkError as exc:
                first_missing = first_missing or exc
                continue
            pixels = sum(frame.distance(a, b) for a, b in zip(points, points[1:]))
            length_cm = pixels * self.calibration.cm_per_pixel * rule.scale
            if length_cm <= 0:
                raise DegenerateGeometryError(rule.name, length_cm)
            return length_cm

        raise first_missing

    # --------------------------------------------------------------------------
    # Helpers
    # --------------------------------------------------------------------------
    def pair_distance(self, pair: LandmarkPair, field: str) -> float:
        landmarks = self.sets[pair.view]
        start = landmarks.require(pair.start, field=field)
        end = landmarks.require(pair.end, field=field)
        return self.frames[pair.view].distance(start, end, axis=pair.axis) * pair.scale

    def resolve(self, landmarks: LandmarkSet, ref: PointRef, field: str) -> LandmarkPoint:
        if isinstance(ref, tuple):
            a, b = (landmarks.require(name, field=field) for name in ref)
            return self.frames[landmarks.view].midpoint(a, b)
        return landmarks.require(ref, field=field)

    @staticmethod
    def _fallback_warning(field: str, exc: Exception) -> str:
        message = f"{field}: using population default ({exc})"
        logger.warning(message)
        return message


def map_measurements(
    front: LandmarkSet,
    side: LandmarkSet,
    calibration: CalibrationReference,
    front_frame: ImageFrame,
    side_frame: Optional[ImageFrame] = None,
) -> MeasurementSet:
    return LandmarkMapper(front, side, calibration, front_frame, side_frame).map()


def raw_measurements(measurements: MeasurementSet) -> Dict[str, Dict[str, Optional[float]]]:
    """Raw pixel width/depth per region, as kept in the technical analysis."""
    return {
        name: {"width_px": region.width_px, "depth_px": region.depth_px}
        for name, region in measurements.regions.items()
    }


def formulas(measurements: MeasurementSet) -> Dict[str, str]:
    return {name: region.formula for name, region in measurements.regions.items()}
