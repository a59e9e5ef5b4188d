"""
Declarative region and length tables for the landmark mapper.

Adding or tuning a body region is a change to these tables only. Every
region in CIRCUMFERENCE_FIELDS has exactly one RegionRule and every length in
LENGTH_FIELDS has exactly one LengthRule (checked by ``validate_tables``).

The depth ratios below are tunable anthropometric estimates, not values
validated against a reference dataset.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Tuple, Union

from .landmarks import FRONT_VIEW, SIDE_VIEW

CIRCUMFERENCE_FIELDS = ("chest", "waist", "hips", "thigh", "calf", "ankle", "bicep", "neck", "wrist")
LENGTH_FIELDS = ("sleeve", "inseam", "outseam", "torso_length", "shoulder_width")

# ------------------------------------------------------------------------------
# Population defaults
# ------------------------------------------------------------------------------
# Values for a subject of REFERENCE_HEIGHT_CM; scaled linearly by height ratio.
REFERENCE_HEIGHT_CM = 170.0

POPULATION_DEFAULTS_CM = MappingProxyType({
    "chest": 100.0,
    "waist": 80.0,
    "hips": 95.0,
    "thigh": 55.0,
    "calf": 38.0,
    "ankle": 25.0,
    "bicep": 35.0,
    "neck": 38.0,
    "wrist": 17.0,
    "shoulder_width": 45.0,
    "sleeve": 60.0,
    "inseam": 75.0,
    "outseam": 102.0,
    "torso_length": 52.0,
})

# ------------------------------------------------------------------------------
# Depth / width eccentricity ratios (k) used when side-view depth is missing
# ------------------------------------------------------------------------------
DEPTH_RATIOS = MappingProxyType({
    "chest": 0.75,
    "waist": 0.80,
    "hips": 0.78,
    "neck": 0.90,
    "thigh": 0.90,
    "calf": 0.95,
    "ankle": 0.85,
    "bicep": 0.90,
    "wrist": 0.72,
})


def population_default(field: str, height_cm: float) -> float:
    """Population-average value for ``field`` scaled to the subject's height."""
    return POPULATION_DEFAULTS_CM[field] * (height_cm / REFERENCE_HEIGHT_CM)


# ------------------------------------------------------------------------------
# Rule types
# ------------------------------------------------------------------------------
# A point reference is either a landmark name or a pair of names whose
# midpoint is used (e.g. the hip center).
PointRef = Union[str, Tuple[str, str]]


@dataclass(frozen=True)
class LandmarkPair:
    """Two landmarks in one view bounding a width or depth."""

    view: str
    start: str
    end: str
    axis: str = "euclidean"
    scale: float = 1.0


@dataclass(frozen=True)
class DerivedWidth:
    """Width taken as a ratio of another measurement (a region width or a length)."""

    source: str
    ratio: float


@dataclass(frozen=True)
class RegionRule:
    name: str
    width: Union[LandmarkPair, DerivedWidth]
    depth: Optional[LandmarkPair]
    depth_ratio: float


@dataclass(frozen=True)
class LengthRule:
    name: str
    # First candidate whose landmarks are all present is measured as a polyline.
    candidates: Tuple[Tuple[PointRef, ...], ...]
    scale: float = 1.0
    view: str = FRONT_VIEW


HIP_CENTER = ("hip_left", "hip_right")
KNEE_CENTER = ("knee_left", "knee_right")
ANKLE_CENTER = ("ankle_left", "ankle_right")

# ------------------------------------------------------------------------------
# Region table
# ------------------------------------------------------------------------------
# Chest width is read across the shoulders and narrowed to the rib cage.
CHEST_FROM_SHOULDER_RATIO = 0.86

REGION_RULES = MappingProxyType({
    "chest": RegionRule(
        "chest",
        width=LandmarkPair(FRONT_VIEW, "shoulder_left", "shoulder_right", scale=CHEST_FROM_SHOULDER_RATIO),
        depth=LandmarkPair(SIDE_VIEW, "chest_front", "chest_back"),
        depth_ratio=DEPTH_RATIOS["chest"],
    ),
    "waist": RegionRule(
        "waist",
        width=LandmarkPair(FRONT_VIEW, "waist_left", "waist_right"),
        depth=LandmarkPair(SIDE_VIEW, "waist_front", "waist_back"),
        depth_ratio=DEPTH_RATIOS["waist"],
    ),
    "hips": RegionRule(
        "hips",
        width=LandmarkPair(FRONT_VIEW, "hip_left", "hip_right"),
        depth=LandmarkPair(SIDE_VIEW, "hip_front", "hip_back"),
        depth_ratio=DEPTH_RATIOS["hips"],
    ),
    "neck": RegionRule(
        "neck",
        width=DerivedWidth("shoulder_width", 0.30),
        depth=LandmarkPair(SIDE_VIEW, "neck_point", "back_spine", axis="x"),
        depth_ratio=DEPTH_RATIOS["neck"],
    ),
    "thigh": RegionRule("thigh", width=DerivedWidth("hips", 0.50), depth=None, depth_ratio=DEPTH_RATIOS["thigh"]),
    "calf": RegionRule("calf", width=DerivedWidth("hips", 0.33), depth=None, depth_ratio=DEPTH_RATIOS["calf"]),
    "ankle": RegionRule("ankle", width=DerivedWidth("hips", 0.21), depth=None, depth_ratio=DEPTH_RATIOS["ankle"]),
    "bicep": RegionRule(
        "bicep", width=DerivedWidth("shoulder_width", 0.25), depth=None, depth_ratio=DEPTH_RATIOS["bicep"]
    ),
    "wrist": RegionRule(
        "wrist", width=DerivedWidth("shoulder_width", 0.15), depth=None, depth_ratio=DEPTH_RATIOS["wrist"]
    ),
})

# ------------------------------------------------------------------------------
# Length table
# ------------------------------------------------------------------------------
# The hip landmark line sits above the crotch, so the hip-to-floor path is
# shortened to approximate the inseam.
INSEAM_FROM_HIP_RATIO = 0.90

LENGTH_RULES = MappingProxyType({
    "shoulder_width": LengthRule(
        "shoulder_width",
        candidates=(("shoulder_left", "shoulder_right"),),
    ),
    "sleeve": LengthRule(
        "sleeve",
        candidates=(
            ("shoulder_left", "elbow_left", "wrist_left"),
            ("shoulder_right", "elbow_right", "wrist_right"),
            ("shoulder_left", "wrist_left"),
            ("shoulder_right", "wrist_right"),
        ),
    ),
    "inseam": LengthRule(
        "inseam",
        candidates=(
            (HIP_CENTER, KNEE_CENTER, ANKLE_CENTER),
            (HIP_CENTER, "feet_center"),
        ),
        scale=INSEAM_FROM_HIP_RATIO,
    ),
    "outseam": LengthRule(
        "outseam",
        candidates=(
            ("waist_left", "hip_left", "knee_left", "ankle_left"),
            ("waist_right", "hip_right", "knee_right", "ankle_right"),
        ),
    ),
    "torso_length": LengthRule(
        "torso_length",
        candidates=(("neck_base", HIP_CENTER),),
    ),
})


def validate_tables() -> None:
    """
    Check that the tables are total and internally consistent.

    Raises:
      ValueError: on a missing rule, a missing default or a derived width whose
                  source is unknown or would be computed after it.
    """
    for field in CIRCUMFERENCE_FIELDS:
        if field not in REGION_RULES:
            raise ValueError(f"no region rule for {field}")
        if field not in POPULATION_DEFAULTS_CM:
            raise ValueError(f"no population default for {field}")
    for field in LENGTH_FIELDS:
        if field not in LENGTH_RULES:
            raise ValueError(f"no length rule for {field}")
        if field not in POPULATION_DEFAULTS_CM:
            raise ValueError(f"no population default for {field}")

    measured_regions = {name for name, rule in REGION_RULES.items() if isinstance(rule.width, LandmarkPair)}
    for name, rule in REGION_RULES.items():
        if isinstance(rule.width, DerivedWidth):
            if rule.width.source not in LENGTH_RULES and rule.width.source not in measured_regions:
                raise ValueError(f"{name} derives its width from unknown or derived source {rule.width.source}")
        if not rule.depth_ratio > 0:
            raise ValueError(f"{name} depth ratio must be positive")


validate_tables()
