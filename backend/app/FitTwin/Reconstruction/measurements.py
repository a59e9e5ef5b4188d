import enum
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .regions import CIRCUMFERENCE_FIELDS, LENGTH_FIELDS

UNIT_SYSTEMS = ("metric", "imperial")


def cm_to_inches(value_cm: float) -> float:
    return round(value_cm / 2.54, 2)


class Provenance(str, enum.Enum):
    MEASURED = "measured"
    ESTIMATED_DEPTH = "estimated_depth"
    DERIVED = "derived"
    DEFAULT = "default"


@dataclass(frozen=True)
class RegionMeasurement:
    """Width/depth pair for one region and the circumference derived from it."""

    name: str
    width_px: Optional[float]
    depth_px: Optional[float]
    width_cm: float
    depth_cm: float
    circumference_cm: float
    provenance: Provenance
    formula: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width_px": _round(self.width_px),
            "depth_px": _round(self.depth_px),
            "width_cm": _round(self.width_cm),
            "depth_cm": _round(self.depth_cm),
            "circumference_cm": _round(self.circumference_cm),
            "provenance": self.provenance.value,
            "formula": self.formula,
        }


def _round(value: Optional[float], digits: int = 2) -> Optional[float]:
    return None if value is None else round(value, digits)


@dataclass(frozen=True)
class MeasurementSet:
    """
    Final, immutable measurement output for one subject.

    Circumferences and lengths are in centimeters. A set built by the mapper
    is always complete; a set rebuilt from a stored record may be partial,
    in which case ``circumference`` / ``length`` return None for the gaps.
    """

    height_cm: float
    circumferences: Mapping[str, float] = field(default_factory=dict)
    lengths: Mapping[str, float] = field(default_factory=dict)
    cm_per_pixel: Optional[float] = None
    provenance: Mapping[str, Provenance] = field(default_factory=dict)
    regions: Mapping[str, RegionMeasurement] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    def __post_init__(self):
        # Freeze the containers so the set cannot be mutated after construction.
        object.__setattr__(self, "circumferences", MappingProxyType(dict(self.circumferences)))
        object.__setattr__(self, "lengths", MappingProxyType(dict(self.lengths)))
        object.__setattr__(self, "provenance", MappingProxyType(dict(self.provenance)))
        object.__setattr__(self, "regions", MappingProxyType(dict(self.regions)))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    def circumference(self, name: str) -> Optional[float]:
        return _usable(self.circumferences.get(name))

    def length(self, name: str) -> Optional[float]:
        return _usable(self.lengths.get(name))

    def get(self, name: str) -> Optional[float]:
        if name in CIRCUMFERENCE_FIELDS:
            return self.circumference(name)
        return self.length(name)

    @property
    def defaults_used(self) -> Tuple[str, ...]:
        return tuple(sorted(name for name, p in self.provenance.items() if p == Provenance.DEFAULT))

    def to_dict(self, units: str = "metric") -> Dict[str, Any]:
        if units not in UNIT_SYSTEMS:
            raise ValueError(f"units must be one of {UNIT_SYSTEMS}")
        convert = cm_to_inches if units == "imperial" else (lambda v: round(v, 2))

        values = {}
        for name in CIRCUMFERENCE_FIELDS + LENGTH_FIELDS:
            value = self.get(name)
            values[name] = convert(value) if value is not None else None

        return {
            "units": "in" if units == "imperial" else "cm",
            "height": convert(self.height_cm),
            "measurements": values,
            "cm_per_pixel": self.cm_per_pixel,
            "provenance": {name: p.value for name, p in self.provenance.items()},
            "defaults_used": list(self.defaults_used),
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "MeasurementSet":
        """
        Rebuild a (possibly partial) set from a flat persistence record.

        Record keys follow the stored column names; ``shoulder`` is accepted
        as an alias of ``shoulder_width``.
        """
        height = record.get("height")
        if height is None:
            raise ValueError("record has no height")

        circumferences = {}
        for name in CIRCUMFERENCE_FIELDS:
            value = _usable(record.get(name))
            if value is not None:
                circumferences[name] = float(value)

        lengths = {}
        for name in LENGTH_FIELDS:
            column = "shoulder" if name == "shoulder_width" else name
            value = _usable(record.get(column, record.get(name)))
            if value is not None:
                lengths[name] = float(value)

        provenance = {}
        full_json = record.get("full_json") or {}
        for name, value in (full_json.get("provenance") or {}).items():
            try:
                provenance[name] = Provenance(value)
            except ValueError:
                continue

        return cls(
            height_cm=float(height),
            circumferences=circumferences,
            lengths=lengths,
            cm_per_pixel=record.get("scaling_factor"),
            provenance=provenance,
            warnings=tuple(full_json.get("warnings") or ()),
        )


def _usable(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)
