"""
Landmark model shared by both photo views.

Points arrive from the vision collaborator normalized to [0, 1] against
their own image. A landmark the model did not detect is a valid state and is
represented explicitly as ``Absent`` rather than ``None`` checks scattered
through the pipeline.
"""
import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .exceptions import MissingLandmarkError, PayloadError

FRONT_VIEW = "front"
SIDE_VIEW = "side"

FRONT_LANDMARKS = (
    "head_top",
    "neck_base",
    "shoulder_left",
    "shoulder_right",
    "elbow_left",
    "elbow_right",
    "wrist_left",
    "wrist_right",
    "waist_left",
    "waist_right",
    "hip_left",
    "hip_right",
    "knee_left",
    "knee_right",
    "ankle_left",
    "ankle_right",
    "feet_center",
)

SIDE_LANDMARKS = (
    "neck_point",
    "chest_front",
    "chest_back",
    "waist_front",
    "waist_back",
    "hip_front",
    "hip_back",
    "knee",
    "ankle",
    "back_spine",
)


@dataclass(frozen=True)
class LandmarkPoint:
    x: float
    y: float

    def __post_init__(self):
        for axis, value in (("x", self.x), ("y", self.y)):
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValueError(f"{axis} must be numeric, got {value!r}")
            if not math.isfinite(value) or not (0.0 <= value <= 1.0):
                raise ValueError(f"{axis} must be normalized to [0, 1], got {value!r}")

    @classmethod
    def parse(cls, raw: Any) -> Optional["LandmarkPoint"]:
        """
        Accept ``{"x": .., "y": ..}``, ``[x, y]`` or ``None``.

        Raises ValueError for anything else.
        """
        if raw is None:
            return None
        if isinstance(raw, LandmarkPoint):
            return raw
        if isinstance(raw, dict):
            if raw.get("x") is None and raw.get("y") is None:
                return None
            return cls(raw.get("x"), raw.get("y"))
        if isinstance(raw, (list, tuple)) and len(raw) == 2:
            return cls(raw[0], raw[1])
        raise ValueError(f"unrecognized landmark shape: {raw!r}")

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Present:
    point: LandmarkPoint


@dataclass(frozen=True)
class Absent:
    name: str


Observation = Union[Present, Absent]


@dataclass(frozen=True)
class ImageFrame:
    """Pixel dimensions of a source photo."""

    width_px: float
    height_px: float

    def __post_init__(self):
        if not (self.width_px > 0 and self.height_px > 0):
            raise PayloadError("image dimensions must be positive.")

    def to_pixels(self, point: LandmarkPoint) -> Tuple[float, float]:
        return point.x * self.width_px, point.y * self.height_px

    def distance(self, a: LandmarkPoint, b: LandmarkPoint, axis: str = "euclidean") -> float:
        """
        Pixel distance between two normalized points.

        axis:
          - "euclidean": straight-line distance
          - "x": horizontal component only
          - "y": vertical component only
        """
        ax, ay = self.to_pixels(a)
        bx, by = self.to_pixels(b)
        if axis == "x":
            return abs(bx - ax)
        if axis == "y":
            return abs(by - ay)
        return math.hypot(bx - ax, by - ay)

    def midpoint(self, a: LandmarkPoint, b: LandmarkPoint) -> LandmarkPoint:
        return LandmarkPoint((a.x + b.x) / 2.0, (a.y + b.y) / 2.0)


class LandmarkSet(Mapping):
    """
    Immutable mapping of landmark name -> optional LandmarkPoint for one view.
    """

    def __init__(self, view: str, points: Optional[Mapping[str, Optional[LandmarkPoint]]] = None,
                 rejected: Optional[Mapping[str, str]] = None):
        if view not in (FRONT_VIEW, SIDE_VIEW):
            raise PayloadError(f"view must be '{FRONT_VIEW}' or '{SIDE_VIEW}'.")
        self.view = view
        self._points = MappingProxyType(dict(points or {}))
        self.rejected = MappingProxyType(dict(rejected or {}))

    @classmethod
    def from_payload(cls, view: str, raw: Any) -> "LandmarkSet":
        """
        Build a set from the collaborator's JSON object.

        Points that fail validation are kept as absent and their reason is
        recorded in ``rejected`` instead of failing the whole set.
        """
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise PayloadError(f"landmarks_{view} must be an object.")

        points: Dict[str, Optional[LandmarkPoint]] = {}
        rejected: Dict[str, str] = {}
        for name, value in raw.items():
            try:
                points[str(name)] = LandmarkPoint.parse(value)
            except (TypeError, ValueError) as exc:
                points[str(name)] = None
                rejected[str(name)] = str(exc)
        return cls(view, points, rejected)

    # Mapping protocol
    def __getitem__(self, name: str) -> Optional[LandmarkPoint]:
        return self._points[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        return f"LandmarkSet(view={self.view!r}, present={self.present_names()!r})"

    def observe(self, name: str) -> Observation:
        point = self._points.get(name)
        if point is None:
            return Absent(name)
        return Present(point)

    def require(self, name: str, field: str = None) -> LandmarkPoint:
        observation = self.observe(name)
        if isinstance(observation, Absent):
            raise MissingLandmarkError(name, field=field, view=self.view)
        return observation.point

    def present_names(self) -> List[str]:
        return sorted(name for name, point in self._points.items() if point is not None)

    def to_dict(self) -> Dict[str, Optional[Dict[str, float]]]:
        return {name: (point.to_dict() if point else None) for name, point in self._points.items()}
