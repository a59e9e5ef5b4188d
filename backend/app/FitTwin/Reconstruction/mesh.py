"""
Proportional mesh builder.

Builds an immutable tree of simple solids (spheres and tapered cylinders)
from a MeasurementSet and the subject height. No images or landmarks are
consulted. The tree is rebuilt from scratch for every input change.

Coordinates are centimeters, y up, floor at y = 0, subject's right side on +x.
Cylinders run along their local y axis.
"""
import enum
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

import numpy as np

from .measurements import MeasurementSet
from .regions import REFERENCE_HEIGHT_CM, population_default

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------------------
# Proportion constants
# ------------------------------------------------------------------------------
HEAD_RADIUS_CM = 12.0
NECK_LENGTH_CM = 10.0
YOKE_RADIUS_CM = 6.0
# Head and neck never take more than this share of the total height.
MAX_HEAD_NECK_FRACTION = 0.40

# Chest : waist : hips split of the torso budget left after head, neck and legs.
TORSO_SPLIT = (("chest", 25.0), ("waist", 15.0), ("hips", 20.0))
MIN_TORSO_FRACTION = 0.20

THIGH_FRACTION = 0.5
UPPER_ARM_FRACTION = 0.45
LEG_SPACING_RATIO = 0.8
ARM_SPREAD_RAD = 0.3
ELBOW_BEND_RAD = 0.1

CHEST_TOP_TAPER = 1.1
CHEST_BOTTOM_TAPER = 0.9
KNEE_TAPER = 1.1
FOREARM_TOP_TAPER = 0.8
WRIST_TAPER = 1.5

# Allowed relative gap between the stacked segment extents and the height.
LAYOUT_TOLERANCE = 0.02

SIDES = (("right", 1.0), ("left", -1.0))


class SegmentKind(str, enum.Enum):
    GROUP = "group"
    SPHERE = "sphere"
    TAPERED_CYLINDER = "tapered_cylinder"


@dataclass(frozen=True)
class Segment:
    """
    One node of the body tree.

    ``translation`` and ``rotation_z`` are relative to the parent frame. Groups
    carry no geometry and model joints (shoulder, elbow).
    """

    name: str
    kind: SegmentKind
    radius_top: float = 0.0
    radius_bottom: float = 0.0
    length: float = 0.0
    translation: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    rotation_z: float = 0.0
    children: Tuple["Segment", ...] = ()

    @property
    def radius(self) -> float:
        return max(self.radius_top, self.radius_bottom)

    def local_matrix(self) -> np.ndarray:
        c, s = math.cos(self.rotation_z), math.sin(self.rotation_z)
        matrix = np.array([
            [c, -s, 0.0, self.translation[0]],
            [s, c, 0.0, self.translation[1]],
            [0.0, 0.0, 1.0, self.translation[2]],
            [0.0, 0.0, 0.0, 1.0],
        ])
        return matrix

    def walk(self) -> Iterator["Segment"]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class StackEntry:
    name: str
    top: float
    bottom: float

    @property
    def extent(self) -> float:
        return self.top - self.bottom


@dataclass(frozen=True)
class BodyMesh:
    root: Segment
    height_cm: float
    layout: Tuple[StackEntry, ...] = ()
    defaults_used: Tuple[str, ...] = ()

    def segments(self) -> Iterator[Segment]:
        return self.root.walk()

    def geometry(self) -> List[Segment]:
        return [s for s in self.segments() if s.kind != SegmentKind.GROUP]

    def find(self, name: str) -> Segment:
        for segment in self.segments():
            if segment.name == name:
                return segment
        raise KeyError(name)

    def world_transforms(self) -> Iterator[Tuple[Segment, np.ndarray]]:
        """Yield every segment with its 4x4 world matrix (parents before children)."""

        def visit(segment: Segment, parent: np.ndarray):
            matrix = parent @ segment.local_matrix()
            yield segment, matrix
            for child in segment.children:
                yield from visit(child, matrix)

        yield from visit(self.root, np.eye(4))

    def world_position(self, name: str) -> np.ndarray:
        for segment, matrix in self.world_transforms():
            if segment.name == name:
                return matrix[:3, 3].copy()
        raise KeyError(name)

    def stack_height(self) -> float:
        return sum(entry.extent for entry in self.layout)

    def summary(self) -> Dict[str, Any]:
        segments = []
        for segment, matrix in self.world_transforms():
            if segment.kind == SegmentKind.GROUP:
                continue
            segments.append({
                "name": segment.name,
                "kind": segment.kind.value,
                "radius_top": round(segment.radius_top, 2),
                "radius_bottom": round(segment.radius_bottom, 2),
                "length": round(segment.length, 2),
                "position": [round(float(v), 2) for v in matrix[:3, 3]],
            })
        return {
            "height_cm": round(self.height_cm, 2),
            "stack_height_cm": round(self.stack_height(), 2),
            "segments": segments,
            "defaults_used": list(self.defaults_used),
        }


class MeshBuilder:
    """
    Single-pass construction of a BodyMesh.

    Missing or non-positive measurements are replaced by the population
    default for that field, so a mesh is always producible.
    """

    def __init__(self, measurements: MeasurementSet, height_cm: Optional[float] = None):
        self.measurements = measurements
        height = measurements.height_cm if height_cm is None else height_cm
        if not isinstance(height, (int, float)) or not math.isfinite(height) or height <= 0:
            logger.warning("Invalid mesh height %r; using reference height %s", height, REFERENCE_HEIGHT_CM)
            height = REFERENCE_HEIGHT_CM
        self.height = float(height)
        self.defaults: Set[str] = set()

    # --------------------------------------------------------------------------
    # Measurement access with defaults
    # --------------------------------------------------------------------------
    def _value(self, name: str) -> float:
        value = self.measurements.get(name)
        if value is None or value <= 0:
            value = population_default(name, self.height)
            self.defaults.add(name)
            logger.info("Mesh uses population default for %s: %.2f", name, value)
        return value

    def radius(self, name: str) -> float:
        return self._value(name) / (2.0 * math.pi)

    def length(self, name: str) -> float:
        return self._value(name)

    # --------------------------------------------------------------------------
    # Build
    # --------------------------------------------------------------------------
    def build(self) -> BodyMesh:
        h = self.height
        layout: List[StackEntry] = []
        children: List[Segment] = []

        # Head and neck are fixed sizes, shrunk only for very short subjects.
        fixed = 2.0 * HEAD_RADIUS_CM + NECK_LENGTH_CM
        shrink = min(1.0, MAX_HEAD_NECK_FRACTION * h / fixed)
        head_r = HEAD_RADIUS_CM * shrink
        neck_len = NECK_LENGTH_CM * shrink

        cursor = h

        # 1. Head
        children.append(Segment("head", SegmentKind.SPHERE, head_r, head_r, 2.0 * head_r, (0.0, cursor - head_r, 0.0)))
        layout.append(StackEntry("head", cursor, cursor - 2.0 * head_r))
        cursor -= 2.0 * head_r

        # 2. Neck
        neck_r = self.radius("neck")
        children.append(Segment("neck", SegmentKind.TAPERED_CYLINDER, neck_r, neck_r, neck_len,
                                (0.0, cursor - neck_len / 2.0, 0.0)))
        layout.append(StackEntry("neck", cursor, cursor - neck_len))
        cursor -= neck_len

        # 3. Shoulder yoke: horizontal bar across the top of the chest
        shoulder_y = cursor
        shoulder_width = self.length("shoulder_width")
        children.append(Segment("shoulder_yoke", SegmentKind.TAPERED_CYLINDER, YOKE_RADIUS_CM, YOKE_RADIUS_CM,
                                shoulder_width, (0.0, shoulder_y, 0.0), rotation_z=math.pi / 2.0))

        # 4. Torso: chest, waist and hips share what the legs leave
        inseam = self.length("inseam")
        torso_budget = cursor - inseam
        if torso_budget < MIN_TORSO_FRACTION * h:
            torso_budget = MIN_TORSO_FRACTION * h
            clamped = cursor - torso_budget
            logger.warning("Inseam %.1fcm leaves no room for the torso; clamped to %.1fcm", inseam, clamped)
            inseam = clamped

        chest_r = self.radius("chest")
        waist_r = self.radius("waist")
        hip_r = self.radius("hips")
        tapers = {
            "chest": (chest_r * CHEST_TOP_TAPER, chest_r * CHEST_BOTTOM_TAPER),
            "waist": (chest_r * CHEST_BOTTOM_TAPER, waist_r),
            "hips": (waist_r, hip_r),
        }
        split_total = sum(weight for _, weight in TORSO_SPLIT)
        for name, weight in TORSO_SPLIT:
            extent = torso_budget * weight / split_total
            top_r, bottom_r = tapers[name]
            children.append(Segment(name, SegmentKind.TAPERED_CYLINDER, top_r, bottom_r, extent,
                                    (0.0, cursor - extent / 2.0, 0.0)))
            layout.append(StackEntry(name, cursor, cursor - extent))
            cursor -= extent

        # 5. Legs down to the floor
        hip_bottom = cursor
        thigh_len = inseam * THIGH_FRACTION
        shin_len = inseam - thigh_len
        thigh_r = self.radius("thigh")
        calf_r = self.radius("calf")
        ankle_r = self.radius("ankle")
        leg_spacing = hip_r * LEG_SPACING_RATIO
        knee_y = hip_bottom - thigh_len

        for side, direction in SIDES:
            x = direction * leg_spacing
            children.append(Segment(f"thigh_{side}", SegmentKind.TAPERED_CYLINDER, thigh_r, calf_r * KNEE_TAPER,
                                    thigh_len, (x, hip_bottom - thigh_len / 2.0, 0.0)))
            children.append(Segment(f"knee_{side}", SegmentKind.SPHERE, calf_r * KNEE_TAPER, calf_r * KNEE_TAPER,
                                    2.0 * calf_r * KNEE_TAPER, (x, knee_y, 0.0)))
            children.append(Segment(f"shin_{side}", SegmentKind.TAPERED_CYLINDER, calf_r * KNEE_TAPER, ankle_r,
                                    shin_len, (x, knee_y - shin_len / 2.0, 0.0)))
        layout.append(StackEntry("thigh", hip_bottom, knee_y))
        layout.append(StackEntry("shin", knee_y, knee_y - shin_len))

        # 6. Arms hang from the yoke ends; the forearm lives in the upper arm's frame
        for side, direction in SIDES:
            children.append(self._arm(side, direction, shoulder_width, shoulder_y))

        mesh = BodyMesh(
            root=Segment("mannequin", SegmentKind.GROUP, children=tuple(children)),
            height_cm=h,
            layout=tuple(layout),
            defaults_used=tuple(sorted(self.defaults)),
        )
        self._check_layout(mesh)
        return mesh

    def _arm(self, side: str, direction: float, shoulder_width: float, shoulder_y: float) -> Segment:
        sleeve = self.length("sleeve")
        bicep_r = self.radius("bicep")
        wrist_r = self.radius("wrist")
        upper_len = sleeve * UPPER_ARM_FRACTION
        lower_len = sleeve - upper_len

        forearm = Segment(f"forearm_{side}", SegmentKind.TAPERED_CYLINDER, bicep_r * FOREARM_TOP_TAPER,
                          wrist_r * WRIST_TAPER, lower_len, (0.0, -lower_len / 2.0, 0.0))
        elbow = Segment(f"elbow_{side}", SegmentKind.GROUP, translation=(0.0, -upper_len, 0.0),
                        rotation_z=direction * ELBOW_BEND_RAD, children=(forearm,))
        upper = Segment(f"upper_arm_{side}", SegmentKind.TAPERED_CYLINDER, bicep_r, bicep_r * FOREARM_TOP_TAPER,
                        upper_len, (0.0, -upper_len / 2.0, 0.0))
        return Segment(f"arm_{side}", SegmentKind.GROUP,
                       translation=(direction * shoulder_width / 2.0, shoulder_y, 0.0),
                       rotation_z=direction * ARM_SPREAD_RAD, children=(upper, elbow))

    def _check_layout(self, mesh: BodyMesh) -> None:
        drift = abs(mesh.stack_height() - self.height) / self.height
        if drift > LAYOUT_TOLERANCE:
            logger.warning("Mesh stack height %.2fcm drifts %.1f%% from %.2fcm",
                           mesh.stack_height(), drift * 100.0, self.height)


def build_mesh(measurements: MeasurementSet, height_cm: Optional[float] = None) -> BodyMesh:
    return MeshBuilder(measurements, height_cm).build()
