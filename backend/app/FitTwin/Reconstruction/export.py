"""
Export adapters: BodyMesh -> triangle interchange formats.

One strategy per target format. Each segment of the tree is tessellated in
its own frame, moved to world space with the tree's transforms and painted
with the single body material color.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import trimesh

from .exceptions import ExportError
from .mesh import BodyMesh, Segment, SegmentKind

logger = logging.getLogger(__name__)

BODY_COLOR_RGBA = (226, 232, 240, 230)
CYLINDER_SECTIONS = 32
SPHERE_SUBDIVISIONS = 3
FILENAME_STEM = "fit-twin-model"


@dataclass(frozen=True)
class ExportedFile:
    filename: str
    mime_type: str
    payload: bytes


# ------------------------------------------------------------------------------
# Tessellation
# ------------------------------------------------------------------------------
def tapered_cylinder(radius_top: float, radius_bottom: float, length: float,
                     sections: int = CYLINDER_SECTIONS) -> trimesh.Trimesh:
    """Closed frustum centered on the origin, axis along +y, outward winding."""
    theta = np.linspace(0.0, 2.0 * np.pi, sections, endpoint=False)
    ring = np.column_stack([np.cos(theta), np.zeros(sections), np.sin(theta)])
    half = length / 2.0

    top = ring * radius_top + [0.0, half, 0.0]
    bottom = ring * radius_bottom - [0.0, half, 0.0]
    vertices = np.vstack([top, bottom, [[0.0, half, 0.0], [0.0, -half, 0.0]]])
    top_center, bottom_center = 2 * sections, 2 * sections + 1

    faces = []
    for i in range(sections):
        j = (i + 1) % sections
        faces.append([i, j, sections + i])
        faces.append([j, sections + j, sections + i])
        faces.append([top_center, j, i])
        faces.append([bottom_center, sections + i, sections + j])

    return trimesh.Trimesh(vertices=vertices, faces=np.array(faces), process=False)


def _segment_geometry(segment: Segment) -> trimesh.Trimesh:
    if segment.kind == SegmentKind.SPHERE:
        return trimesh.creation.icosphere(subdivisions=SPHERE_SUBDIVISIONS, radius=segment.radius)
    return tapered_cylinder(segment.radius_top, segment.radius_bottom, segment.length)


def tessellate(mesh: BodyMesh) -> List[Tuple[str, trimesh.Trimesh]]:
    parts = []
    for segment, matrix in mesh.world_transforms():
        if segment.kind == SegmentKind.GROUP:
            continue
        part = _segment_geometry(segment)
        part.apply_transform(matrix)
        part.visual.face_colors = BODY_COLOR_RGBA
        parts.append((segment.name, part))
    return parts


def to_scene(mesh: BodyMesh) -> trimesh.Scene:
    scene = trimesh.Scene()
    for name, part in tessellate(mesh):
        scene.add_geometry(part, geom_name=name, node_name=name)
    return scene


def to_trimesh(mesh: BodyMesh) -> trimesh.Trimesh:
    return trimesh.util.concatenate([part for _, part in tessellate(mesh)])


# ------------------------------------------------------------------------------
# Format strategies
# ------------------------------------------------------------------------------
class MeshExporter:
    file_type = ""
    mime_type = "application/octet-stream"

    @property
    def filename(self) -> str:
        return f"{FILENAME_STEM}.{self.file_type}"

    def encode(self, mesh: BodyMesh):
        raise NotImplementedError

    def export(self, mesh: BodyMesh) -> ExportedFile:
        try:
            data = self.encode(mesh)
        except ExportError:
            raise
        except Exception as exc:
            raise ExportError(f"{self.file_type} export failed: {exc}") from exc

        if isinstance(data, str):
            data = data.encode("utf-8")
        if not data:
            raise ExportError(f"{self.file_type} export produced no data.")
        logger.info("Exported %s (%d bytes)", self.filename, len(data))
        return ExportedFile(self.filename, self.mime_type, data)


class ObjExporter(MeshExporter):
    file_type = "obj"
    mime_type = "text/plain"

    def encode(self, mesh):
        return to_trimesh(mesh).export(file_type="obj")


class StlExporter(MeshExporter):
    file_type = "stl"

    def encode(self, mesh):
        return to_trimesh(mesh).export(file_type="stl")


class PlyExporter(MeshExporter):
    file_type = "ply"

    def encode(self, mesh):
        return to_trimesh(mesh).export(file_type="ply")


class GlbExporter(MeshExporter):
    file_type = "glb"
    mime_type = "model/gltf-binary"

    def encode(self, mesh):
        return to_scene(mesh).export(file_type="glb")


EXPORTERS: Dict[str, MeshExporter] = {
    exporter.file_type: exporter
    for exporter in (ObjExporter(), StlExporter(), PlyExporter(), GlbExporter())
}
SUPPORTED_FORMATS = tuple(sorted(EXPORTERS))


def get_exporter(fmt: str) -> MeshExporter:
    key = (fmt or "").lower().lstrip(".")
    exporter = EXPORTERS.get(key)
    if exporter is None:
        raise ExportError(f"Unsupported export format '{fmt}'. Supported: {', '.join(SUPPORTED_FORMATS)}")
    return exporter


def export_mesh(mesh: BodyMesh, fmt: str) -> ExportedFile:
    return get_exporter(fmt).export(mesh)
