"""
Turntable viewer state.

The render loop owns its own frame-by-frame state (rotation angle). It only
receives finished BodyMesh descriptions through ``show`` and never calls
back into reconstruction.
"""
import math
from typing import Optional

import numpy as np
import trimesh

from .exceptions import ExportError
from .export import to_scene
from .mesh import BodyMesh

# Radians per rendered frame.
DEFAULT_SPIN_SPEED = 0.002
SNAPSHOT_RESOLUTION = (800, 800)


class Turntable:
    def __init__(self, speed: float = DEFAULT_SPIN_SPEED):
        self.speed = speed
        self.angle = 0.0
        self.mesh: Optional[BodyMesh] = None
        self._scene: Optional[trimesh.Scene] = None

    def show(self, mesh: BodyMesh) -> None:
        """Swap in a freshly built mesh; the rotation angle is kept."""
        self.mesh = mesh
        self._scene = None

    def advance(self, frames: int = 1) -> float:
        self.angle = (self.angle + self.speed * frames) % (2.0 * math.pi)
        return self.angle

    def rotation(self) -> np.ndarray:
        return trimesh.transformations.rotation_matrix(self.angle, [0.0, 1.0, 0.0])

    def scene(self) -> Optional[trimesh.Scene]:
        """Scene for the current frame, or None before the first mesh arrives."""
        if self.mesh is None:
            return None
        if self._scene is None:
            self._scene = to_scene(self.mesh)
        frame = self._scene.copy()
        frame.apply_transform(self.rotation())
        return frame

    def snapshot(self, resolution=SNAPSHOT_RESOLUTION) -> bytes:
        """
        PNG of the current frame.

        Off-screen rendering goes through trimesh's pyglet viewer (``render``
        extra); any renderer failure surfaces as ExportError.
        """
        frame = self.scene()
        if frame is None:
            raise ExportError("no mesh to snapshot yet.")
        try:
            png = frame.save_image(resolution=resolution, visible=False)
        except Exception as exc:
            raise ExportError(f"png snapshot failed: {exc}") from exc
        if not png:
            raise ExportError("png snapshot produced no data.")
        return png
