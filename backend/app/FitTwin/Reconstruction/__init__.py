"""
Photogrammetric scaling and reconstruction pipeline.
"""

from .engine import ReconstructionEngine, ReconstructionResult  # noqa: F401
from .exceptions import (  # noqa: F401
    ReconstructionError,
    CalibrationError,
    MissingLandmarkError,
    DegenerateGeometryError,
    ExportError,
    PayloadError,
    UnmeasuredSourceError,
)
from .landmarks import ImageFrame, LandmarkPoint, LandmarkSet  # noqa: F401
from .measurements import MeasurementSet, Provenance  # noqa: F401
from .mesh import BodyMesh, build_mesh  # noqa: F401
from .export import export_mesh, SUPPORTED_FORMATS  # noqa: F401
from .viewer import Turntable  # noqa: F401
