class ReconstructionError(Exception):
    """
    Base class for reconstruction pipeline errors.

    Callers (API layer, tests, scripts) can catch this single type when they
    do not care which stage failed.
    """


class CalibrationError(ReconstructionError):
    """
    Raised when no usable cm-per-pixel factor can be derived.

    Fatal to the whole pipeline; no partial measurement set is produced.

    Typical causes:
      - head_top or feet_center missing and no declared pixel height
      - zero / negative pixel height (landmarks collapsed on one row)
      - missing or non-positive reference height
    """


class MissingLandmarkError(ReconstructionError):
    """
    Raised when a landmark needed for a single measurement is absent.

    Field-scoped: the mapper recovers by substituting a population default.
    """

    def __init__(self, landmark: str, field: str = None, view: str = None):
        self.landmark = landmark
        self.field = field
        self.view = view
        where = f" in {view} view" if view else ""
        target = f" (needed for {field})" if field else ""
        super().__init__(f"Landmark '{landmark}' not detected{where}{target}.")


class DegenerateGeometryError(ReconstructionError):
    """
    Raised when a computed radius or length would be <= 0.

    Recovered with the same population default as a missing landmark.
    """

    def __init__(self, field: str, value: float):
        self.field = field
        self.value = value
        super().__init__(f"Degenerate value for {field}: {value!r}")


class ExportError(ReconstructionError):
    """Raised when a mesh cannot be serialized to the requested format."""


class PayloadError(ReconstructionError):
    """Raised when the vision collaborator payload is structurally invalid."""


class UnmeasuredSourceError(ReconstructionError):
    """
    Raised when a derived width references a measurement that was not
    measured from landmarks (it fell back to a default or collapsed).

    Field-scoped, recovered like a missing landmark.
    """

    def __init__(self, source: str, field: str = None):
        self.source = source
        self.field = field
        target = f" (needed for {field})" if field else ""
        super().__init__(f"Source measurement '{source}' was not measured{target}.")
