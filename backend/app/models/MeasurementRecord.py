import uuid
from datetime import datetime

from ..database import db


class MeasurementRecord(db.Model):
    __tablename__ = "measurements"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    request_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # User-provided reference
    height = db.Column(db.Float, nullable=False)

    # Circumferences (cm)
    chest = db.Column(db.Float, nullable=True)
    waist = db.Column(db.Float, nullable=True)
    hips = db.Column(db.Float, nullable=True)
    neck = db.Column(db.Float, nullable=True)
    thigh = db.Column(db.Float, nullable=True)
    calf = db.Column(db.Float, nullable=True)
    ankle = db.Column(db.Float, nullable=True)
    bicep = db.Column(db.Float, nullable=True)
    wrist = db.Column(db.Float, nullable=True)

    # Lengths (cm)
    shoulder = db.Column(db.Float, nullable=True)
    sleeve = db.Column(db.Float, nullable=True)
    inseam = db.Column(db.Float, nullable=True)
    outseam = db.Column(db.Float, nullable=True)
    torso_length = db.Column(db.Float, nullable=True)

    scaling_factor = db.Column(db.Float, nullable=True)
    confidence = db.Column(db.Float, nullable=True)

    full_json = db.Column(db.JSON, nullable=True)
    landmarks_json = db.Column(db.JSON, nullable=True)

    COLUMNS = (
        "height", "chest", "waist", "hips", "neck", "thigh", "calf", "ankle", "bicep", "wrist",
        "shoulder", "sleeve", "inseam", "outseam", "torso_length",
        "scaling_factor", "confidence", "full_json", "landmarks_json",
    )

    def to_dict(self) -> dict:
        data = {column: getattr(self, column) for column in self.COLUMNS}
        data["id"] = self.id
        data["request_id"] = self.request_id
        data["created_at"] = self.created_at.isoformat() + "Z" if self.created_at else None
        return data
