#persists flat measurement records (reconstruct route) and reads them back for exports
import uuid
from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..database import db
from ..models.MeasurementRecord import MeasurementRecord

# Local in-memory fallback when DB is unavailable or table is missing.
_LOCAL_RECORDS = {}


def save_measurement(record: dict, request_id: Optional[str] = None) -> str:
    """
    Store a flat measurement record and return its scan id.

    Tries the database first; on failure the record is kept in process memory
    so the caller still gets a usable scan id.
    """
    scan_id = str(uuid.uuid4())
    columns = {key: record.get(key) for key in MeasurementRecord.COLUMNS}

    try:
        row = MeasurementRecord(id=scan_id, request_id=request_id, **columns)
        db.session.add(row)
        db.session.commit()
        return scan_id
    except Exception as exc:
        if isinstance(exc, SQLAlchemyError):
            db.session.rollback()
        current_app.logger.warning({
            "component": "FitTwin",
            "event": "measurement_save_fallback",
            "scan_id": scan_id,
            "error": str(exc),
        })
        _LOCAL_RECORDS[scan_id] = dict(
            columns,
            id=scan_id,
            request_id=request_id,
            created_at=datetime.utcnow().isoformat() + "Z",
        )
        return scan_id


def get_measurement(scan_id: str) -> Optional[dict]:
    if not scan_id:
        return None
    try:
        row = db.session.get(MeasurementRecord, scan_id)
        if row is not None:
            return row.to_dict()
    except Exception as exc:
        current_app.logger.debug("Measurement lookup fell back to memory: %s", exc)
    return _LOCAL_RECORDS.get(scan_id)
