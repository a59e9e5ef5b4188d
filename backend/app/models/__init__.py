# backend/app/models/__init__.py
#    Central place to expose all SQLAlchemy ORM models.
from .MeasurementRecord import MeasurementRecord

__all__ = ["MeasurementRecord"]
