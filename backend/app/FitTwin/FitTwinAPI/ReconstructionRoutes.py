import io
import json
import time
import uuid
from typing import Optional

import redis
from flask import Blueprint, current_app, g, jsonify, request, send_file
from flasgger import swag_from

from backend.app.config.settings import settings
from backend.app.Decorators.requestSizeValidator import validate_request_size
from backend.app.FitTwin.Reconstruction.engine import ReconstructionEngine
from backend.app.FitTwin.Reconstruction.exceptions import (
    CalibrationError,
    ExportError,
    PayloadError,
    ReconstructionError,
)
from backend.app.FitTwin.Reconstruction.export import SUPPORTED_FORMATS, get_exporter
from backend.app.FitTwin.Reconstruction.landmarks import ImageFrame
from backend.app.FitTwin.Reconstruction.measurements import UNIT_SYSTEMS, MeasurementSet
from backend.app.FitTwin.Reconstruction.mesh import build_mesh
from backend.app.services.measurement_store import get_measurement, save_measurement
from backend.app.services.redisKeyGenerate import generate_payload_cache_key

# ------------------------------------------------------------------------------
# Blueprint
# ------------------------------------------------------------------------------
reconstruction_bp = Blueprint("reconstruction_bp", __name__, url_prefix="/fittwin")

# Process-local cache used when Redis is unreachable.
_LOCAL_CACHE = {}


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------
def _request_id() -> str:
    return getattr(g, "request_id", None) or request.headers.get("X-Request-ID") or str(uuid.uuid4())


def _make_error_response(code: str, message: str, status: int, request_id: str, details: Optional[dict] = None):
    """
    Standard error payload used across endpoints for consistent client handling.

    Args:
      code: stable machine-readable error code
      message: human-readable summary
      status: HTTP status code
      request_id: correlation id returned to clients
      details: optional structured details about the error
    """
    payload = {
        "error": {
            "code": code,
            "message": message
        },
        "request_id": request_id
    }
    if details:
        payload["error"]["details"] = details
    return jsonify(payload), status


def _get_redis_client():
    """
    Resolve a Redis client.

    Priority:
      1) current_app.config["REDIS_CLIENT"] if provided by app factory
      2) Create a new redis.Redis client from settings (REDIS_HOST/REDIS_PORT)
    """
    client = current_app.config.get("REDIS_CLIENT")
    if client:
        return client
    return redis.Redis(host=settings.REDIS_HOST, port=settings.REDIS_PORT, db=0)


def _cache_get(client, key: str):
    """
    Cache GET with graceful fallback to in-memory cache when Redis fails.
    """
    try:
        return client.get(key)
    except Exception as exc:
        current_app.logger.warning({
            "component": "FitTwin",
            "event": "cache_get_failed",
            "error": str(exc)
        })
        return _LOCAL_CACHE.get(key)


def _cache_set(client, key: str, value: str, ex: int = 3600):
    """
    Cache SET with graceful fallback to in-memory cache when Redis fails.
    """
    try:
        client.set(key, value, ex=ex)
        return
    except Exception as exc:
        current_app.logger.warning({
            "component": "FitTwin",
            "event": "cache_set_failed",
            "error": str(exc)
        })
        _LOCAL_CACHE[key] = value


def _default_frame() -> ImageFrame:
    return ImageFrame(settings.DEFAULT_FRAME_WIDTH, settings.DEFAULT_FRAME_HEIGHT)


# ------------------------------------------------------------------------------
# Reconstruct route
# ------------------------------------------------------------------------------
@reconstruction_bp.route("/reconstruct", methods=["POST"])
@validate_request_size(max_json_kb=settings.MAX_JSON_KB)
@swag_from({
    "tags": ["FitTwin / Reconstruction"],
    "summary": "Reconstruct body measurements and mesh from landmarks",
    "description": "Accepts the vision result (height plus front/side landmarks), calibrates the front photo, "
                   "maps landmarks to circumferences and lengths, builds the proportional mesh and stores the record. "
                   "Responses are cached by payload hash.",
    "parameters": [
        {
            "in": "query",
            "name": "units",
            "required": False,
            "schema": {"type": "string", "enum": list(UNIT_SYSTEMS), "example": "metric"},
            "description": "Unit system of the returned measurements."
        }
    ],
    "requestBody": {
        "required": True,
        "content": {
            "application/json": {
                "schema": {
                    "type": "object",
                    "properties": {
                        "height_cm": {"type": "number", "example": 180},
                        "landmarks_front": {
                            "type": "object",
                            "example": {"head_top": {"x": 0.5, "y": 0.05}, "feet_center": {"x": 0.5, "y": 0.95}}
                        },
                        "landmarks_side": {
                            "type": "object",
                            "example": {"chest_front": {"x": 0.42, "y": 0.3}, "chest_back": {"x": 0.58, "y": 0.3}}
                        },
                        "image": {
                            "type": "object",
                            "example": {"front": {"width": 1000, "height": 1000}}
                        },
                        "technical_analysis": {
                            "type": "object",
                            "example": {"scaling": {"pixel_height": 900}}
                        }
                    },
                    "required": ["height_cm", "landmarks_front"]
                }
            }
        }
    },
    "responses": {
        200: {
            "description": "Measurements computed (fields may carry population defaults, see defaults_used)",
            "content": {
                "application/json": {
                    "example": {
                        "request_id": "req-123",
                        "scan_id": "6d0c...",
                        "latency_ms": 14,
                        "units": "cm",
                        "height": 180.0,
                        "measurements": {"chest": 98.2, "waist": 81.4, "shoulder_width": 44.0},
                        "provenance": {"chest": "measured", "thigh": "derived", "neck": "default"},
                        "defaults_used": ["neck"],
                        "warnings": ["neck: using population default (...)"],
                        "mesh": {"height_cm": 180.0, "segments": []},
                        "trace": [{"stage": "calibrate", "ms": 0}]
                    }
                }
            }
        },
        400: {
            "description": "Invalid payload",
            "content": {
                "application/json": {
                    "example": {
                        "error": {"code": "INVALID_ARGUMENT", "message": "height_cm must be between 80 and 260."},
                        "request_id": "req-123"
                    }
                }
            }
        },
        413: {"description": "Payload too large"},
        422: {
            "description": "No usable scale could be derived; no result is produced",
            "content": {
                "application/json": {
                    "example": {
                        "error": {"code": "CALIBRATION_FAILED", "message": "pixel height must be positive, got 0."},
                        "request_id": "req-123"
                    }
                }
            }
        },
        500: {"description": "Internal server error"}
    }
})
def reconstruct():
    """
    Runs the reconstruction pipeline for one subject.

    Key behaviors:
      - Validates JSON body and the units query parameter
      - Checks cache for repeated payloads
      - Runs ReconstructionEngine; calibration failure is a 422 with no result
      - Persists the flat measurement record and caches the response
    """
    request_id = _request_id()
    start_time = time.time()

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return _make_error_response(
            code="INVALID_ARGUMENT",
            message="Request body must be a JSON object",
            status=400,
            request_id=request_id,
        )

    units = (request.args.get("units") or "metric").lower()
    if units not in UNIT_SYSTEMS:
        return _make_error_response(
            code="INVALID_ARGUMENT",
            message=f"units must be one of {', '.join(UNIT_SYSTEMS)}",
            status=400,
            request_id=request_id,
            details={"field": "units"},
        )

    # --------------------------------------------------------------------------
    # Cache lookup
    # --------------------------------------------------------------------------
    redis_client = _get_redis_client()
    cache_key = generate_payload_cache_key(payload, units)
    cached = _cache_get(redis_client, cache_key)
    if cached:
        if isinstance(cached, bytes):
            cached = cached.decode("utf-8")
        try:
            cached_body = json.loads(cached)
        except ValueError:
            cached_body = None
        if isinstance(cached_body, dict):
            current_app.logger.info({
                "component": "FitTwin",
                "request_id": request_id,
                "event": "cache_hit",
                "scan_id": cached_body.get("scan_id"),
            })
            return jsonify(cached_body), 200

    # --------------------------------------------------------------------------
    # Engine
    # --------------------------------------------------------------------------
    try:
        engine = ReconstructionEngine(default_frame=_default_frame())
        result, trace = engine.run(payload)
    except PayloadError as exc:
        return _make_error_response(
            code="INVALID_ARGUMENT",
            message=str(exc),
            status=400,
            request_id=request_id,
        )
    except CalibrationError as exc:
        current_app.logger.warning({
            "component": "FitTwin",
            "request_id": request_id,
            "event": "calibration_failed",
            "error": str(exc)
        })
        return _make_error_response(
            code="CALIBRATION_FAILED",
            message=str(exc),
            status=422,
            request_id=request_id,
        )
    except ReconstructionError as exc:
        return _make_error_response(
            code="INTERNAL",
            message=str(exc),
            status=500,
            request_id=request_id,
        )
    except Exception as exc:  # pragma: no cover - safety net
        current_app.logger.exception({
            "component": "FitTwin",
            "request_id": request_id,
            "event": "reconstruct_exception",
            "error": str(exc)
        })
        return _make_error_response(
            code="INTERNAL",
            message="Unexpected error during reconstruction",
            status=500,
            request_id=request_id,
        )

    # --------------------------------------------------------------------------
    # Persist, assemble and cache
    # --------------------------------------------------------------------------
    persist_start = time.time()
    scan_id = save_measurement(result.to_record(), request_id=request_id)
    trace.append({"stage": "persist_record", "ms": int((time.time() - persist_start) * 1000)})

    final_response = {
        "request_id": request_id,
        "scan_id": scan_id,
        "latency_ms": int((time.time() - start_time) * 1000),
        **result.to_dict(units=units),
        "trace": trace
    }

    _cache_set(redis_client, cache_key, json.dumps(final_response), ex=settings.CACHE_TTL)

    current_app.logger.info({
        "component": "FitTwin",
        "request_id": request_id,
        "event": "reconstruct_success",
        "scan_id": scan_id,
        "defaults_used": final_response.get("defaults_used"),
        "latency_ms": final_response["latency_ms"]
    })
    return jsonify(final_response), 200


# ------------------------------------------------------------------------------
# Stored scans
# ------------------------------------------------------------------------------
@reconstruction_bp.route("/scans/<scan_id>", methods=["GET"])
@swag_from({
    "tags": ["FitTwin / Reconstruction"],
    "summary": "Fetch a stored measurement record",
    "parameters": [
        {"in": "path", "name": "scan_id", "required": True, "schema": {"type": "string"}}
    ],
    "responses": {
        200: {"description": "Stored flat record (cm)"},
        404: {"description": "Unknown scan id"}
    }
})
def get_scan(scan_id):
    request_id = _request_id()
    record = get_measurement(scan_id)
    if record is None:
        return _make_error_response(
            code="NOT_FOUND",
            message=f"No scan with id {scan_id}",
            status=404,
            request_id=request_id,
            details={"scan_id": scan_id},
        )
    return jsonify({"request_id": request_id, "scan": record}), 200


@reconstruction_bp.route("/scans/<scan_id>/export/<fmt>", methods=["GET"])
@swag_from({
    "tags": ["FitTwin / Reconstruction"],
    "summary": "Download the body mesh of a stored scan",
    "description": "Rebuilds the proportional mesh from the stored measurements and returns it as a file.",
    "parameters": [
        {"in": "path", "name": "scan_id", "required": True, "schema": {"type": "string"}},
        {
            "in": "path",
            "name": "fmt",
            "required": True,
            "schema": {"type": "string", "enum": list(SUPPORTED_FORMATS)},
        }
    ],
    "responses": {
        200: {"description": "Mesh file"},
        400: {"description": "Unsupported export format"},
        404: {"description": "Unknown scan id"},
        500: {"description": "Export failed"}
    }
})
def export_scan(scan_id, fmt):
    request_id = _request_id()

    try:
        exporter = get_exporter(fmt)
    except ExportError as exc:
        return _make_error_response(
            code="UNSUPPORTED_FORMAT",
            message=str(exc),
            status=400,
            request_id=request_id,
            details={"format": fmt, "supported": list(SUPPORTED_FORMATS)},
        )

    record = get_measurement(scan_id)
    if record is None:
        return _make_error_response(
            code="NOT_FOUND",
            message=f"No scan with id {scan_id}",
            status=404,
            request_id=request_id,
            details={"scan_id": scan_id},
        )

    try:
        mesh = build_mesh(MeasurementSet.from_record(record))
        exported = exporter.export(mesh)
    except (ValueError, ExportError) as exc:
        current_app.logger.error({
            "component": "FitTwin",
            "request_id": request_id,
            "event": "export_failed",
            "scan_id": scan_id,
            "format": fmt,
            "error": str(exc)
        })
        return _make_error_response(
            code="EXPORT_FAILED",
            message=str(exc),
            status=500,
            request_id=request_id,
        )

    return send_file(
        io.BytesIO(exported.payload),
        mimetype=exported.mime_type,
        as_attachment=True,
        download_name=exported.filename,
    )
