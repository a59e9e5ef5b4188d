from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from backend.app.config.settings import settings
from backend.app.database import db
import redis


health_bp = Blueprint("health", __name__)

@health_bp.route("/healthz", methods=["GET"])
def healthz():
    health = {"db": False, "redis": False}

    # ------------------
    # Database check
    # ------------------
    try:
        db.session.execute(text("SELECT 1"))
        health["db"] = True
    except Exception as e:
        current_app.logger.warning({"component": "health", "event": "db_check_failed", "error": str(e)})

    # ------------------
    # Redis check
    try:
        r = current_app.config.get("REDIS_CLIENT") or redis.Redis(
            host=settings.REDIS_HOST, port=settings.REDIS_PORT, db=0
        )
        r.ping()
        health["redis"] = True
    except Exception as e:
        current_app.logger.warning({"component": "health", "event": "redis_check_failed", "error": str(e)})

    return jsonify(health)
