# backend/app/__init__.py
#   Flask application factory: config, logging, database, middleware, API docs and blueprints.
import logging

from flask import Flask
from flasgger import Swagger

from backend.app.config.settings import settings
from backend.app.database import init_db
from backend.app.middleware.request_id import register_request_id_middleware
from backend.app.models import MeasurementRecord  # noqa: F401  (registers the table for create_all)


def create_app(config_overrides=None):
    app = Flask(__name__)

    app.config["SQLALCHEMY_DATABASE_URI"] = settings.SQLALCHEMY_DATABASE_URI
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = settings.SQLALCHEMY_TRACK_MODIFICATIONS
    app.config["SWAGGER"] = {"title": "FitTwin API", "openapi": "3.0.2"}
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(level=settings.LOG_LEVEL)
    app.logger.setLevel(settings.LOG_LEVEL)

    init_db(app)
    register_request_id_middleware(app)
    Swagger(app)

    from backend.app.FitTwin.FitTwinAPI.ReconstructionRoutes import reconstruction_bp
    from backend.app.routes.health_routes import health_bp

    app.register_blueprint(reconstruction_bp)
    app.register_blueprint(health_bp)

    return app
