# backend/app/database.py
#   Centralizes database configuration for the Flask app.
from flask_sqlalchemy import SQLAlchemy

# ------------------------------
# Flask-SQLAlchemy for app usage
# ------------------------------
db = SQLAlchemy()  # use db.Model for your models


def init_db(app=None):
    """
    Initialize Flask app with SQLAlchemy and create tables if not exist.
    """
    if app:
        db.init_app(app)
        with app.app_context():
            db.create_all()
