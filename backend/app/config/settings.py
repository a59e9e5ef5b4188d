# backend/app/config/settings.py
#   Environment-driven settings shared by the Flask app, scripts and tests.
import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///fittwin.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    REDIS_HOST = os.getenv("REDIS_HOST", "redis")
    REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
    CACHE_TTL = int(os.getenv("FITTWIN_CACHE_TTL", "3600"))

    # Used when the vision result does not report photo dimensions.
    DEFAULT_FRAME_WIDTH = float(os.getenv("FITTWIN_DEFAULT_FRAME_WIDTH", "1000"))
    DEFAULT_FRAME_HEIGHT = float(os.getenv("FITTWIN_DEFAULT_FRAME_HEIGHT", "1000"))

    MAX_JSON_KB = int(os.getenv("FITTWIN_MAX_JSON_KB", "500"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
