# config.py
"""
Configuration (env)

Every setting is read from an EDUMEDIA_* environment variable once, at import.
``create_app`` copies these into ``app.config`` and lets callers override any
of them with a mapping (tests point DATABASE at a temporary file this way).
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).parent.resolve()

DATABASE = os.environ.get("EDUMEDIA_DATABASE", str(BASE_DIR / "edumedia.db"))
JWT_SECRET = os.environ.get("EDUMEDIA_JWT_SECRET", None)
if not JWT_SECRET:
    # In production this MUST be set. For dev only fallback:
    JWT_SECRET = "please_set_EDUMEDIA_JWT_SECRET_in_env"
JWT_ALGORITHM = os.environ.get("EDUMEDIA_JWT_ALGORITHM", "HS256")
JWT_EXP_SECONDS = int(os.environ.get("EDUMEDIA_JWT_EXP_SECONDS", 60 * 60 * 24 * 7))  # default 7 days

UNDO_LIMIT = int(os.environ.get("EDUMEDIA_UNDO_LIMIT", 10))
PASSWORD_MIN_LENGTH = int(os.environ.get("EDUMEDIA_PASSWORD_MIN_LENGTH", 6))

MAX_CONTENT_LENGTH = int(os.environ.get("EDUMEDIA_MAX_CONTENT_LENGTH", 1024 * 1024))  # 1 MB of JSON is plenty
CORS_ORIGINS = os.environ.get("EDUMEDIA_CORS_ORIGINS", "*")  # set to origin(s) in prod
LOG_LEVEL = os.environ.get("EDUMEDIA_LOG_LEVEL", "INFO")


def defaults() -> dict:
    """Settings in the shape ``app.config`` expects."""
    return {
        "DATABASE": DATABASE,
        "SECRET_KEY": JWT_SECRET,
        "JWT_ALGORITHM": JWT_ALGORITHM,
        "JWT_EXP_SECONDS": JWT_EXP_SECONDS,
        "UNDO_LIMIT": UNDO_LIMIT,
        "PASSWORD_MIN_LENGTH": PASSWORD_MIN_LENGTH,
        "MAX_CONTENT_LENGTH": MAX_CONTENT_LENGTH,
        "CORS_ORIGINS": CORS_ORIGINS,
        "LOG_LEVEL": LOG_LEVEL,
    }
