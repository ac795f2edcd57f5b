"""
Environment-driven configuration for the SynergySphere backend.

All settings are read once at import time from environment variables.
Out-of-range or malformed numeric values fall back to safe defaults with a warning.
"""

import logging
import os
import secrets
from typing import List

logger = logging.getLogger(__name__)


def is_production_like() -> bool:
    """
    Check if the current environment is production-like (production or staging).

    Returns:
        True if ENVIRONMENT is "production" or "staging", False otherwise
    """
    env = os.environ.get("ENVIRONMENT", "development").lower()
    return env in ("production", "staging")


def _int_from_env(name: str, default: int, minimum: int, maximum: int) -> int:
    """Parse an integer setting, falling back to the default when invalid or out of range."""
    raw = os.environ.get(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"⚠️  Invalid {name} value in environment. Using default of {default}.")
        return default

    if value < minimum or value > maximum:
        logger.warning(
            f"⚠️  {name}={value} is outside safe range ({minimum}-{maximum}). "
            f"Using default of {default}."
        )
        return default
    return value


ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./synergysphere.db")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# JWT configuration
JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY")
if not JWT_SECRET_KEY:
    if is_production_like():
        raise ValueError(
            "JWT_SECRET_KEY environment variable is required in production. "
            "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
        )
    JWT_SECRET_KEY = "dev-insecure-key-" + secrets.token_urlsafe(32)
    logger.warning(
        "⚠️  JWT_SECRET_KEY not set! Using temporary development key. "
        "This is INSECURE for production. Set JWT_SECRET_KEY environment variable."
    )

SUPPORTED_ALGORITHMS = ["HS256", "HS384", "HS512"]
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
if JWT_ALGORITHM not in SUPPORTED_ALGORITHMS:
    logger.warning(
        f"⚠️  Unsupported JWT_ALGORITHM={JWT_ALGORITHM}. Using HS256. "
        f"Supported: {', '.join(SUPPORTED_ALGORITHMS)}"
    )
    JWT_ALGORITHM = "HS256"

ACCESS_TOKEN_EXPIRE_MINUTES = _int_from_env("ACCESS_TOKEN_EXPIRE_MINUTES", 15, 1, 1440)
REFRESH_TOKEN_EXPIRE_DAYS = _int_from_env("REFRESH_TOKEN_EXPIRE_DAYS", 7, 1, 90)

# Pagination
MAX_PAGE_LIMIT = _int_from_env("MAX_PAGE_LIMIT", 100, 1, 1000)
DEFAULT_PAGE_LIMIT = _int_from_env("DEFAULT_PAGE_LIMIT", 10, 1, MAX_PAGE_LIMIT)
NOTIFICATION_PAGE_LIMIT = _int_from_env("NOTIFICATION_PAGE_LIMIT", 20, 1, MAX_PAGE_LIMIT)

# Server
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = _int_from_env("PORT", 8000, 1, 65535)
