"""
Runtime configuration for the course portal API.

All settings come from environment variables so the same image runs in dev,
CI and production. `ensure_secure_config_on_startup` refuses to boot a
prod-like deployment that still carries development defaults.
"""
from __future__ import annotations

import os

DEFAULT_SECRET_KEY = "super-secret-key-change"

SECRET_KEY = os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY)
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 30)))
PASSWORD_RESET_EXPIRE_MINUTES = int(os.getenv("PASSWORD_RESET_EXPIRE_MINUTES", "30"))

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "lms")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

LMS_ENV = os.getenv("LMS_ENV", "dev")


def cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


def _is_prod_like(env: str) -> bool:
    return (env or "").lower() in {"prod", "production", "stage", "staging"}


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Development stays permissive. In prod/stage the JWT secret must be set to
    something other than the placeholder and CORS must name explicit origins.
    """
    env = os.getenv("LMS_ENV", LMS_ENV)
    if not _is_prod_like(env):
        return

    secret = (os.getenv("SECRET_KEY") or "").strip()
    if not secret or secret == DEFAULT_SECRET_KEY:
        raise SystemExit("Refusing to start: SECRET_KEY is unset or the development placeholder.")

    if "*" in cors_origins():
        raise SystemExit("Refusing to start: CORS_ORIGINS must list explicit origins in production.")
