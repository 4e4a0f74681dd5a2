# backend/mostrador/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key (signs the terminal session cookie)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/mostrador.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///mostrador.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Local admin gate. Not authentication: anyone at the terminal can read this.
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "change-me")

    # Seller label used for sales rung up while no shift is open
    DEFAULT_SELLER = os.environ.get("DEFAULT_SELLER", "Mostrador")

    # False keeps the insert -> stock -> balance sequence as separate commits
    ATOMIC_POSTING = _env_flag("ATOMIC_POSTING", False)

    # Serve the static demo dataset when a whole collection fetch fails
    FALLBACK_ON_FETCH_ERROR = _env_flag("FALLBACK_ON_FETCH_ERROR", True)

    REPORT_TIMEZONE = os.environ.get("REPORT_TIMEZONE", "UTC")
    TOP_PRODUCTS_LIMIT = int(os.environ.get("TOP_PRODUCTS_LIMIT", "20"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
