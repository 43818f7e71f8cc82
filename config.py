"""
Application configuration module.

This module defines configuration classes for different environments
(development, testing, production). Configuration values are loaded
from environment variables with sensible defaults.

The backing store is selected by a single ``DATABASE_URL`` variable.
Leaving it unset is not fatal: the application still starts, logs a
warning, and every store operation fails at call time.
"""

from __future__ import annotations

import os
from pathlib import Path

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent


def _optional_int(env_var: str, default: int | None) -> int | None:
    """Read an optional positive integer from the environment."""
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return default
    if raw.lower() in ("none", "unbounded"):
        return None
    return int(raw)


class Config:
    """Base configuration with default settings."""

    SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    # No default: an absent connection string only produces a startup warning.
    SQLALCHEMY_DATABASE_URI: str | None = os.environ.get("DATABASE_URL", "").strip() or None

    # Listing defaults differ per resource: tasks are capped, users are not.
    TASK_LIST_DEFAULT_LIMIT: int | None = _optional_int("TASK_LIST_DEFAULT_LIMIT", 100)
    USER_LIST_DEFAULT_LIMIT: int | None = _optional_int("USER_LIST_DEFAULT_LIMIT", None)

    CORS_ALLOW_ORIGIN: str = os.environ.get("CORS_ALLOW_ORIGIN", "*")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG: bool = True
    TESTING: bool = False


class TestingConfig(Config):
    """Testing environment configuration."""

    DEBUG: bool = True
    TESTING: bool = True

    # Use separate test database with check_same_thread=False for multi-threaded access
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "TEST_DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'instance' / 'test_taskhub.db'}?check_same_thread=False"
    )

    # SQLAlchemy engine options for thread safety
    SQLALCHEMY_ENGINE_OPTIONS: dict = {
        "pool_pre_ping": True,
    }


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG: bool = False
    TESTING: bool = False


# Configuration mapping for easy access
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Get the configuration class for the specified environment.

    Args:
        env: Environment name (development, testing, production).
             If None, uses FLASK_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env is None:
        env = os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])
