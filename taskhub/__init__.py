"""
Flask application factory module.

This module creates and configures the Flask application using
the factory pattern, allowing for different configurations
(development, testing, production).

The application exposes two resources, tasks and users, whose
assignment link is stored on both sides and kept in step by
``taskhub.coordinator``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError

from config import get_config

# Initialize SQLAlchemy without binding to app
db = SQLAlchemy()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _ensure_sqlite_db_parent_exists(database_uri: str) -> None:
    """Create parent directories for file-based SQLite URIs when missing."""
    sqlite_prefix = "sqlite:///"
    if not database_uri.startswith(sqlite_prefix):
        return

    sqlite_path = database_uri[len(sqlite_prefix):].split("?", 1)[0]
    if sqlite_path == ":memory:":
        return

    Path(sqlite_path).parent.mkdir(parents=True, exist_ok=True)


def store_configured(app: Flask) -> bool:
    """Return True when the app was bound to a backing store at startup."""
    return "sqlalchemy" in app.extensions


def create_app(config_name: str | None = None) -> Flask:
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     If None, uses FLASK_ENV environment variable.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    logger.info("Creating app with config: %s", config_class.__name__)

    # Ensure instance folder exists
    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if database_uri:
        _ensure_sqlite_db_parent_exists(database_uri)
        db.init_app(app)
    else:
        logger.warning("Warning: DATABASE_URL not set or empty in environment variables")
        logger.warning("Every store operation will fail until DATABASE_URL is configured")

    # Register blueprints
    from taskhub.routes.api import api_bp, register_error_handlers

    app.register_blueprint(api_bp, url_prefix="/api")
    register_error_handlers(app)

    # Create database tables
    if store_configured(app):
        with app.app_context():
            try:
                db.create_all()
                logger.info("Database tables created")
            except SQLAlchemyError as exc:
                logger.error("Failed to connect to the database: %s", exc)
                logger.error("Please check DATABASE_URL in the environment")

    return app
