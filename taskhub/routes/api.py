"""
REST API endpoints for tasks and users.

Routes only parse the request and shape the response: reads go
straight to the stores, every mutation goes through
``ConsistencyCoordinator`` so the task/user link stays mirrored.

Endpoints:
    GET    /api/health          - Health check
    GET    /api/tasks           - List tasks (where/sort/select/skip/limit/count)
    POST   /api/tasks           - Create a task
    GET    /api/tasks/<id>      - Get a task (select)
    PUT    /api/tasks/<id>      - Replace a task
    DELETE /api/tasks/<id>      - Delete a task
    GET    /api/users           - List users (where/sort/select/skip/limit/count)
    POST   /api/users           - Create a user
    GET    /api/users/<id>      - Get a user (select)
    PUT    /api/users/<id>      - Replace a user
    DELETE /api/users/<id>      - Delete a user
"""

from __future__ import annotations

import logging
import os
from typing import Any

from flask import Blueprint, Flask, Response, current_app, request
from sqlalchemy.orm import Session

from taskhub import db, store_configured
from taskhub.coordinator import ConsistencyCoordinator
from taskhub.errors import ApiError, StoreUnavailable, ValidationError
from taskhub.models import TASK_FIELDS, USER_FIELDS
from taskhub.query import QueryTranslator
from taskhub.responses import api_error, envelope, error_envelope, no_content
from taskhub.stores import DocumentStore, TaskStore, UserStore

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _session() -> Session:
    """Return the request session, failing when no store is configured."""
    if not store_configured(current_app):
        raise StoreUnavailable("Database is not configured")
    return db.session


def _coordinator() -> ConsistencyCoordinator:
    session = _session()
    return ConsistencyCoordinator(TaskStore(session), UserStore(session))


def _payload() -> dict[str, Any]:
    """
    Read the request body as a dict.

    JSON bodies must be objects. Form bodies are accepted too; repeated
    ``pendingTasks`` (or ``pendingTasks[]``) keys become a list.
    """
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    form = request.form
    data: dict[str, Any] = {
        key: form.get(key) for key in form if key not in ("pendingTasks", "pendingTasks[]")
    }
    if "pendingTasks" in form or "pendingTasks[]" in form:
        data["pendingTasks"] = form.getlist("pendingTasks") + form.getlist("pendingTasks[]")
    return data


def _list(store_class: type[DocumentStore], fields: dict, limit_setting: str) -> tuple[Response, int]:
    translator = QueryTranslator(fields, current_app.config.get(limit_setting))
    plan = translator.translate(request.args)
    store = store_class(_session())

    if plan.count:
        return envelope({"count": store.count(plan)})
    records = store.find_many(plan)
    return envelope([plan.shape(record.to_dict()) for record in records])


def _get(store_class: type[DocumentStore], fields: dict, record_id: str) -> tuple[Response, int]:
    projection = QueryTranslator(fields).parse_select(request.args.get("select"))
    record = store_class(_session()).find_by_id(record_id)
    document = record.to_dict()
    if projection is not None:
        document = projection.apply(document)
    return envelope(document)


# -----------------------------------------------------------------------------
# API Endpoints
# -----------------------------------------------------------------------------

@api_bp.route("/health", methods=["GET"])
def health_check() -> tuple[Response, int]:
    """Health check endpoint for deployment verification."""
    return envelope({
        "status": "healthy",
        "service": "taskhub",
        "environment": os.getenv("ENVIRONMENT", "unknown"),
        "store": "configured" if store_configured(current_app) else "missing",
    })


@api_bp.route("/tasks", methods=["GET"])
def list_tasks() -> tuple[Response, int]:
    """List tasks; defaults to at most ``TASK_LIST_DEFAULT_LIMIT`` records."""
    return _list(TaskStore, TASK_FIELDS, "TASK_LIST_DEFAULT_LIMIT")


@api_bp.route("/tasks", methods=["POST"])
def create_task() -> tuple[Response, int]:
    """
    Create a new task.

    Request Body:
        name: Task name (required)
        deadline: ISO date/time or epoch milliseconds (required)
        description, completed, assignedUser, dateCreated: optional

    Returns:
        The created task with 201, or 400 if validation fails.
    """
    task = _coordinator().create_task(_payload())
    return envelope(task.to_dict(), 201)


@api_bp.route("/tasks/<task_id>", methods=["GET"])
def get_task(task_id: str) -> tuple[Response, int]:
    return _get(TaskStore, TASK_FIELDS, task_id)


@api_bp.route("/tasks/<task_id>", methods=["PUT"])
def update_task(task_id: str) -> tuple[Response, int]:
    """Replace a task. ``name`` and ``deadline`` must always be resupplied."""
    task = _coordinator().update_task(task_id, _payload())
    return envelope(task.to_dict())


@api_bp.route("/tasks/<task_id>", methods=["DELETE"])
def delete_task(task_id: str) -> tuple[Response, int]:
    _coordinator().delete_task(task_id)
    return no_content()


@api_bp.route("/users", methods=["GET"])
def list_users() -> tuple[Response, int]:
    """List users; unbounded unless ``USER_LIST_DEFAULT_LIMIT`` is set."""
    return _list(UserStore, USER_FIELDS, "USER_LIST_DEFAULT_LIMIT")


@api_bp.route("/users", methods=["POST"])
def create_user() -> tuple[Response, int]:
    """
    Create a new user.

    Request Body:
        name: User name (required)
        email: Unique email (required)
        pendingTasks: Array of task ids (optional)

    Returns:
        The created user with 201, or 400 on validation failure or
        duplicate email.
    """
    user = _coordinator().create_user(_payload())
    return envelope(user.to_dict(), 201)


@api_bp.route("/users/<user_id>", methods=["GET"])
def get_user(user_id: str) -> tuple[Response, int]:
    return _get(UserStore, USER_FIELDS, user_id)


@api_bp.route("/users/<user_id>", methods=["PUT"])
def update_user(user_id: str) -> tuple[Response, int]:
    """Replace a user. ``pendingTasks`` replaces the stored list wholesale."""
    user = _coordinator().update_user(user_id, _payload())
    return envelope(user.to_dict())


@api_bp.route("/users/<user_id>", methods=["DELETE"])
def delete_user(user_id: str) -> tuple[Response, int]:
    _coordinator().delete_user(user_id)
    return no_content()


@api_bp.after_app_request
def add_cors_headers(response: Response) -> Response:
    """Allow the API to be called from a frontend on another origin."""
    response.headers["Access-Control-Allow-Origin"] = current_app.config.get("CORS_ALLOW_ORIGIN", "*")
    response.headers["Access-Control-Allow-Headers"] = (
        "X-Requested-With, X-HTTP-Method-Override, Content-Type, Accept"
    )
    response.headers["Access-Control-Allow-Methods"] = "POST, GET, PUT, DELETE, OPTIONS"
    return response


# -----------------------------------------------------------------------------
# Error Handlers
# -----------------------------------------------------------------------------

def register_error_handlers(app: Flask) -> None:
    """Answer every failure with the standard envelope."""

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError) -> tuple[Response, int]:
        if error.status_code >= 500:
            logger.error("Request failed: %s", error.detail)
        else:
            logger.warning("Request rejected (%s): %s", error.status_code, error.detail)
        return api_error(error)

    @app.errorhandler(400)
    def bad_request(error: Exception) -> tuple[Response, int]:
        """Handle 400 Bad Request errors."""
        return error_envelope(400, "Malformed request")

    @app.errorhandler(404)
    def not_found(error: Exception) -> tuple[Response, int]:
        """Handle 404 Not Found errors."""
        return error_envelope(404, "Resource not found")

    @app.errorhandler(405)
    def method_not_allowed(error: Exception) -> tuple[Response, int]:
        return error_envelope(405, "Method not allowed")

    @app.errorhandler(500)
    def internal_error(error: Exception) -> tuple[Response, int]:
        """Handle 500 Internal Server errors."""
        logger.error("Internal server error: %s", error)
        return error_envelope(500, "Internal server error")
