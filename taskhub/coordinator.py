"""
Cross-entity mutations for tasks and users.

A task names its assignee (``assigned_user_id`` plus a copy of the
user's name) and a user lists its incomplete tasks (``pending_tasks``).
The two sides live in different records and there is no multi-record
transaction, so each mutation here is a fixed sequence of store calls:

* the *primary* write is the record the request addresses. It either
  succeeds or the whole operation fails with its error;
* *secondary* writes repair the mirrored side. They run through
  ``SideEffects``: a failure is logged and the operation still reports
  success.

Invariants kept on a best-effort basis:

* an assigned, incomplete task is listed exactly once in its assignee's
  ``pending_tasks``;
* an unassigned or completed task is listed in no ``pending_tasks``;
* ``assigned_user_name`` equals the assignee's current name;
* emails are unique (enforced by the store).

Concurrent requests touching the same user can interleave their
pending-list writes; no locking is attempted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from taskhub.effects import SideEffects
from taskhub.errors import NotFound, ValidationError
from taskhub.models import Task, User, parse_timestamp, utcnow
from taskhub.stores import TaskStore, UserStore

logger = logging.getLogger(__name__)

ADD_TO_ASSIGNEE = "add task to assignee pendingTasks"
REMOVE_FROM_PREVIOUS_ASSIGNEE = "remove task from previous assignee pendingTasks"
REMOVE_COMPLETED_FROM_ASSIGNEE = "remove completed task from assignee pendingTasks"
REMOVE_DELETED_FROM_ASSIGNEE = "remove deleted task from assignee pendingTasks"
UNASSIGN_DROPPED_TASKS = "unassign tasks dropped from pendingTasks"
ASSIGN_LISTED_TASKS = "assign tasks listed in pendingTasks"
UNASSIGN_DELETED_USER_TASKS = "unassign tasks of deleted user"


# -----------------------------------------------------------------------------
# Payload parsing
# -----------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    return not value or (isinstance(value, str) and not value.strip())


def _require(data: Mapping[str, Any], *fields: str) -> None:
    if any(_is_blank(data.get(field)) for field in fields):
        names = " and ".join(field.capitalize() if i == 0 else field for i, field in enumerate(fields))
        raise ValidationError(f"{names} are required")


def _string(data: Mapping[str, Any], field: str) -> str:
    value = data[field]
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def _timestamp(data: Mapping[str, Any], field: str) -> datetime:
    try:
        return parse_timestamp(data[field])
    except ValueError as exc:
        raise ValidationError(f"Invalid {field} format. Use ISO 8601 or milliseconds since epoch") from exc


def _boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError("completed must be a boolean")


@dataclass(frozen=True)
class TaskFields:
    """
    Task payload after validation.

    Optional fields are ``None`` when the payload did not supply them so
    updates can keep the previous value.
    """

    name: str
    deadline: datetime
    description: str | None = None
    completed: bool | None = None
    assigned_user: str | None = None
    date_created: datetime | None = None

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "TaskFields":
        _require(data, "name", "deadline")

        description = None
        if "description" in data:
            description = "" if data["description"] is None else _string(data, "description")

        completed = None
        if data.get("completed") is not None:
            completed = _boolean(data["completed"])

        assigned_user = data.get("assignedUser")
        if assigned_user is not None and not isinstance(assigned_user, str):
            raise ValidationError("assignedUser must be a user id string")

        date_created = None
        if not _is_blank(data.get("dateCreated")):
            date_created = _timestamp(data, "dateCreated")

        return cls(
            name=_string(data, "name"),
            deadline=_timestamp(data, "deadline"),
            description=description,
            completed=completed,
            assigned_user=assigned_user or None,
            date_created=date_created,
        )


@dataclass(frozen=True)
class UserFields:
    """User payload after validation."""

    name: str
    email: str
    pending_tasks: tuple[str, ...] = ()
    date_created: datetime | None = None

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "UserFields":
        _require(data, "name", "email")

        pending = data.get("pendingTasks") or []
        if isinstance(pending, str):
            pending = [pending]
        if not isinstance(pending, list) or not all(isinstance(item, str) for item in pending):
            raise ValidationError("pendingTasks must be an array of task ids")
        if len(set(pending)) != len(pending):
            raise ValidationError("pendingTasks must not contain duplicates")

        date_created = None
        if not _is_blank(data.get("dateCreated")):
            date_created = _timestamp(data, "dateCreated")

        return cls(
            name=_string(data, "name"),
            email=_string(data, "email"),
            pending_tasks=tuple(pending),
            date_created=date_created,
        )


# -----------------------------------------------------------------------------
# Coordinator
# -----------------------------------------------------------------------------

class ConsistencyCoordinator:
    """
    Orchestrates every mutation that affects both tasks and users.

    Args:
        tasks: Task store.
        users: User store.
        effects: Runner for secondary writes; a fresh one is created when
            omitted. Its ``outcomes`` list every secondary attempt.
    """

    def __init__(self, tasks: TaskStore, users: UserStore, effects: SideEffects | None = None) -> None:
        self.tasks = tasks
        self.users = users
        self.effects = effects if effects is not None else SideEffects()

    def _resolve_assignee(self, user_id: str) -> User:
        try:
            return self.users.find_by_id(user_id)
        except NotFound as exc:
            logger.warning("Assigned user %s not found", user_id)
            raise ValidationError("Assigned user not found") from exc

    # -- tasks ---------------------------------------------------------------

    def create_task(self, data: Mapping[str, Any]) -> Task:
        """
        Create a task and list it on its assignee.

        Raises:
            ValidationError: Missing name/deadline or unknown assignee.
        """
        fields = TaskFields.parse(data)
        assignee = self._resolve_assignee(fields.assigned_user) if fields.assigned_user else None

        task = Task(
            name=fields.name,
            description=fields.description or "",
            deadline=fields.deadline,
            completed=bool(fields.completed),
            date_created=fields.date_created or utcnow(),
        )
        task.assign(assignee)
        # Committing expires loaded rows; later steps use these plain values.
        assignee_id = task.assigned_user_id
        task = self.tasks.insert(task)
        record_id = task.id
        logger.info("Created task %s", record_id)

        if assignee_id is not None and not fields.completed:
            self.effects.run(ADD_TO_ASSIGNEE, self.users.add_pending_task, assignee_id, record_id)
        return task

    def update_task(self, task_id: str, data: Mapping[str, Any]) -> Task:
        """
        Replace a task and move it between pending lists as needed.

        Raises:
            ValidationError: Missing name/deadline or unknown assignee.
            InvalidId, NotFound: No task for ``task_id``.
        """
        fields = TaskFields.parse(data)
        task = self.tasks.find_by_id(task_id)
        previous_user = task.assigned_user_id
        assignee = self._resolve_assignee(fields.assigned_user) if fields.assigned_user else None

        task.name = fields.name
        task.deadline = fields.deadline
        if fields.description is not None:
            task.description = fields.description
        if fields.completed is not None:
            task.completed = fields.completed
        task.assign(assignee)
        record_id = task.id
        new_user = task.assigned_user_id
        completed = bool(task.completed)
        task = self.tasks.replace(task)
        logger.info("Updated task %s", record_id)

        if previous_user is not None and previous_user != new_user:
            self.effects.run(
                REMOVE_FROM_PREVIOUS_ASSIGNEE, self.users.remove_pending_task, previous_user, record_id
            )
        if new_user is not None:
            if completed:
                self.effects.run(
                    REMOVE_COMPLETED_FROM_ASSIGNEE, self.users.remove_pending_task, new_user, record_id
                )
            else:
                self.effects.run(ADD_TO_ASSIGNEE, self.users.add_pending_task, new_user, record_id)
        return task

    def delete_task(self, task_id: str) -> None:
        """
        Delete a task after unlisting it from its assignee.

        The unlisting is best-effort and does not block the delete.
        """
        task = self.tasks.find_by_id(task_id)
        record_id, assignee_id = task.id, task.assigned_user_id
        if assignee_id is not None:
            self.effects.run(
                REMOVE_DELETED_FROM_ASSIGNEE, self.users.remove_pending_task, assignee_id, record_id
            )
        self.tasks.delete(record_id)
        logger.info("Deleted task %s", task_id)

    # -- users ---------------------------------------------------------------

    def create_user(self, data: Mapping[str, Any]) -> User:
        """
        Create a user. Listed pending tasks are stored as given.

        Raises:
            ValidationError: Missing name/email or bad pendingTasks.
            DuplicateKey: Email already in use.
        """
        fields = UserFields.parse(data)
        user = User(
            name=fields.name,
            email=fields.email,
            pending_tasks=list(fields.pending_tasks),
            date_created=fields.date_created or utcnow(),
        )
        user = self.users.insert(user)
        logger.info("Created user %s", user.id)
        return user

    def update_user(self, user_id: str, data: Mapping[str, Any]) -> User:
        """
        Replace a user and re-point the tasks its pending list names.

        Tasks dropped from ``pendingTasks`` are unassigned, tasks listed in
        it are assigned to this user under its new name. Tasks that point
        at this user but are not listed are left untouched.

        Raises:
            ValidationError: Missing name/email or bad pendingTasks.
            InvalidId, NotFound: No user for ``user_id``.
            DuplicateKey: Email already in use.
        """
        fields = UserFields.parse(data)
        user = self.users.find_by_id(user_id)
        previous_pending = list(user.pending_tasks or [])

        user.name = fields.name
        user.email = fields.email
        user.pending_tasks = list(fields.pending_tasks)
        record_id = user.id
        user = self.users.replace(user)
        logger.info("Updated user %s", record_id)

        pending = list(fields.pending_tasks)
        dropped = [task_id for task_id in previous_pending if task_id not in pending]
        if dropped:
            self.effects.run(UNASSIGN_DROPPED_TASKS, self.tasks.unassign_all, dropped)
        if pending:
            self.effects.run(ASSIGN_LISTED_TASKS, self.tasks.assign_all, pending, record_id, fields.name)
        return user

    def delete_user(self, user_id: str) -> None:
        """
        Delete a user after unassigning every task pointing at it.

        The unassignment is best-effort and does not block the delete.
        """
        record_id = self.users.find_by_id(user_id).id
        self.effects.run(UNASSIGN_DELETED_USER_TASKS, self.tasks.unassign_user, record_id)
        self.users.delete(record_id)
        logger.info("Deleted user %s", user_id)
