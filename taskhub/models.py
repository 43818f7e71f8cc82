"""
Database models for the task/user API.

Rows are treated as documents: identifiers are ObjectId-shaped hex
strings generated by the application and a user's pending task ids are
kept as a JSON array on the user row. Task and user reference each
other only by identifier, there is no foreign key between the tables.

The "unassigned" state is stored as NULL in both ``assigned_user_id``
and ``assigned_user_name``. The public sentinels (``""`` and
``"unassigned"``) only appear in ``to_dict`` output and in the query
field registries below.
"""

from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from taskhub import db

UNASSIGNED_USER = ""
UNASSIGNED_NAME = "unassigned"

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def new_object_id() -> str:
    """Return a 24-hex identifier: creation epoch seconds plus 8 random bytes."""
    return f"{int(time.time()):08x}{secrets.token_hex(8)}"


def is_object_id(value: Any) -> bool:
    """Return True if ``value`` is a well-formed record identifier."""
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize datetimes to timezone-aware UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a client-supplied date/time.

    Accepts an ISO-8601 string (a trailing ``Z`` is understood) or a number
    of milliseconds since the epoch.

    Raises:
        ValueError: If the value cannot be interpreted as a date/time.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a date/time: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    if isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return ensure_utc(parsed)
    raise ValueError(f"not a date/time: {value!r}")


def _to_utc_iso(value: datetime | None) -> str | None:
    """
    Convert datetime to an ISO-8601 UTC string.

    SQLite commonly returns naive datetime values even when timezone-aware
    columns are declared. For API contracts, always normalize to UTC.
    """
    if value is None:
        return None
    return ensure_utc(value).isoformat()


# -----------------------------------------------------------------------------
# Query field registries
# -----------------------------------------------------------------------------

class FieldKind(str, Enum):
    """Value types a queryable field can hold."""

    ID = "id"
    STRING = "string"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    LIST = "list"


@dataclass(frozen=True)
class Field:
    """
    A public document field and the model attribute backing it.

    Attributes:
        attr: Model attribute name.
        kind: Value type used to coerce filter operands.
        absent: Public sentinel that stands for a NULL column value.
    """

    attr: str
    kind: FieldKind
    absent: str | None = None

    @property
    def filterable(self) -> bool:
        return self.kind is not FieldKind.LIST


TASK_FIELDS: dict[str, Field] = {
    "_id": Field("id", FieldKind.ID),
    "name": Field("name", FieldKind.STRING),
    "description": Field("description", FieldKind.STRING),
    "deadline": Field("deadline", FieldKind.DATETIME),
    "completed": Field("completed", FieldKind.BOOLEAN),
    "assignedUser": Field("assigned_user_id", FieldKind.ID, absent=UNASSIGNED_USER),
    "assignedUserName": Field("assigned_user_name", FieldKind.STRING, absent=UNASSIGNED_NAME),
    "dateCreated": Field("date_created", FieldKind.DATETIME),
}

USER_FIELDS: dict[str, Field] = {
    "_id": Field("id", FieldKind.ID),
    "name": Field("name", FieldKind.STRING),
    "email": Field("email", FieldKind.STRING),
    "pendingTasks": Field("pending_tasks", FieldKind.LIST),
    "dateCreated": Field("date_created", FieldKind.DATETIME),
}


# -----------------------------------------------------------------------------
# Models
# -----------------------------------------------------------------------------

class Task(db.Model):
    """
    Task document.

    Attributes:
        id: ObjectId-shaped identifier assigned on insert.
        name: Required task name.
        description: Free text, empty by default.
        deadline: Required due date/time.
        completed: Whether the task is done.
        assigned_user_id: Identifier of the assigned user, NULL when unassigned.
        assigned_user_name: Copy of the assigned user's name, NULL when unassigned.
        date_created: Creation timestamp.
    """

    __tablename__ = "tasks"

    id: str = db.Column(db.String(24), primary_key=True, default=new_object_id)
    name: str = db.Column(db.Text, nullable=False)
    description: str = db.Column(db.Text, nullable=False, default="")
    deadline: datetime = db.Column(db.DateTime(timezone=True), nullable=False)
    completed: bool = db.Column(db.Boolean, nullable=False, default=False)
    assigned_user_id: str | None = db.Column(db.String(24), nullable=True, index=True)
    assigned_user_name: str | None = db.Column(db.Text, nullable=True)
    date_created: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )

    @property
    def is_assigned(self) -> bool:
        return self.assigned_user_id is not None

    def assign(self, user: "User | None") -> None:
        """Point the task at ``user`` (or at nobody) and copy its name."""
        if user is None:
            self.assigned_user_id = None
            self.assigned_user_name = None
        else:
            self.assigned_user_id = user.id
            self.assigned_user_name = user.name

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the task to its public document representation.

        Returns:
            Dictionary with camelCase keys and the unassigned sentinels filled in.
        """
        return {
            "_id": self.id,
            "name": self.name,
            "description": self.description or "",
            "deadline": _to_utc_iso(self.deadline),
            "completed": bool(self.completed),
            "assignedUser": self.assigned_user_id or UNASSIGNED_USER,
            "assignedUserName": self.assigned_user_name or UNASSIGNED_NAME,
            "dateCreated": _to_utc_iso(self.date_created),
        }

    def __repr__(self) -> str:
        """Return string representation of the task."""
        return f"<Task {self.id}: {self.name}>"


class User(db.Model):
    """
    User document.

    ``pending_tasks`` is an ordered list of task identifiers without
    duplicates. It is replaced wholesale on every change so the JSON
    column is always flagged dirty.
    """

    __tablename__ = "users"

    id: str = db.Column(db.String(24), primary_key=True, default=new_object_id)
    name: str = db.Column(db.Text, nullable=False)
    email: str = db.Column(db.String(320), nullable=False, unique=True)
    pending_tasks: list[str] = db.Column(db.JSON, nullable=False, default=list)
    date_created: datetime = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "name": self.name,
            "email": self.email,
            "pendingTasks": list(self.pending_tasks or []),
            "dateCreated": _to_utc_iso(self.date_created),
        }

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email}>"
