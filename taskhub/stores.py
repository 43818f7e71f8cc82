"""
Persistence facades for tasks and users.

Each store wraps a SQLAlchemy session and exposes document-style
operations (``find_many``, ``find_by_id``, ``count``, ``insert``,
``replace``, ``delete``) plus the referential helpers the coordinator
needs to keep the task/user link mirrored.

Every write commits immediately. Any SQLAlchemy failure rolls the
session back before being re-raised as an ``ApiError`` so later steps of
the same request start from a clean session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any, ClassVar

from sqlalchemy import and_, false, func, or_, select, true, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from taskhub.errors import DuplicateKey, InvalidId, NotFound, StoreUnavailable
from taskhub.models import Task, User, is_object_id
from taskhub.query import Comparison, Disjunction, FilterExpression, QueryPlan

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Filter compilation
# -----------------------------------------------------------------------------

def _compile_comparison(column: Any, operator: str, value: Any) -> Any:
    """Compile one comparison with document-store null semantics."""
    if operator == "$eq":
        return column.is_(None) if value is None else column == value
    if operator == "$ne":
        if value is None:
            return column.is_not(None)
        return or_(column != value, column.is_(None))
    if operator == "$gt":
        return column > value
    if operator == "$gte":
        return column >= value
    if operator == "$lt":
        return column < value
    if operator == "$lte":
        return column <= value

    present = [item for item in value if item is not None]
    wants_null = len(present) != len(value)
    if operator == "$in":
        clause = column.in_(present) if present else false()
        return or_(clause, column.is_(None)) if wants_null else clause
    if operator == "$nin":
        clause = column.not_in(present) if present else true()
        return and_(clause, column.is_not(None)) if wants_null else or_(clause, column.is_(None))
    raise ValueError(f"Unsupported operator: {operator}")


def compile_filter(expression: FilterExpression, model: type) -> Any:
    """
    Compile a filter expression into a SQLAlchemy boolean clause.

    Args:
        expression: Validated filter from ``QueryTranslator``.
        model: Mapped class whose attributes the expression names.

    Returns:
        A clause usable in ``Select.where``.
    """
    if isinstance(expression, Comparison):
        return _compile_comparison(getattr(model, expression.attr), expression.operator, expression.value)
    clauses = [compile_filter(clause, model) for clause in expression.clauses]
    if isinstance(expression, Disjunction):
        return or_(false(), *clauses)
    return and_(true(), *clauses)


# -----------------------------------------------------------------------------
# Stores
# -----------------------------------------------------------------------------

class DocumentStore:
    """Shared document-style access for one mapped model."""

    model: ClassVar[type]
    noun: ClassVar[str]
    plural: ClassVar[str]
    duplicate_detail: ClassVar[str | None] = None

    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Translate store failures raised inside the block."""
        try:
            yield
        except IntegrityError as exc:
            self.session.rollback()
            if self.duplicate_detail:
                raise DuplicateKey(self.duplicate_detail) from exc
            logger.exception("Integrity failure while trying to %s", action)
            raise StoreUnavailable(f"Failed to {action}") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Store failure while trying to %s", action)
            raise StoreUnavailable(f"Failed to {action}") from exc

    def _commit(self, action: str) -> None:
        with self._guard(action):
            self.session.commit()

    def find_many(self, plan: QueryPlan) -> list[Any]:
        """Return records matching the plan's filter, sort and page."""
        stmt = select(self.model).where(compile_filter(plan.filter, self.model))
        for key in plan.sort:
            column = getattr(self.model, key.attr)
            stmt = stmt.order_by(column.desc() if key.descending else column.asc())
        # Creation order keeps unsorted pagination stable.
        stmt = stmt.order_by(self.model.date_created.asc(), self.model.id.asc())
        if plan.skip:
            stmt = stmt.offset(plan.skip)
        if plan.limit is not None:
            stmt = stmt.limit(plan.limit)

        with self._guard(f"retrieve {self.plural}"):
            return list(self.session.scalars(stmt).all())

    def count(self, plan: QueryPlan) -> int:
        """Count records matching the plan's filter; paging is ignored."""
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(compile_filter(plan.filter, self.model))
        )
        with self._guard(f"count {self.plural}"):
            return int(self.session.scalar(stmt) or 0)

    def find_by_id(self, record_id: Any) -> Any:
        """
        Fetch one record.

        Raises:
            InvalidId: If ``record_id`` is not a well-formed identifier.
            NotFound: If no record carries ``record_id``.
        """
        if not is_object_id(record_id):
            raise InvalidId(f"{self.noun.capitalize()} not found")
        with self._guard(f"retrieve {self.noun}"):
            record = self.session.get(self.model, record_id.lower())
        if record is None:
            raise NotFound(f"{self.noun.capitalize()} not found")
        return record

    def insert(self, record: Any) -> Any:
        """Persist a new record; its identifier is generated on flush."""
        self.session.add(record)
        self._commit(f"create {self.noun}")
        return record

    def replace(self, record: Any) -> Any:
        """Persist every field of an existing, modified record."""
        self.session.add(record)
        self._commit(f"update {self.noun}")
        return record

    def delete(self, record_id: Any) -> None:
        record = self.find_by_id(record_id)
        with self._guard(f"delete {self.noun}"):
            self.session.delete(record)
            self.session.commit()


class TaskStore(DocumentStore):
    """Task persistence plus bulk assignment updates."""

    model = Task
    noun = "task"
    plural = "tasks"

    def _bulk_assign(self, condition: Any, user_id: str | None, user_name: str | None, action: str) -> int:
        stmt = (
            update(Task)
            .where(condition)
            .values(assigned_user_id=user_id, assigned_user_name=user_name)
        )
        with self._guard(action):
            result = self.session.execute(stmt)
            self.session.commit()
        return result.rowcount

    def assign_all(self, task_ids: Iterable[str], user_id: str, user_name: str) -> int:
        """Point every listed task at ``user_id`` and store ``user_name`` beside it."""
        ids = list(task_ids)
        if not ids:
            return 0
        return self._bulk_assign(Task.id.in_(ids), user_id, user_name, "assign tasks")

    def unassign_all(self, task_ids: Iterable[str]) -> int:
        """Clear the assignment of every listed task."""
        ids = list(task_ids)
        if not ids:
            return 0
        return self._bulk_assign(Task.id.in_(ids), None, None, "unassign tasks")

    def unassign_user(self, user_id: str) -> int:
        """Clear the assignment of every task pointing at ``user_id``."""
        return self._bulk_assign(Task.assigned_user_id == user_id, None, None, "unassign tasks")


class UserStore(DocumentStore):
    """User persistence plus pending-task list maintenance."""

    model = User
    noun = "user"
    plural = "users"
    duplicate_detail = "Email already exists"

    def add_pending_task(self, user_id: str, task_id: str) -> bool:
        """Append ``task_id`` to the user's pending tasks unless present."""
        user = self.find_by_id(user_id)
        pending = list(user.pending_tasks or [])
        if task_id in pending:
            return False
        user.pending_tasks = [*pending, task_id]
        self.replace(user)
        return True

    def remove_pending_task(self, user_id: str, task_id: str) -> bool:
        """Drop ``task_id`` from the user's pending tasks if present."""
        user = self.find_by_id(user_id)
        pending = list(user.pending_tasks or [])
        if task_id not in pending:
            return False
        user.pending_tasks = [item for item in pending if item != task_id]
        self.replace(user)
        return True
