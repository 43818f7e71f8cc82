"""
Unit tests for Task and User model logic.
"""

from datetime import datetime, timezone

import pytest

from taskhub.models import (
    Task,
    UNASSIGNED_NAME,
    UNASSIGNED_USER,
    User,
    is_object_id,
    new_object_id,
    parse_timestamp,
)


pytestmark = pytest.mark.unit


def test_task_defaults_and_to_dict(db_session):
    task = Task(name="Test Task", deadline=datetime(2030, 1, 1, tzinfo=timezone.utc))
    db_session.session.add(task)
    db_session.session.commit()

    data = task.to_dict()

    assert is_object_id(data["_id"])
    assert data["name"] == "Test Task"
    assert data["description"] == ""
    assert data["completed"] is False
    assert data["assignedUser"] == UNASSIGNED_USER
    assert data["assignedUserName"] == UNASSIGNED_NAME
    assert data["dateCreated"] is not None


def test_task_deadline_serialization(db_session):
    deadline = datetime(2025, 1, 1, tzinfo=timezone.utc)
    task = Task(name="Due Date Task", deadline=deadline)
    db_session.session.add(task)
    db_session.session.commit()

    parsed = datetime.fromisoformat(task.to_dict()["deadline"])

    assert parsed == deadline


def test_task_assign_copies_user_name(db_session, sample_user):
    """Assigning stores the id and a copy of the name; None clears both."""
    # Arrange
    task = Task(name="Assigned", deadline=datetime(2030, 1, 1, tzinfo=timezone.utc))

    # Act
    task.assign(sample_user)

    # Assert
    assert task.is_assigned
    assert task.to_dict()["assignedUser"] == sample_user.id
    assert task.to_dict()["assignedUserName"] == "Alice Llama"

    task.assign(None)
    assert not task.is_assigned
    assert task.assigned_user_name is None
    assert task.to_dict()["assignedUserName"] == UNASSIGNED_NAME


def test_user_defaults_and_to_dict(db_session):
    user = User(name="Dana", email="dana@llama.io")
    db_session.session.add(user)
    db_session.session.commit()

    data = user.to_dict()

    assert is_object_id(data["_id"])
    assert data["pendingTasks"] == []
    assert data["email"] == "dana@llama.io"
    assert data["dateCreated"] is not None


def test_new_object_id_is_unique_hex():
    ids = {new_object_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(is_object_id(value) for value in ids)


@pytest.mark.parametrize("value", [
    "abc",
    "z" * 24,
    "0" * 25,
    123,
    None,
])
def test_is_object_id_rejects_malformed(value):
    assert not is_object_id(value)


@pytest.mark.parametrize("value, expected", [
    ("2030-01-02T03:04:05Z", datetime(2030, 1, 2, 3, 4, 5, tzinfo=timezone.utc)),
    ("2030-01-02T05:04:05+02:00", datetime(2030, 1, 2, 3, 4, 5, tzinfo=timezone.utc)),
    ("2030-01-02", datetime(2030, 1, 2, tzinfo=timezone.utc)),
    (0, datetime(1970, 1, 1, tzinfo=timezone.utc)),
    (1_000, datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)),
])
def test_parse_timestamp_accepts_iso_and_epoch_millis(value, expected):
    assert parse_timestamp(value) == expected


@pytest.mark.parametrize("value", ["", "not a date", True, None, [2030]])
def test_parse_timestamp_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_timestamp(value)
