"""
Shared pytest fixtures for the task/user API test suite.

This module contains fixtures that are shared across all test modules.
Fixtures follow the Arrange-Act-Assert (AAA) pattern and ensure
test isolation by providing fresh data for each test.

Key Concepts Demonstrated:
- Fixture scopes (function, session)
- Test data factories for both resources
- Database setup/teardown
- Test client creation
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from faker import Faker

# Set testing environment before importing app
os.environ["FLASK_ENV"] = "testing"

from taskhub import create_app, db
from taskhub.models import Task, User


# Initialize Faker for generating test data
fake = Faker()


def in_days(days: float) -> datetime:
    """Return a UTC datetime ``days`` from now."""
    return datetime.now(timezone.utc) + timedelta(days=days)


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def app():
    """
    Create application instance for the test session.

    The 'session' scope means the same app instance is reused
    for all tests, improving performance.

    Yields:
        Flask application instance configured for testing.
    """
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    """
    Create a test client for making HTTP requests.

    Args:
        app: Flask application fixture.

    Yields:
        Flask test client for making HTTP requests.
    """
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(app):
    """
    Create a fresh database for each test.

    Creates all tables before the test and drops them afterwards so
    every test starts from empty collections.

    Args:
        app: Flask application fixture.

    Yields:
        The Flask-SQLAlchemy extension.
    """
    with app.app_context():
        db.create_all()
        yield db
        db.session.rollback()
        db.drop_all()


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def user_factory(db_session):
    """
    Factory fixture for creating User rows.

    Returns:
        Function that creates and returns User instances.

    Example:
        def test_something(user_factory):
            user = user_factory(name="Alice")
            assert user.id is not None
    """

    def _create_user(
        name: str | None = None,
        email: str | None = None,
        pending_tasks: list[str] | None = None,
    ) -> User:
        user = User(
            name=name or fake.name(),
            email=email or fake.unique.email(),
            pending_tasks=list(pending_tasks or []),
        )
        db_session.session.add(user)
        db_session.session.commit()
        return user

    return _create_user


@pytest.fixture
def task_factory(db_session):
    """
    Factory fixture for creating Task rows.

    When ``assignee`` is given the task is linked on both sides, the same
    way the API would leave it: the task names the user and, unless the
    task is completed, the user lists the task.

    Returns:
        Function that creates and returns Task instances.
    """

    def _create_task(
        name: str | None = None,
        deadline: datetime | None = None,
        description: str | None = None,
        completed: bool = False,
        assignee: User | None = None,
    ) -> Task:
        task = Task(
            name=name or fake.sentence(nb_words=3),
            description=description if description is not None else fake.sentence(),
            deadline=deadline or in_days(7),
            completed=completed,
        )
        task.assign(assignee)
        db_session.session.add(task)
        db_session.session.commit()

        if assignee is not None and not completed:
            assignee.pending_tasks = [*assignee.pending_tasks, task.id]
            db_session.session.commit()
        return task

    return _create_task


@pytest.fixture
def sample_user(user_factory) -> User:
    """A single user with no pending tasks."""
    return user_factory(name="Alice Llama", email="alice@llama.io")


@pytest.fixture
def second_user(user_factory) -> User:
    return user_factory(name="Bob Llama", email="bob@llama.io")


@pytest.fixture
def seeded_tasks(task_factory) -> list[Task]:
    """
    Five unassigned tasks with distinct deadlines, created out of order.

    Sorted by ascending deadline the names are ``t1`` .. ``t5``; ``t2``
    and ``t4`` are completed.
    """
    return [
        task_factory(name="t3", deadline=in_days(3)),
        task_factory(name="t1", deadline=in_days(1)),
        task_factory(name="t5", deadline=in_days(5)),
        task_factory(name="t2", deadline=in_days(2), completed=True),
        task_factory(name="t4", deadline=in_days(4), completed=True),
    ]


# -----------------------------------------------------------------------------
# Test Data Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def valid_task_data() -> dict[str, Any]:
    """
    Provide valid task data for POST/PUT requests.

    Returns:
        Dictionary with valid task field values.
    """
    return {
        "name": "Test Task",
        "description": "This is a test task description",
        "deadline": in_days(7).isoformat(),
        "completed": False,
    }


@pytest.fixture
def valid_user_data() -> dict[str, Any]:
    return {"name": "Carol Llama", "email": "carol@llama.io"}


@pytest.fixture
def api_headers() -> dict[str, str]:
    """
    Provide common headers for API requests.

    Returns:
        Dictionary of HTTP headers.
    """
    return {
        "Content-Type": "application/json",
        "Accept": "application/json"
    }
