"""
API CRUD Tests for User endpoints.

Each test follows the AAA pattern (Arrange, Act, Assert).
"""

import pytest

from taskhub.models import User, is_object_id

pytestmark = pytest.mark.integration


class TestGetUsers:
    """Tests for GET /api/users endpoint."""

    def test_get_users_returns_empty_list(self, client, db_session):
        response = client.get("/api/users")

        assert response.status_code == 200
        assert response.get_json() == {"message": "OK", "data": []}

    def test_get_users_returns_all_users(self, client, db_session, sample_user, second_user):
        # Act
        response = client.get("/api/users")

        # Assert
        emails = [user["email"] for user in response.get_json()["data"]]
        assert emails == ["alice@llama.io", "bob@llama.io"]


class TestGetUser:
    """Tests for GET /api/users/<id> endpoint."""

    def test_get_user_by_id(self, client, db_session, sample_user, task_factory):
        # Arrange
        task = task_factory(assignee=sample_user)

        # Act
        response = client.get(f"/api/users/{sample_user.id}")

        # Assert
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["_id"] == sample_user.id
        assert data["name"] == "Alice Llama"
        assert data["pendingTasks"] == [task.id]

    def test_get_user_id_is_case_insensitive(self, client, db_session, sample_user):
        response = client.get(f"/api/users/{sample_user.id.upper()}")

        assert response.status_code == 200
        assert response.get_json()["data"]["_id"] == sample_user.id

    def test_get_user_with_exclusion_select(self, client, db_session, sample_user):
        response = client.get(
            f"/api/users/{sample_user.id}", query_string={"select": '{"pendingTasks": 0, "email": 0}'}
        )

        data = response.get_json()["data"]
        assert set(data) == {"_id", "name", "dateCreated"}

    def test_get_user_with_invalid_select_returns_400(self, client, db_session, sample_user):
        response = client.get(f"/api/users/{sample_user.id}?select=nope")

        assert response.status_code == 400
        assert response.get_json()["message"] == "Bad request"

    @pytest.mark.parametrize("user_id", ["65a0000000000000000000ff", "12345"])
    def test_get_user_returns_404(self, client, db_session, user_id):
        response = client.get(f"/api/users/{user_id}")

        assert response.status_code == 404
        assert response.get_json() == {"message": "Not found", "data": {"error": "User not found"}}


class TestCreateUser:
    """Tests for POST /api/users endpoint."""

    def test_create_user_with_valid_data(self, client, db_session, valid_user_data):
        # Act
        response = client.post("/api/users", json=valid_user_data)

        # Assert
        assert response.status_code == 201
        body = response.get_json()
        assert body["message"] == "Created"
        assert is_object_id(body["data"]["_id"])
        assert body["data"]["email"] == valid_user_data["email"]
        assert body["data"]["pendingTasks"] == []

    def test_create_user_persists(self, client, db_session, valid_user_data):
        response = client.post("/api/users", json=valid_user_data)

        user = db_session.session.get(User, response.get_json()["data"]["_id"])
        assert user is not None
        assert user.name == valid_user_data["name"]

    def test_create_user_from_form_with_repeated_pending_tasks(self, client, db_session):
        response = client.post(
            "/api/users",
            data={
                "name": "Form User",
                "email": "form@llama.io",
                "pendingTasks[]": ["65a0000000000000000000aa", "65a0000000000000000000bb"],
            },
        )

        assert response.status_code == 201
        assert response.get_json()["data"]["pendingTasks"] == [
            "65a0000000000000000000aa",
            "65a0000000000000000000bb",
        ]


class TestUpdateUser:
    """Tests for PUT /api/users/<id> endpoint."""

    def test_update_user_replaces_name_and_email(self, client, db_session, sample_user):
        # Act
        response = client.put(
            f"/api/users/{sample_user.id}",
            json={"name": "Alicia Llama", "email": "alicia@llama.io"},
        )

        # Assert
        assert response.status_code == 200
        data = response.get_json()["data"]
        assert data["name"] == "Alicia Llama"
        assert data["email"] == "alicia@llama.io"

    def test_update_user_to_taken_email_returns_400(self, client, db_session, sample_user, second_user):
        response = client.put(
            f"/api/users/{second_user.id}",
            json={"name": "Bob Llama", "email": "alice@llama.io"},
        )

        assert response.status_code == 400
        assert response.get_json()["data"]["error"] == "Email already exists"
        assert client.get(f"/api/users/{second_user.id}").get_json()["data"]["email"] == "bob@llama.io"

    def test_update_missing_user_returns_404(self, client, db_session):
        response = client.put(
            "/api/users/65a0000000000000000000ff",
            json={"name": "Nobody", "email": "nobody@llama.io"},
        )

        assert response.status_code == 404


class TestDeleteUser:
    """Tests for DELETE /api/users/<id> endpoint."""

    def test_delete_user_returns_204(self, client, db_session, sample_user):
        # Arrange
        user_id = sample_user.id

        # Act
        response = client.delete(f"/api/users/{user_id}")

        # Assert
        assert response.status_code == 204
        assert response.data == b""
        assert client.get(f"/api/users/{user_id}").status_code == 404

    def test_delete_missing_user_returns_404(self, client, db_session):
        response = client.delete("/api/users/65a0000000000000000000ff")

        assert response.status_code == 404
        assert response.get_json()["data"]["error"] == "User not found"
