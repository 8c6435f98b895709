from fastapi.testclient import TestClient

from conftest import TEST_PASSWORD, auth_headers
from docvault.enums import UserRole

NEW_USER = {
    "username": "ivan",
    "email": "ivan@example.com",
    "password": "Str0ng!Pass",
    "first_name": "Ivan",
    "last_name": "Petrov",
    "role": "editor",
}


def test_admin_creates_user_with_role(client: TestClient, make_user) -> None:
    admin = make_user(UserRole.ADMIN)

    response = client.post("/api/v1/users", json=NEW_USER, headers=auth_headers(admin))

    assert response.status_code == 201
    assert response.json()["role"] == "editor"
    assert response.json()["status"] == "active"
    assert "password_hash" not in response.json()


def test_editor_cannot_create_user(client: TestClient, make_user) -> None:
    editor = make_user(UserRole.EDITOR)

    response = client.post("/api/v1/users", json=NEW_USER, headers=auth_headers(editor))

    assert response.status_code == 403


def test_list_users_searches_and_requires_staff(client: TestClient, make_user) -> None:
    editor = make_user(UserRole.EDITOR)
    viewer = make_user(UserRole.VIEWER)
    make_user(username="zelda")

    denied = client.get("/api/v1/users", headers=auth_headers(viewer))
    found = client.get("/api/v1/users", params={"search": "ZEL"}, headers=auth_headers(editor))

    assert denied.status_code == 403
    assert found.status_code == 200
    assert found.json()["total"] == 1
    assert found.json()["data"][0]["username"] == "zelda"


def test_user_updates_own_profile_but_not_role(client: TestClient, make_user) -> None:
    user = make_user()
    headers = auth_headers(user)

    renamed = client.patch(f"/api/v1/users/{user.id}", json={"first_name": "Renamed"}, headers=headers)
    promoted = client.patch(f"/api/v1/users/{user.id}", json={"role": "admin"}, headers=headers)

    assert renamed.status_code == 200
    assert renamed.json()["first_name"] == "Renamed"
    assert promoted.status_code == 403


def test_user_cannot_update_someone_else(client: TestClient, make_user) -> None:
    user = make_user()
    other = make_user()

    response = client.patch(
        f"/api/v1/users/{other.id}", json={"first_name": "X"}, headers=auth_headers(user)
    )

    assert response.status_code == 403


def test_admin_changes_role_and_status(client: TestClient, make_user) -> None:
    admin = make_user(UserRole.ADMIN)
    user = make_user()

    response = client.patch(
        f"/api/v1/users/{user.id}",
        json={"role": "editor", "status": "suspended"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["role"] == "editor"
    assert response.json()["status"] == "suspended"


def test_update_email_conflict(client: TestClient, make_user) -> None:
    user = make_user()
    other = make_user()

    response = client.patch(
        f"/api/v1/users/{user.id}", json={"email": other.email}, headers=auth_headers(user)
    )

    assert response.status_code == 409


def test_change_password(client: TestClient, make_user) -> None:
    user = make_user(username="judy")
    headers = auth_headers(user)

    wrong = client.post(
        f"/api/v1/users/{user.id}/change-password",
        json={"current_password": "Wr0ng!pass", "new_password": "N3w!Password"},
        headers=headers,
    )
    changed = client.post(
        f"/api/v1/users/{user.id}/change-password",
        json={"current_password": TEST_PASSWORD, "new_password": "N3w!Password"},
        headers=headers,
    )
    login = client.post(
        "/api/v1/auth/login", json={"username_or_email": "judy", "password": "N3w!Password"}
    )

    assert wrong.status_code == 400
    assert changed.json() == {"message": "Password changed successfully"}
    assert login.status_code == 200


def test_admin_cannot_change_another_users_password(client: TestClient, make_user) -> None:
    admin = make_user(UserRole.ADMIN)
    user = make_user()

    response = client.post(
        f"/api/v1/users/{user.id}/change-password",
        json={"current_password": TEST_PASSWORD, "new_password": "N3w!Password"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 403


def test_admin_deletes_user_and_reads_stats(client: TestClient, make_user) -> None:
    admin = make_user(UserRole.ADMIN)
    user = make_user()
    headers = auth_headers(admin)

    assert client.delete(f"/api/v1/users/{user.id}", headers=auth_headers(user)).status_code == 403
    deleted = client.delete(f"/api/v1/users/{user.id}", headers=headers)
    stats = client.get("/api/v1/users/stats", headers=headers)

    assert deleted.json() == {"id": user.id, "status": "deleted"}
    assert client.get(f"/api/v1/users/{user.id}", headers=headers).status_code == 404
    assert stats.json()["total"] == 1
    assert stats.json()["active"] == 1
    assert stats.json()["by_role"] == {"admin": 1, "editor": 0, "viewer": 0}
