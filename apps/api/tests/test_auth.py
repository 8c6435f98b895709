from fastapi.testclient import TestClient

from conftest import TEST_PASSWORD, auth_headers
from docvault.enums import UserRole, UserStatus

REGISTER = {
    "username": "new_user",
    "email": "New.User@Example.com",
    "password": "Str0ng!Pass",
    "first_name": "New",
    "last_name": "User",
}


def test_register_returns_tokens_and_viewer_role(client: TestClient) -> None:
    response = client.post("/api/v1/auth/register", json=REGISTER)

    assert response.status_code == 201
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["refresh_token"]
    assert body["user"]["username"] == "new_user"
    assert body["user"]["email"] == "new.user@example.com"
    assert body["user"]["role"] == "viewer"


def test_register_duplicate_is_conflict(client: TestClient) -> None:
    client.post("/api/v1/auth/register", json=REGISTER)

    response = client.post("/api/v1/auth/register", json=REGISTER)

    assert response.status_code == 409
    assert response.json() == {"detail": "Username or email already exists"}


def test_register_rejects_weak_password(client: TestClient) -> None:
    response = client.post("/api/v1/auth/register", json={**REGISTER, "password": "password"})

    assert response.status_code == 400


def test_register_rejects_role_field(client: TestClient) -> None:
    response = client.post("/api/v1/auth/register", json={**REGISTER, "role": "admin"})

    assert response.status_code == 400


def test_login_with_username_or_email(client: TestClient, make_user) -> None:
    user = make_user(UserRole.EDITOR, username="carol")

    by_name = client.post(
        "/api/v1/auth/login", json={"username_or_email": "carol", "password": TEST_PASSWORD}
    )
    by_email = client.post(
        "/api/v1/auth/login",
        json={"username_or_email": "carol@example.com", "password": TEST_PASSWORD},
    )

    assert by_name.status_code == 200
    assert by_email.status_code == 200
    assert by_name.json()["user"]["id"] == user.id
    assert by_name.json()["user"]["role"] == "editor"


def test_login_rejects_bad_password(client: TestClient, make_user) -> None:
    make_user(username="dave")

    response = client.post(
        "/api/v1/auth/login", json={"username_or_email": "dave", "password": "Wr0ng!pass"}
    )

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid credentials"}


def test_login_rejects_inactive_user(client: TestClient, make_user) -> None:
    make_user(username="erin", status=UserStatus.SUSPENDED.value)

    response = client.post(
        "/api/v1/auth/login", json={"username_or_email": "erin", "password": TEST_PASSWORD}
    )

    assert response.status_code == 401


def test_login_records_last_login(client: TestClient, make_user) -> None:
    user = make_user(username="frank")
    client.post("/api/v1/auth/login", json={"username_or_email": "frank", "password": TEST_PASSWORD})

    response = client.post("/api/v1/auth/profile", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["last_login_at"] is not None
    assert response.json()["full_name"] == "Frank Tester"


def test_refresh_issues_new_access_token(client: TestClient, make_user) -> None:
    make_user(username="grace")
    login = client.post(
        "/api/v1/auth/login", json={"username_or_email": "grace", "password": TEST_PASSWORD}
    ).json()

    response = client.post("/api/v1/auth/refresh", json={"refresh_token": login["refresh_token"]})

    assert response.status_code == 200
    token = response.json()["access_token"]
    profile = client.post("/api/v1/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.json()["username"] == "grace"


def test_refresh_rejects_access_token(client: TestClient, make_user) -> None:
    make_user(username="heidi")
    login = client.post(
        "/api/v1/auth/login", json={"username_or_email": "heidi", "password": TEST_PASSWORD}
    ).json()

    response = client.post("/api/v1/auth/refresh", json={"refresh_token": login["access_token"]})

    assert response.status_code == 401


def test_logout_requires_token(client: TestClient, make_user) -> None:
    user = make_user()

    assert client.post("/api/v1/auth/logout").status_code == 401
    response = client.post("/api/v1/auth/logout", headers=auth_headers(user))
    assert response.json() == {"message": "Logged out successfully"}


def test_garbage_bearer_token_is_unauthorized(client: TestClient) -> None:
    response = client.post("/api/v1/auth/profile", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert response.json() == {"detail": "Invalid token"}
