from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from docvault.config import get_settings
from docvault.db import Base, get_engine, get_session_factory
from docvault.deps import get_ingestion_service, shutdown_ingestion_service
from docvault.enums import UserRole
from docvault.main import app
from docvault.models import UserRecord
from docvault.security import Actor, create_access_token, hash_password

TEST_PASSWORD = "Passw0rd!"


def _clear_caches() -> None:
    shutdown_ingestion_service()
    get_ingestion_service.cache_clear()
    get_session_factory.cache_clear()
    get_settings.cache_clear()
    get_engine.cache_clear()


@pytest.fixture(autouse=True)
def reset_api_caches(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    monkeypatch.setenv("API_DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'api-tests.db'}")
    monkeypatch.setenv("API_DB_ECHO", "false")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("JWT_SECRET", "test-access-secret-with-enough-length-for-hs256")
    monkeypatch.setenv("JWT_REFRESH_SECRET", "test-refresh-secret-with-enough-length-for-hs256")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("INGESTION_SIMULATOR_ENABLED", "false")
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture
def engine():
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def client(engine) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(engine) -> Callable[..., UserRecord]:
    counter = {"value": 0}

    def factory(role: UserRole = UserRole.VIEWER, *, username: str | None = None, **fields) -> UserRecord:
        counter["value"] += 1
        name = username or f"{role.value}{counter['value']}"
        user = UserRecord(
            username=name,
            email=fields.pop("email", f"{name}@example.com"),
            password_hash=hash_password(fields.pop("password", TEST_PASSWORD)),
            first_name=fields.pop("first_name", name.title()),
            last_name=fields.pop("last_name", "Tester"),
            role=role.value,
            **fields,
        )
        with get_session_factory()() as session:
            session.add(user)
            session.commit()
        return user

    return factory


def actor_for(user: UserRecord) -> Actor:
    return Actor(id=user.id, username=user.username, role=UserRole(user.role))


def auth_headers(user: UserRecord) -> dict[str, str]:
    token = create_access_token(subject=user.id, username=user.username, role=user.role)
    return {"Authorization": f"Bearer {token}"}
