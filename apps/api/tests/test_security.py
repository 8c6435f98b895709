from datetime import datetime, timedelta, timezone

import jwt
import pytest

from docvault.config import get_settings
from docvault.enums import UserRole
from docvault.errors import UnauthorizedError
from docvault.security import (
    actor_from_payload,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)


def test_password_hash_round_trip() -> None:
    hashed = hash_password("Passw0rd!")

    assert hashed != "Passw0rd!"
    assert verify_password("Passw0rd!", hashed) is True
    assert verify_password("wrong-password", hashed) is False


def test_verify_password_rejects_malformed_hash() -> None:
    assert verify_password("Passw0rd!", "not-a-bcrypt-hash") is False


def test_access_token_decodes_to_actor() -> None:
    token = create_access_token(subject="user-1", username="alice", role="editor")

    actor = actor_from_payload(decode_token(token))

    assert actor.id == "user-1"
    assert actor.username == "alice"
    assert actor.role == UserRole.EDITOR
    assert actor.is_admin is False


def test_refresh_token_is_not_accepted_as_access_token() -> None:
    refresh = create_refresh_token(subject="user-1", username="alice", role="viewer")

    assert decode_token(refresh, refresh=True)["type"] == "refresh"
    with pytest.raises(UnauthorizedError):
        decode_token(refresh)


def test_expired_token_is_rejected() -> None:
    settings = get_settings()
    issued_at = datetime.now(timezone.utc) - timedelta(hours=2)
    token = jwt.encode(
        {
            "sub": "user-1",
            "username": "alice",
            "role": "viewer",
            "type": "access",
            "iat": issued_at,
            "exp": issued_at + timedelta(minutes=5),
        },
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )

    with pytest.raises(UnauthorizedError, match="expired"):
        decode_token(token)


def test_unknown_role_is_rejected() -> None:
    with pytest.raises(UnauthorizedError):
        actor_from_payload({"sub": "user-1", "username": "alice", "role": "root"})
