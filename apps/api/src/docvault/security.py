from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Callable

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt

from docvault.config import get_settings
from docvault.enums import UserRole
from docvault.errors import ForbiddenError, UnauthorizedError
from docvault.observability import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


@dataclass(frozen=True)
class Actor:
    id: str
    username: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _encode(
    *,
    subject: str,
    username: str,
    role: str,
    token_type: str,
    secret: str,
    expires_in: timedelta,
) -> str:
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "username": username,
        "role": role,
        "type": token_type,
        "iat": issued_at,
        "exp": issued_at + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(*, subject: str, username: str, role: str) -> str:
    settings = get_settings()
    return _encode(
        subject=subject,
        username=username,
        role=role,
        token_type=ACCESS_TOKEN,
        secret=settings.jwt_secret,
        expires_in=timedelta(minutes=settings.jwt_expires_minutes),
    )


def create_refresh_token(*, subject: str, username: str, role: str) -> str:
    settings = get_settings()
    return _encode(
        subject=subject,
        username=username,
        role=role,
        token_type=REFRESH_TOKEN,
        secret=settings.jwt_refresh_secret,
        expires_in=timedelta(minutes=settings.jwt_refresh_expires_minutes),
    )


def decode_token(token: str, *, refresh: bool = False) -> dict[str, Any]:
    settings = get_settings()
    secret = settings.jwt_refresh_secret if refresh else settings.jwt_secret
    expected_type = REFRESH_TOKEN if refresh else ACCESS_TOKEN

    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        logger.info("token expired", token_type=expected_type)
        raise UnauthorizedError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        logger.info("token rejected", token_type=expected_type, error=str(exc))
        raise UnauthorizedError("Invalid token") from exc

    if payload.get("type") != expected_type:
        raise UnauthorizedError("Invalid token")
    return payload


def actor_from_payload(payload: dict[str, Any]) -> Actor:
    try:
        role = UserRole(payload.get("role"))
    except ValueError as exc:
        raise UnauthorizedError("Invalid token") from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise UnauthorizedError("Invalid token")
    return Actor(id=subject, username=str(payload.get("username", "")), role=role)


def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Actor:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Authentication required")
    return actor_from_payload(decode_token(credentials.credentials))


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def require_roles(*roles: UserRole) -> Callable[[Actor], Actor]:
    allowed = frozenset(roles)

    def dependency(actor: CurrentActor) -> Actor:
        if actor.role not in allowed:
            raise ForbiddenError("Insufficient role for this operation")
        return actor

    return dependency
