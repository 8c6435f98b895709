from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.orm import sessionmaker

from docvault.enums import UserStatus
from docvault.errors import UnauthorizedError
from docvault.models import UserRecord, utcnow
from docvault.observability import get_logger
from docvault.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    verify_password,
)
from docvault.services.users import UserService

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthResult:
    access_token: str
    refresh_token: str
    user: UserRecord


def _issue_tokens(user: UserRecord) -> AuthResult:
    claims = {"subject": user.id, "username": user.username, "role": user.role}
    return AuthResult(
        access_token=create_access_token(**claims),
        refresh_token=create_refresh_token(**claims),
        user=user,
    )


class AuthService:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._users = UserService(session_factory)

    def register(
        self,
        *,
        username: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> AuthResult:
        user = self._users.create(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
        )
        logger.info("user registered", user_id=user.id)
        return _issue_tokens(user)

    def login(self, *, username_or_email: str, password: str) -> AuthResult:
        user = self.validate_user(username_or_email, password)
        if user is None:
            logger.info("login rejected", username_or_email=username_or_email)
            raise UnauthorizedError("Invalid credentials")
        logger.info("login succeeded", user_id=user.id)
        return _issue_tokens(user)

    def validate_user(self, username_or_email: str, password: str) -> UserRecord | None:
        with self._session_factory() as session:
            user = session.scalar(
                select(UserRecord).where(
                    or_(
                        UserRecord.username == username_or_email,
                        UserRecord.email == username_or_email,
                    )
                )
            )
            if user is None or user.status != UserStatus.ACTIVE:
                return None
            if not verify_password(password, user.password_hash):
                return None

            user.last_login_at = utcnow()
            session.commit()
        return user

    def refresh(self, refresh_token: str) -> str:
        payload = decode_token(refresh_token, refresh=True)
        with self._session_factory() as session:
            user = session.get(UserRecord, payload.get("sub"))

        if user is None or user.status != UserStatus.ACTIVE:
            raise UnauthorizedError("User not found or inactive")
        return create_access_token(subject=user.id, username=user.username, role=user.role)

    def profile(self, user_id: str) -> UserRecord:
        return self._users.get(user_id)
