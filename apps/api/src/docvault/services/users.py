from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, sessionmaker

from docvault.enums import UserRole, UserStatus
from docvault.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from docvault.models import UserRecord
from docvault.observability import get_logger
from docvault.pagination import Page, PageParams, paginate
from docvault.security import Actor, hash_password, verify_password

logger = get_logger(__name__)

SORTABLE_COLUMNS = {
    "created_at": UserRecord.created_at,
    "updated_at": UserRecord.updated_at,
    "username": UserRecord.username,
    "email": UserRecord.email,
    "role": UserRecord.role,
    "status": UserRecord.status,
    "last_login_at": UserRecord.last_login_at,
}


class UserService:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def create(
        self,
        *,
        username: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole | None = None,
    ) -> UserRecord:
        with self._session_factory() as session:
            if self._find_by_username_or_email(session, username, email) is not None:
                raise ConflictError("Username or email already exists")

            user = UserRecord(
                username=username,
                email=email,
                password_hash=hash_password(password),
                first_name=first_name,
                last_name=last_name,
                role=(role or UserRole.VIEWER).value,
                status=UserStatus.ACTIVE.value,
            )
            session.add(user)
            session.commit()

        logger.info("user created", user_id=user.id, username=username, role=user.role)
        return user

    def list(self, params: PageParams, *, search: str | None = None) -> Page:
        stmt = select(UserRecord)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    UserRecord.username.ilike(pattern),
                    UserRecord.email.ilike(pattern),
                    UserRecord.first_name.ilike(pattern),
                    UserRecord.last_name.ilike(pattern),
                )
            )
        with self._session_factory() as session:
            return paginate(session, stmt, params, sortable=SORTABLE_COLUMNS)

    def get(self, user_id: str) -> UserRecord:
        with self._session_factory() as session:
            return self._load(session, user_id)

    def get_by_username(self, username: str) -> UserRecord:
        with self._session_factory() as session:
            user = session.scalar(select(UserRecord).where(UserRecord.username == username))
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update(self, user_id: str, changes: dict[str, Any], actor: Actor) -> UserRecord:
        if actor.id != user_id and not actor.is_admin:
            raise ForbiddenError("You can only update your own profile")
        if (changes.get("role") or changes.get("status")) and not actor.is_admin:
            raise ForbiddenError("Only admins can change user roles and status")

        with self._session_factory() as session:
            user = self._load(session, user_id)

            email = changes.get("email")
            if email and email != user.email:
                taken = session.scalar(select(UserRecord.id).where(UserRecord.email == email))
                if taken is not None:
                    raise ConflictError("Email already exists")

            for name, value in changes.items():
                if value is None:
                    continue
                if name in ("role", "status"):
                    value = value.value if hasattr(value, "value") else value
                setattr(user, name, value)
            session.commit()

        logger.info("user updated", user_id=user_id, actor_id=actor.id, fields=sorted(changes))
        return user

    def change_password(
        self,
        user_id: str,
        *,
        current_password: str,
        new_password: str,
        actor: Actor,
    ) -> None:
        if actor.id != user_id:
            raise ForbiddenError("You can only change your own password")

        with self._session_factory() as session:
            user = self._load(session, user_id)
            if not verify_password(current_password, user.password_hash):
                raise ValidationError("Current password is incorrect")
            user.password_hash = hash_password(new_password)
            session.commit()

        logger.info("user password changed", user_id=user_id)

    def remove(self, user_id: str, actor: Actor) -> None:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can delete users")

        with self._session_factory() as session:
            user = self._load(session, user_id)
            session.delete(user)
            session.commit()

        logger.info("user removed", user_id=user_id, actor_id=actor.id)

    def stats(self) -> dict[str, Any]:
        with self._session_factory() as session:
            by_status = dict(
                session.execute(
                    select(UserRecord.status, func.count()).group_by(UserRecord.status)
                ).all()
            )
            by_role = dict(
                session.execute(
                    select(UserRecord.role, func.count()).group_by(UserRecord.role)
                ).all()
            )

        return {
            "total": sum(by_status.values()),
            "active": by_status.get(UserStatus.ACTIVE.value, 0),
            "inactive": by_status.get(UserStatus.INACTIVE.value, 0),
            "suspended": by_status.get(UserStatus.SUSPENDED.value, 0),
            "by_role": {role.value: by_role.get(role.value, 0) for role in UserRole},
        }

    @staticmethod
    def _load(session: Session, user_id: str) -> UserRecord:
        user = session.get(UserRecord, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def _find_by_username_or_email(
        session: Session, username: str, email: str
    ) -> UserRecord | None:
        return session.scalar(
            select(UserRecord).where(
                or_(UserRecord.username == username, UserRecord.email == email)
            )
        )
