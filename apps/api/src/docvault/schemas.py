import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from docvault.enums import DocumentStatus, IngestionType, UserRole, UserStatus

USERNAME_PATTERN = r"^[a-zA-Z0-9_-]+$"
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PASSWORD_SPECIALS = "@$!%*?&"


def _check_password(value: str) -> str:
    if not (
        any(ch.islower() for ch in value)
        and any(ch.isupper() for ch in value)
        and any(ch.isdigit() for ch in value)
        and any(ch in _PASSWORD_SPECIALS for ch in value)
    ):
        raise ValueError(
            "Password must contain uppercase, lowercase, number and special character"
        )
    return value


def _check_email(value: str) -> str:
    if not _EMAIL_RE.match(value):
        raise ValueError("value is not a valid email address")
    return value.lower()


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username_or_email: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=8, max_length=72)


class RegisterRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: str = Field(max_length=100)
    password: str = Field(min_length=8, max_length=72)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)

    check_email = field_validator("email")(_check_email)
    check_password = field_validator("password")(_check_password)


class RefreshRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    refresh_token: str = Field(min_length=1)


class CreateUserRequest(RegisterRequest):
    role: UserRole | None = None


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str | None = Field(default=None, max_length=100)
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    role: UserRole | None = None
    status: UserStatus | None = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str | None) -> str | None:
        return None if value is None else _check_email(value)


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_password: str = Field(min_length=1, max_length=72)
    new_password: str = Field(min_length=8, max_length=72)

    check_new_password = field_validator("new_password")(_check_password)


class UpdateDocumentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    status: DocumentStatus | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class CreateIngestionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: IngestionType
    parameters: dict[str, Any] | None = None
    total_items: int | None = Field(default=None, ge=0)


class UpdateIngestionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    parameters: dict[str, Any] | None = None
    result: dict[str, Any] | None = None
    processed_items: int | None = Field(default=None, ge=0)
    failed_items: int | None = Field(default=None, ge=0)


class CompleteIngestionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    result: dict[str, Any] = Field(default_factory=dict)


class FailIngestionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error_message: str = Field(min_length=1)
