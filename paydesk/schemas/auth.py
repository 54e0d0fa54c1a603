"""Request/response schemas for the auth function endpoints."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from paydesk.core.security import (
    FULL_NAME_MAX_LEN,
    LOCATION_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    has_password_complexity,
    is_valid_email,
    normalize_email,
)
from paydesk.models.user import ROLES


def _check_email(v: Any) -> str:
    if not isinstance(v, str) or not is_valid_email(v.strip()):
        raise ValueError("Valid email is required (max 254 characters)")
    return normalize_email(v)


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class LoginRequest(BaseModel):
    """Credentials for login. email is normalized (trimmed, lowercased)."""

    email: str = Field(..., description="Account email")
    password: str = Field(..., description="Password (1-128 characters)")

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: Any) -> str:
        return _check_email(v)

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, v: Any) -> str:
        if not isinstance(v, str) or not (1 <= len(v) <= PASSWORD_MAX_LEN):
            raise ValueError("Password is required (max 128 characters)")
        return v


class CreateUserRequest(BaseModel):
    """New account fields (admin only). Password complexity is not enforced here."""

    email: str
    password: str
    full_name: str
    role: str
    location: str | None = None
    location_id: uuid.UUID | None = None

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: Any) -> str:
        return _check_email(v)

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, v: Any) -> str:
        if not isinstance(v, str) or not (PASSWORD_MIN_LEN <= len(v) <= PASSWORD_MAX_LEN):
            raise ValueError("Password must be 8-128 characters")
        return v

    @field_validator("full_name", mode="before")
    @classmethod
    def validate_full_name(cls, v: Any) -> str:
        if not isinstance(v, str) or not (1 <= len(v.strip()) <= FULL_NAME_MAX_LEN):
            raise ValueError("Full name must be 1-100 characters")
        return v.strip()

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, v: Any) -> str:
        if v not in ROLES:
            raise ValueError("Role must be 'admin' or 'manager'")
        return v

    @field_validator("location", mode="before")
    @classmethod
    def validate_location(cls, v: Any) -> str | None:
        v = _blank_to_none(v)
        if v is None:
            return None
        if not isinstance(v, str) or len(v) > LOCATION_MAX_LEN:
            raise ValueError("Location must be at most 200 characters")
        return v

    @field_validator("location_id", mode="before")
    @classmethod
    def validate_location_id(cls, v: Any) -> Any:
        v = _blank_to_none(v)
        if v is None or isinstance(v, uuid.UUID):
            return v
        if isinstance(v, str):
            try:
                return uuid.UUID(v)
            except ValueError:
                pass
        raise ValueError("location_id must be a valid UUID")


class PasswordTarget(BaseModel):
    """Just the userId of a password update, checked before the password rules."""

    user_id: uuid.UUID = Field(..., alias="userId")

    class Config:
        populate_by_name = True

    @field_validator("user_id", mode="before")
    @classmethod
    def validate_user_id(cls, v: Any) -> Any:
        if not isinstance(v, str):
            raise ValueError("Valid userId (UUID format) is required")
        try:
            return uuid.UUID(v)
        except ValueError:
            raise ValueError("Valid userId (UUID format) is required") from None


class UpdatePasswordRequest(PasswordTarget):
    """Password rotation for userId. Body keys are camelCase."""

    new_password: str = Field(..., alias="newPassword")

    @field_validator("new_password", mode="before")
    @classmethod
    def validate_new_password(cls, v: Any) -> str:
        if not isinstance(v, str) or not v:
            raise ValueError("New password is required")
        if not (PASSWORD_MIN_LEN <= len(v) <= PASSWORD_MAX_LEN):
            raise ValueError("Password must be 8-128 characters")
        if not has_password_complexity(v):
            raise ValueError("Password must contain at least one letter and one number")
        return v


class SanitizedUser(BaseModel):
    """User as returned to clients: never includes password_hash."""

    id: uuid.UUID
    email: str
    full_name: str
    role: str
    location: str | None = None
    location_id: uuid.UUID | None = None
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    """Successful login: the user and a new session token for x-session-token."""

    user: SanitizedUser
    session_token: str = Field(..., alias="sessionToken", description="64-char hex session token")

    class Config:
        populate_by_name = True


class CreateUserResponse(BaseModel):
    user: SanitizedUser


class SuccessResponse(BaseModel):
    success: bool = True


class RegeneratePasswordResponse(BaseModel):
    """Newly generated password; shown once to the admin."""

    password: str


class UsersListResponse(BaseModel):
    """Response for GET /users (admin only)."""

    users: list[SanitizedUser]


class SessionIdentity(BaseModel):
    """Caller identity taken from a validated session (role is the login-time snapshot)."""

    user_id: uuid.UUID
    role: str
    token: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class ErrorResponse(BaseModel):
    """Error body for every non-2xx response."""

    error: str
    fields: dict[str, str] | None = None


def validation_messages(exc: PydanticValidationError) -> dict[str, str]:
    """Map pydantic errors to {field: message}, first message per field."""
    messages: dict[str, str] = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "body"
        if err.get("type") == "missing":
            msg = f"{field} is required"
        else:
            msg = str(err.get("msg", "Invalid value"))
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, ") :]
        messages.setdefault(field, msg)
    return messages
