"""Pydantic request/response schemas."""

from paydesk.schemas.auth import (
    CreateUserRequest,
    CreateUserResponse,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    PasswordTarget,
    RegeneratePasswordResponse,
    SanitizedUser,
    SessionIdentity,
    SuccessResponse,
    UpdatePasswordRequest,
    UsersListResponse,
)
from paydesk.schemas.health import HealthResponse

__all__ = [
    "CreateUserRequest",
    "CreateUserResponse",
    "ErrorResponse",
    "HealthResponse",
    "LoginRequest",
    "LoginResponse",
    "PasswordTarget",
    "RegeneratePasswordResponse",
    "SanitizedUser",
    "SessionIdentity",
    "SuccessResponse",
    "UpdatePasswordRequest",
    "UsersListResponse",
]
