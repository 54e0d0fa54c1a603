"""Shared dependencies: settings-backed collaborators, session auth, JSON body parsing."""

import json
from datetime import timedelta
from typing import Annotated, TypeVar

from fastapi import Depends, Header, Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from paydesk.core.config import Settings, get_settings
from paydesk.core.database import get_db
from paydesk.core.errors import ValidationError
from paydesk.core.rate_limit import RateLimiter
from paydesk.core.security import PasswordHasher
from paydesk.models.user import ROLE_ADMIN
from paydesk.schemas.auth import SessionIdentity, validation_messages
from paydesk.services.guard import AuthorizationGuard
from paydesk.services.sessions import SessionStore

SESSION_HEADER = "x-session-token"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-session-token",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
}

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_rate_limiter(request: Request) -> RateLimiter:
    """The process-wide limiter created with the app (see create_app)."""
    return request.app.state.rate_limiter


def get_password_hasher(
    settings: Annotated[Settings, Depends(get_settings)],
) -> PasswordHasher:
    return PasswordHasher(rounds=settings.BCRYPT_ROUNDS)


def get_session_store(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SessionStore:
    return SessionStore(db, ttl=timedelta(days=settings.SESSION_TTL_DAYS))


def get_current_session(
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    x_session_token: Annotated[str | None, Header(alias=SESSION_HEADER)] = None,
) -> SessionIdentity:
    """Dependency: require a valid x-session-token. Raises AuthenticationError (401) otherwise."""
    return AuthorizationGuard(sessions).require_session(x_session_token)


def require_admin(
    identity: Annotated[SessionIdentity, Depends(get_current_session)],
) -> SessionIdentity:
    """Dependency: require a session whose role snapshot is 'admin'. Raises 403 for others."""
    return AuthorizationGuard.require_role(identity, ROLE_ADMIN)


async def read_json_object(request: Request) -> dict:
    """Read the request body as a JSON object or raise ValidationError."""
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Invalid request body") from e
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body")
    return data


def parse_body(model: type[ModelT], data: dict) -> ModelT:
    """Validate data against model; on failure raise ValidationError with per-field messages."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        fields = validation_messages(e)
        raise ValidationError(next(iter(fields.values()), "Invalid request body"), fields=fields) from e
