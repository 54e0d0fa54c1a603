"""Auth function endpoints: login, user creation (admin), password update."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from paydesk.api.v1.deps import (
    CORS_HEADERS,
    get_current_session,
    get_password_hasher,
    get_rate_limiter,
    get_session_store,
    parse_body,
    read_json_object,
    require_admin,
)
from paydesk.core.config import Settings, get_settings
from paydesk.core.database import get_db
from paydesk.core.rate_limit import RateLimiter
from paydesk.core.security import PasswordHasher
from paydesk.schemas.auth import (
    CreateUserRequest,
    CreateUserResponse,
    LoginRequest,
    LoginResponse,
    PasswordTarget,
    SessionIdentity,
    SuccessResponse,
    UpdatePasswordRequest,
)
from paydesk.services import auth as auth_service
from paydesk.services.guard import AuthorizationGuard
from paydesk.services.sessions import SessionStore

router = APIRouter()


@router.options("/auth-login", include_in_schema=False)
@router.options("/auth-create-user", include_in_schema=False)
@router.options("/auth-update-password", include_in_schema=False)
def preflight() -> Response:
    """Bare OPTIONS (no Origin) still gets an empty 200 with permissive CORS headers."""
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/auth-login", response_model=LoginResponse)
async def login(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    rate_limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> LoginResponse:
    """
    Authenticate with email and password; returns the user and a session token.
    Send the token on later calls in the x-session-token header.
    """
    body = parse_body(LoginRequest, await read_json_object(request))
    return await run_in_threadpool(
        auth_service.login,
        db,
        body,
        rate_limiter=rate_limiter,
        hasher=hasher,
        sessions=sessions,
        failure_delay_seconds=settings.LOGIN_FAILURE_DELAY_MS / 1000,
    )


@router.post("/auth-create-user", response_model=CreateUserResponse)
async def create_user(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    admin: Annotated[SessionIdentity, Depends(require_admin)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
) -> CreateUserResponse:
    """Create a login (admin only). 409 when the email already exists."""
    body = parse_body(CreateUserRequest, await read_json_object(request))
    user = await run_in_threadpool(auth_service.create_user, db, admin, body, hasher=hasher)
    return CreateUserResponse(user=user)


@router.post("/auth-update-password", response_model=SuccessResponse)
async def update_password(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    identity: Annotated[SessionIdentity, Depends(get_current_session)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> SuccessResponse:
    """
    Set a new password for userId (admin, or the user themself) and sign out
    every other session of that user. The calling session stays valid.
    A caller who may not touch userId gets 403 before the password rules run.
    """
    data = await read_json_object(request)
    target = parse_body(PasswordTarget, data)
    AuthorizationGuard.require_self_or_admin(identity, target.user_id)
    body = parse_body(UpdatePasswordRequest, data)
    await run_in_threadpool(
        auth_service.update_password,
        db,
        identity,
        body,
        hasher=hasher,
        sessions=sessions,
    )
    return SuccessResponse(success=True)
