"""Admin user management: list active users, deactivate, regenerate password."""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from paydesk.api.v1.deps import get_password_hasher, get_session_store, require_admin
from paydesk.core.database import get_db
from paydesk.core.security import PasswordHasher
from paydesk.schemas.auth import (
    RegeneratePasswordResponse,
    SanitizedUser,
    SessionIdentity,
    SuccessResponse,
    UsersListResponse,
)
from paydesk.services import auth as auth_service
from paydesk.services import users as user_service
from paydesk.services.sessions import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=UsersListResponse)
def list_users(
    _admin: Annotated[SessionIdentity, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """List active users ordered by full name (admin only)."""
    users = user_service.list_active_users(db)
    return UsersListResponse(users=[SanitizedUser.model_validate(u) for u in users])


@router.post("/{user_id}/deactivate", response_model=SuccessResponse)
def deactivate_user(
    user_id: uuid.UUID,
    admin: Annotated[SessionIdentity, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> SuccessResponse:
    """Soft delete a user and sign out all of their sessions (admin only)."""
    auth_service.deactivate_user(db, admin, user_id, sessions=sessions)
    logger.info(
        "User deactivated by admin",
        extra={"user_id": str(user_id), "admin_id": str(admin.user_id)},
    )
    return SuccessResponse(success=True)


@router.post("/{user_id}/regenerate-password", response_model=RegeneratePasswordResponse)
async def regenerate_password(
    user_id: uuid.UUID,
    admin: Annotated[SessionIdentity, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> RegeneratePasswordResponse:
    """
    Reset a user's password to a generated one and return it (admin only).
    The user's existing sessions are invalidated.
    """
    password = await run_in_threadpool(
        auth_service.regenerate_password,
        db,
        admin,
        user_id,
        hasher=hasher,
        sessions=sessions,
    )
    return RegeneratePasswordResponse(password=password)
