"""
Login, user provisioning and password rotation.

Each function takes an already-validated request schema plus its
collaborators, runs synchronously (bcrypt and SQLAlchemy block), and raises
an AuthServiceError subclass for every rejection.
"""

import logging
import math
import time
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from paydesk.core.errors import (
    AuthenticationError,
    InternalError,
    NotFoundError,
    RateLimitedError,
)
from paydesk.core.rate_limit import RateLimiter
from paydesk.core.security import PasswordDigest, PasswordHasher, generate_random_password
from paydesk.models.user import ROLE_ADMIN
from paydesk.schemas.auth import (
    CreateUserRequest,
    LoginRequest,
    LoginResponse,
    SanitizedUser,
    SessionIdentity,
    UpdatePasswordRequest,
)
from paydesk.services import users
from paydesk.services.guard import AuthorizationGuard
from paydesk.services.sessions import SessionStore

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
DEFAULT_FAILURE_DELAY_SECONDS = 0.3


def login_rate_limit_key(email: str) -> str:
    return f"login:{email}"


def _commit(db: Session, error_message: str) -> None:
    # The digest/flag change and the session invalidation land together or not at all.
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError(error_message) from e


def login(
    db: Session,
    body: LoginRequest,
    *,
    rate_limiter: RateLimiter,
    hasher: PasswordHasher,
    sessions: SessionStore,
    failure_delay_seconds: float = DEFAULT_FAILURE_DELAY_SECONDS,
) -> LoginResponse:
    """
    Authenticate email/password and issue a session.

    body.email is already normalized. Unknown email and wrong password give
    the same AuthenticationError; the unknown-email path sleeps
    failure_delay_seconds so it is not measurably faster than a bcrypt check.
    A legacy digest that matches is replaced with a bcrypt digest.
    """
    key = login_rate_limit_key(body.email)
    status = rate_limiter.check(key)
    if status.blocked:
        retry_after = status.retry_after_seconds or int(rate_limiter.lockout_seconds)
        minutes = math.ceil(retry_after / 60)
        logger.warning("Login rate limited", extra={"retry_after": retry_after})
        raise RateLimitedError(
            f"Too many failed attempts. Try again in {minutes} minutes.",
            retry_after=retry_after,
        )

    try:
        user = users.get_active_user_by_email(db, body.email)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError("Internal server error") from e

    if user is None or not user.password_hash:
        attempts = rate_limiter.record_failure(key)
        logger.info("Login failed", extra={"reason": "unknown_user", "attempts": attempts})
        if failure_delay_seconds > 0:
            time.sleep(failure_delay_seconds)
        raise AuthenticationError(INVALID_CREDENTIALS)

    digest = PasswordDigest.parse(user.password_hash)
    if not hasher.verify(body.password, digest):
        attempts = rate_limiter.record_failure(key)
        logger.info(
            "Login failed",
            extra={"reason": "bad_password", "user_id": str(user.id), "attempts": attempts},
        )
        raise AuthenticationError(INVALID_CREDENTIALS)

    rate_limiter.clear(key)
    token = sessions.create(user.id, user.role)

    upgraded_hash = None
    if hasher.needs_upgrade(digest):
        upgraded_hash = hasher.hash(body.password)
    users.record_login(db, user, upgraded_hash=upgraded_hash)

    logger.info(
        "Login succeeded",
        extra={
            "user_id": str(user.id),
            "role": user.role,
            "hash_upgraded": upgraded_hash is not None,
        },
    )
    return LoginResponse(user=SanitizedUser.model_validate(user), session_token=token)


def create_user(
    db: Session,
    identity: SessionIdentity,
    body: CreateUserRequest,
    *,
    hasher: PasswordHasher,
) -> SanitizedUser:
    """Create an active account (admin only). Duplicate email raises ConflictError."""
    AuthorizationGuard.require_role(identity, ROLE_ADMIN)
    user = users.insert_user(
        db,
        email=body.email,
        password_hash=hasher.hash(body.password),
        full_name=body.full_name,
        role=body.role,
        location=body.location,
        location_id=body.location_id,
    )
    logger.info(
        "User created",
        extra={"user_id": str(user.id), "role": user.role, "created_by": str(identity.user_id)},
    )
    return SanitizedUser.model_validate(user)


def update_password(
    db: Session,
    identity: SessionIdentity,
    body: UpdatePasswordRequest,
    *,
    hasher: PasswordHasher,
    sessions: SessionStore,
) -> int:
    """
    Replace the target user's password and invalidate their other sessions.

    Allowed for admins and for the user themself. The caller's own token
    stays valid. Returns the number of sessions invalidated.
    """
    AuthorizationGuard.require_self_or_admin(identity, body.user_id)
    try:
        target = users.get_active_user(db, body.user_id)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError("Internal server error") from e
    if target is None:
        raise NotFoundError("User not found")

    users.set_password_hash(target, hasher.hash(body.new_password))
    invalidated = sessions.invalidate_all_except(body.user_id, identity.token, commit=False)
    _commit(db, "Failed to update password")
    logger.info(
        "Password updated",
        extra={
            "user_id": str(body.user_id),
            "updated_by": str(identity.user_id),
            "sessions_invalidated": invalidated,
        },
    )
    return invalidated


def regenerate_password(
    db: Session,
    identity: SessionIdentity,
    user_id: uuid.UUID,
    *,
    hasher: PasswordHasher,
    sessions: SessionStore,
) -> str:
    """Admin reset: set a generated password via update_password and return it."""
    AuthorizationGuard.require_role(identity, ROLE_ADMIN)
    password = generate_random_password()
    body = UpdatePasswordRequest(userId=str(user_id), newPassword=password)
    update_password(db, identity, body, hasher=hasher, sessions=sessions)
    return password


def deactivate_user(
    db: Session,
    identity: SessionIdentity,
    user_id: uuid.UUID,
    *,
    sessions: SessionStore,
) -> None:
    """Soft delete a user (admin only) and invalidate all of their sessions."""
    AuthorizationGuard.require_role(identity, ROLE_ADMIN)
    users.deactivate_user(db, user_id)
    invalidated = sessions.invalidate_all_except(user_id, None, commit=False)
    _commit(db, "Failed to deactivate user")
    logger.info(
        "User deactivated",
        extra={
            "user_id": str(user_id),
            "deactivated_by": str(identity.user_id),
            "sessions_invalidated": invalidated,
        },
    )
