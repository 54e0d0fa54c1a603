"""Queries and writes on app_users used by the auth handlers and admin screens."""

import uuid
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from paydesk.core.errors import ConflictError, InternalError, NotFoundError
from paydesk.models import AppUser

# PostgreSQL SQLSTATE for unique_violation.
PG_UNIQUE_VIOLATION = "23505"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the IntegrityError comes from a unique constraint."""
    orig = exc.orig
    if getattr(orig, "pgcode", None) == PG_UNIQUE_VIOLATION:
        return True
    return "unique" in str(orig).lower()


def get_active_user_by_email(db: Session, email: str) -> AppUser | None:
    return (
        db.query(AppUser)
        .filter(AppUser.email == email, AppUser.is_active.is_(True))
        .first()
    )


def get_active_user(db: Session, user_id: uuid.UUID) -> AppUser | None:
    return (
        db.query(AppUser)
        .filter(AppUser.id == user_id, AppUser.is_active.is_(True))
        .first()
    )


def list_active_users(db: Session) -> list[AppUser]:
    """Active users ordered by full name (admin settings page)."""
    return (
        db.query(AppUser)
        .filter(AppUser.is_active.is_(True))
        .order_by(AppUser.full_name)
        .all()
    )


def insert_user(
    db: Session,
    *,
    email: str,
    password_hash: str,
    full_name: str,
    role: str,
    location: str | None = None,
    location_id: uuid.UUID | None = None,
) -> AppUser:
    """
    Insert an active user. Raises ConflictError when the email is taken
    (checked up front and again via the unique index), InternalError otherwise.
    """
    try:
        existing = db.query(AppUser.id).filter(AppUser.email == email).first()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError("Failed to create user") from e
    if existing is not None:
        raise ConflictError("A user with this email already exists")
    user = AppUser(
        email=email,
        password_hash=password_hash,
        full_name=full_name,
        role=role,
        location=location,
        location_id=location_id,
        is_active=True,
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_unique_violation(e):
            raise ConflictError("A user with this email already exists") from e
        raise InternalError("Failed to create user") from e
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError("Failed to create user") from e
    db.refresh(user)
    return user


def set_password_hash(user: AppUser, password_hash: str) -> None:
    """Stage a new digest on user. The caller commits it with the session invalidation."""
    user.password_hash = password_hash
    user.updated_at = _utcnow()


def record_login(db: Session, user: AppUser, upgraded_hash: str | None = None) -> None:
    """Stamp last_login; also store upgraded_hash when the digest was migrated."""
    user.last_login = _utcnow()
    if upgraded_hash is not None:
        user.password_hash = upgraded_hash
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError("Failed to record login") from e


def deactivate_user(db: Session, user_id: uuid.UUID) -> AppUser:
    """
    Soft delete: flip is_active without committing. Raises NotFoundError if the
    user is missing or already inactive.
    """
    try:
        user = get_active_user(db, user_id)
    except SQLAlchemyError as e:
        db.rollback()
        raise InternalError("Internal server error") from e
    if user is None:
        raise NotFoundError("User not found")
    user.is_active = False
    user.updated_at = _utcnow()
    return user
