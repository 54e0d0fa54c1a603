"""Shared test fixtures: in-memory SQLite sessions, seeded users, fast hashing."""

import secrets
import uuid

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from paydesk.core.security import PasswordHasher
from paydesk.models import AppUser, Base
from paydesk.schemas.auth import SessionIdentity

# Minimum bcrypt cost keeps the suite fast; the scheme is identical.
FAST_HASHER = PasswordHasher(rounds=4)


def make_session_factory() -> sessionmaker:
    """Fresh in-memory database with all tables; safe to use across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False)


def make_db() -> Session:
    return make_session_factory()()


def add_user(
    db: Session,
    email: str = "a@b.com",
    password: str = "correct",
    *,
    role: str = "manager",
    full_name: str = "Test User",
    is_active: bool = True,
    password_hash: str | None = None,
    location: str | None = None,
) -> AppUser:
    """Insert a user with a bcrypt digest of password unless password_hash is given."""
    user = AppUser(
        email=email,
        full_name=full_name,
        role=role,
        location=location,
        password_hash=password_hash if password_hash is not None else FAST_HASHER.hash(password),
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def identity(user_id: uuid.UUID | None = None, role: str = "admin", token: str | None = None) -> SessionIdentity:
    return SessionIdentity(
        user_id=user_id or uuid.uuid4(),
        role=role,
        token=token or secrets.token_hex(32),
    )
