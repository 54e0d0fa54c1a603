"""Opaque session tokens: issue, validate (fail closed), invalidate, purge."""

import logging
import re
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from paydesk.core.errors import InternalError
from paydesk.models import AppSession

logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 32
SESSION_TTL_DAYS = 30
TOKEN_RE = re.compile(r"[0-9a-f]{64}")


@dataclass(frozen=True)
class SessionValidation:
    """Outcome of SessionStore.validate; user_id/role are set only when valid."""

    valid: bool
    user_id: uuid.UUID | None = None
    role: str | None = None
    error: str | None = None


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_aware(value: datetime) -> datetime:
    # Some backends (SQLite) hand back naive datetimes; stored values are UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def is_well_formed_token(token: object) -> bool:
    return isinstance(token, str) and TOKEN_RE.fullmatch(token) is not None


class SessionStore:
    """Session rows in app_sessions, accessed through one SQLAlchemy session."""

    def __init__(
        self,
        db: Session,
        ttl: timedelta = timedelta(days=SESSION_TTL_DAYS),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.db = db
        self.ttl = ttl
        self._clock = clock

    def create(self, user_id: uuid.UUID, role: str) -> str:
        """Persist a new valid session and return its token."""
        token = secrets.token_hex(SESSION_TOKEN_BYTES)
        row = AppSession(
            token=token,
            user_id=user_id,
            role=role,
            expires_at=self._clock() + self.ttl,
            is_valid=True,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise InternalError("Failed to create session") from e
        return token

    def validate(self, token: str | None) -> SessionValidation:
        """
        Look up token and decide whether it authenticates.

        Malformed tokens are rejected before any query. A datastore error is
        treated like a missing session.
        """
        if not token or not is_well_formed_token(token):
            return SessionValidation(valid=False, error="Missing or invalid session token")
        try:
            row = self.db.query(AppSession).filter(AppSession.token == token).first()
        except SQLAlchemyError:
            logger.exception("Session lookup failed")
            self.db.rollback()
            return SessionValidation(valid=False, error="Invalid or expired session")
        if row is None or not row.is_valid:
            return SessionValidation(valid=False, error="Invalid or expired session")
        if _as_aware(row.expires_at) <= self._clock():
            return SessionValidation(valid=False, error="Session expired")
        return SessionValidation(valid=True, user_id=row.user_id, role=row.role)

    def invalidate_all_except(
        self, user_id: uuid.UUID, keep_token: str | None, *, commit: bool = True
    ) -> int:
        """
        Mark every other valid session of user_id invalid; keep_token=None invalidates all.

        With commit=False the update joins the caller's transaction; on error
        the whole transaction is rolled back.
        """
        query = self.db.query(AppSession).filter(
            AppSession.user_id == user_id,
            AppSession.is_valid.is_(True),
        )
        if keep_token is not None:
            query = query.filter(AppSession.token != keep_token)
        try:
            count = query.update({AppSession.is_valid: False}, synchronize_session=False)
            if commit:
                self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise InternalError("Failed to invalidate sessions") from e
        logger.info(
            "Sessions invalidated",
            extra={"user_id": str(user_id), "invalidated_count": count},
        )
        return count

    def purge_expired(self, cutoff: datetime) -> int:
        """Delete sessions whose expires_at is before cutoff. Idempotent."""
        deleted = (
            self.db.query(AppSession)
            .filter(AppSession.expires_at < cutoff)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
