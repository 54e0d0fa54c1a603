"""Purge of long-expired rows from app_sessions."""

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from paydesk.services.sessions import SessionStore

if TYPE_CHECKING:
    from paydesk.core.config import Settings

logger = logging.getLogger(__name__)


def run_session_cleanup(db: Session, settings: "Settings", now: datetime | None = None) -> int:
    """
    Delete sessions whose expiry is older than SESSION_RETENTION_DAYS.

    Invalidated but unexpired rows stay, so a password change can still be
    traced to the sessions it revoked. Returns the number of rows deleted;
    running it twice deletes nothing the second time.
    """
    if not settings.SESSION_RETENTION_ENABLED:
        logger.info("SESSION_RETENTION_ENABLED is false; no sessions purged")
        return 0

    cutoff = (now or datetime.now(UTC)) - timedelta(days=settings.SESSION_RETENTION_DAYS)
    deleted = SessionStore(db).purge_expired(cutoff)
    logger.info(
        "Expired sessions purged",
        extra={"cutoff": cutoff.isoformat(), "sessions_deleted": deleted},
    )
    return deleted
