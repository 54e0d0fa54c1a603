"""Engine and request-scoped sessions for the app_users/app_sessions database."""

import logging
from collections.abc import Iterator

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from paydesk.core.config import settings

logger = logging.getLogger(__name__)


def make_engine(url: str, *, echo: bool = False) -> Engine:
    # pool_pre_ping: drop pooled connections the server closed while idle.
    return create_engine(url, pool_pre_ping=True, echo=echo)


engine = make_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Services commit explicitly; no implicit flush before queries.
SessionLocal = sessionmaker(bind=engine, autoflush=False)


def get_db() -> Iterator[Session]:
    """One Session per request; closing it rolls back anything left uncommitted."""
    with SessionLocal() as db:
        yield db


def check_db_connected(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database connectivity check failed", exc_info=True)
        db.rollback()
        return False
    return True
