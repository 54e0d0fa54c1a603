"""ORM model for opaque bearer sessions issued at login."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid, func

from paydesk.models.base import Base


class AppSession(Base):
    """
    Server-side session for an x-session-token.

    role is a snapshot taken at login and is what authorization checks use;
    a later role change on the user takes effect at the next login.
    """

    __tablename__ = "app_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    token = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(
        Uuid,
        ForeignKey("app_users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = Column(String(32), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_valid = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
