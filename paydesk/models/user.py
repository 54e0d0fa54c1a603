"""ORM model for admin application users (login accounts)."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Uuid, func

from paydesk.models.base import Base

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLES = (ROLE_ADMIN, ROLE_MANAGER)


class AppUser(Base):
    """
    Login account for the staff/payroll admin screens.

    role: 'admin' or 'manager' (managers are scoped to a location).
    email is stored lowercase; rows are soft-deleted via is_active.
    """

    __tablename__ = "app_users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(254), nullable=False, unique=True, index=True)
    full_name = Column(String(100), nullable=False)
    role = Column(String(32), nullable=False, default=ROLE_MANAGER)
    location = Column(String(200), nullable=True)
    location_id = Column(Uuid, nullable=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=True,
        server_default=func.now(),
    )
