"""SQLAlchemy ORM models."""

from paydesk.models.base import Base
from paydesk.models.session import AppSession
from paydesk.models.user import AppUser

__all__ = ["AppSession", "AppUser", "Base"]
