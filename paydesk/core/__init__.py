"""Core app configuration and database."""

from paydesk.core.config import get_settings, settings
from paydesk.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
