"""Declarative base shared by AppUser and AppSession."""

from sqlalchemy import inspect
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    def __repr__(self) -> str:
        # Primary key only; column values never appear in logs.
        identity = inspect(self).identity
        key = identity[0] if identity else None
        return f"<{type(self).__name__} id={key}>"
