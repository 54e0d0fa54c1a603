"""Authorization checks on top of validated sessions."""

import uuid

from paydesk.core.errors import AuthenticationError, AuthorizationError
from paydesk.models.user import ROLE_ADMIN
from paydesk.schemas.auth import SessionIdentity
from paydesk.services.sessions import SessionStore


class AuthorizationGuard:
    """Turns an x-session-token into a SessionIdentity and enforces role rules."""

    def __init__(self, sessions: SessionStore) -> None:
        self.sessions = sessions

    def require_session(self, token: str | None) -> SessionIdentity:
        """Raise AuthenticationError unless token names a valid, unexpired session."""
        result = self.sessions.validate(token)
        if not result.valid or result.user_id is None or result.role is None:
            raise AuthenticationError(result.error or "Unauthorized")
        return SessionIdentity(user_id=result.user_id, role=result.role, token=token)

    @staticmethod
    def require_role(identity: SessionIdentity, role: str) -> SessionIdentity:
        if identity.role != role:
            raise AuthorizationError(f"Forbidden: {role} access required")
        return identity

    @staticmethod
    def require_self_or_admin(identity: SessionIdentity, target_user_id: uuid.UUID) -> SessionIdentity:
        if not identity.is_admin and identity.user_id != target_user_id:
            raise AuthorizationError("Forbidden: you can only update your own password")
        return identity

    def require_admin(self, token: str | None) -> SessionIdentity:
        return self.require_role(self.require_session(token), ROLE_ADMIN)
