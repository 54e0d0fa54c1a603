"""Error taxonomy for the auth endpoints; each error maps to one HTTP status."""


class AuthServiceError(Exception):
    """Base for errors rendered to the client as {"error": message}."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        headers: dict[str, str] | None = None,
        fields: dict[str, str] | None = None,
    ) -> None:
        self.message = message
        self.headers = headers
        self.fields = fields
        super().__init__(message)


class ValidationError(AuthServiceError):
    """Malformed or missing input. Client-caused; never retried."""

    status_code = 400


class AuthenticationError(AuthServiceError):
    """Bad credentials or a missing/invalid/expired session. Never says which factor failed."""

    status_code = 401


class AuthorizationError(AuthServiceError):
    """Valid session without the privilege the operation needs."""

    status_code = 403


class NotFoundError(AuthServiceError):
    """Target entity is missing or inactive."""

    status_code = 404


class ConflictError(AuthServiceError):
    """Uniqueness violation (e.g. duplicate email)."""

    status_code = 409


class RateLimitedError(AuthServiceError):
    """Too many failed attempts; retry_after is advisory."""

    status_code = 429

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message, headers={"Retry-After": str(retry_after)})
        self.retry_after = retry_after


class InternalError(AuthServiceError):
    """Datastore or hashing failure. Logged with detail, surfaced generically."""

    status_code = 500
