"""FastAPI application entrypoint. No business logic; only wiring, middleware and error rendering."""

import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paydesk.api.v1 import router as v1_router
from paydesk.core.config import Settings, get_settings
from paydesk.core.errors import AuthServiceError, InternalError
from paydesk.core.rate_limit import RateLimiter
from paydesk.schemas.auth import ErrorResponse

logger = logging.getLogger(__name__)


async def handle_auth_service_error(request: Request, exc: AuthServiceError) -> JSONResponse:
    """Render any AuthServiceError as {"error": ...} with its status code and headers."""
    if isinstance(exc, InternalError):
        logger.error(
            "Request failed: %s",
            exc.message,
            exc_info=exc,
            extra={"path": request.url.path},
        )
    body = ErrorResponse(error=exc.message, fields=exc.fields)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
        headers=exc.headers,
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Path/query/header validation failures are client errors (400), not 422."""
    fields = {
        ".".join(str(part) for part in err.get("loc", ())): str(err.get("msg", "Invalid value"))
        for err in exc.errors()
    }
    body = ErrorResponse(error="Invalid request", fields=fields or None)
    return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the app and its process-wide rate limiter."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Paydesk API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.rate_limiter = RateLimiter(
        max_attempts=settings.LOGIN_MAX_ATTEMPTS,
        lockout_seconds=settings.LOGIN_LOCKOUT_MINUTES * 60,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Retry-After"],
    )

    app.add_exception_handler(AuthServiceError, handle_auth_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(v1_router, prefix=settings.API_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "Paydesk API"}

    return app


app = create_app()
