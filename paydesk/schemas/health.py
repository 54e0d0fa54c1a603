"""GET /health payload."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """status is 'degraded' when the database cannot be reached."""

    status: Literal["ok", "degraded"]
    version: str
    environment: str
    database: Literal["connected", "disconnected"] = Field(
        description="Result of a SELECT 1 against DATABASE_URL",
    )
