"""Liveness plus database reachability, for load balancers and uptime checks."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from paydesk import __version__
from paydesk.core.config import Settings, get_settings
from paydesk.core.database import check_db_connected, get_db
from paydesk.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Always 200; status turns 'degraded' while the database is unreachable."""
    connected = check_db_connected(db)
    return HealthResponse(
        status="ok" if connected else "degraded",
        version=__version__,
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
    )
