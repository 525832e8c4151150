"""Health check endpoint with a user-store connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import check_db_connected, get_db
from app.schemas.common import ApiResponse
from app.schemas.health import HealthStatus

router = APIRouter()


@router.get("/", response_model=ApiResponse[HealthStatus])
def get_health(db: Annotated[Session, Depends(get_db)]) -> ApiResponse[HealthStatus]:
    """
    Report service status. A store that does not answer marks the service
    degraded; the endpoint itself still answers 200 for load balancers.
    """
    connected = check_db_connected(db)
    health = HealthStatus(
        status="ok" if connected else "degraded",
        environment=settings.APP_ENV,
        database="connected" if connected else "disconnected",
    )
    return ApiResponse(data=health, message="Service is healthy" if connected else "Database unavailable")
