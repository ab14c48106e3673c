"""Health check endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.v1.dependencies import get_profile_store
from core.config import settings
from core.exceptions import RemoteUnavailableError
from infrastructure.database.profile_store import SQLAlchemyRemoteProfileStore

API_VERSION = "1.0.0"

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str
    environment: str
    profile_store: str | None = None


@router.get("/health", response_model=HealthResponse, summary="Basic health check")
async def health_check() -> HealthResponse:
    """
    Basic health check for load balancers.

    Returns service status without checking dependencies. Fast and lightweight.
    """
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        environment=settings.app_env,
    )


@router.get(
    "/health/detailed",
    response_model=HealthResponse,
    summary="Detailed health check",
)
async def detailed_health_check(
    store: SQLAlchemyRemoteProfileStore = Depends(get_profile_store),
) -> HealthResponse:
    """
    Detailed health check including the remote profile store.

    Use for monitoring dashboards that need to verify all dependencies.
    """
    try:
        await store.get_document("__health__")
        store_status = "healthy"
    except RemoteUnavailableError as e:
        store_status = f"unhealthy: {e.message}"

    overall_status = "healthy" if store_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall_status,
        version=API_VERSION,
        timestamp=datetime.utcnow().isoformat(),
        environment=settings.app_env,
        profile_store=store_status,
    )
