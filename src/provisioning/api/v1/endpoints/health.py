"""
Health Check Endpoints.

Provides health and readiness endpoints for orchestration systems.
"""
import time
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ....core.config import get_settings, Settings
from ....core.responses import HealthCheck, HealthResponse
from ....db.session import get_db

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the service and its dependencies.",
)
async def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Database connectivity
    - Remote service configuration (URLs set, no network call)
    """
    checks: dict[str, HealthCheck] = {}

    db_start = time.time()
    try:
        await db.execute(text("SELECT 1"))
        db_latency = (time.time() - db_start) * 1000
        checks["database"] = HealthCheck(
            status="healthy",
            latency_ms=round(db_latency, 2),
            message="Connected",
        )
    except Exception as e:
        checks["database"] = HealthCheck(
            status="unhealthy",
            message=str(e),
        )

    missing = sorted(name for name, url in settings.remote_service_urls.items() if not url)
    if missing:
        checks["remote_services"] = HealthCheck(
            status="degraded",
            message=f"URL not configured: {', '.join(missing)}",
        )
    else:
        checks["remote_services"] = HealthCheck(
            status="healthy",
            message="All service URLs configured",
        )

    overall_status = "healthy"
    if any(c.status == "unhealthy" for c in checks.values()):
        overall_status = "unhealthy"
    elif any(c.status == "degraded" for c in checks.values()):
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.APP_ENV,
        checks=checks,
    )


@router.get(
    "/ready",
    summary="Readiness probe",
    description="Returns 200 if the service is ready to accept traffic.",
)
async def readiness_probe(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict[str, str]:
    """Readiness probe: fails while the database is unreachable."""
    await db.execute(text("SELECT 1"))

    return {"status": "ready"}


@router.get(
    "/live",
    summary="Liveness probe",
    description="Returns 200 if the service is alive.",
)
async def liveness_probe() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}
