"""
Standardized API Response Schemas.

Error and health payloads shared by every endpoint.
"""
from datetime import UTC, datetime

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    """Metadata included in all API responses."""

    request_id: str | None = Field(
        default=None,
        description="Unique request identifier for tracing"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Response timestamp (UTC)"
    )
    version: str = Field(
        default="1.0.0",
        description="API version"
    )


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: dict | None = Field(
        default=None,
        description="Additional error context"
    )


class ErrorResponse(BaseModel):
    """
    Standardized error response structure.

    Used by the global exception handler for all error responses.
    """

    success: bool = Field(default=False)
    error: ErrorDetail
    meta: ResponseMeta = Field(default_factory=ResponseMeta)


class HealthCheck(BaseModel):
    """Individual health check result."""

    status: str = Field(description="Component status: healthy/unhealthy/degraded")
    latency_ms: float | None = Field(
        default=None,
        description="Response time in milliseconds"
    )
    message: str | None = Field(
        default=None,
        description="Additional status information"
    )


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str = Field(description="Service health status")
    service: str = Field(description="Service name")
    version: str = Field(description="Service version")
    environment: str = Field(description="Deployment environment")
    checks: dict[str, HealthCheck] = Field(
        default_factory=dict,
        description="Individual component health checks"
    )
