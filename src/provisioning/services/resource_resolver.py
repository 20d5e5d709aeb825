"""
Remote Resource Resolver.

Find-or-create client for department and specialization references.
The remote services own matching and idempotency: asking for the same
name twice returns the same reference. The resolver keeps no cache, so
every row issues its own call.
"""
from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from ..core.exceptions import DependencyResolutionError
from .remote_service import RemoteCallResult, RemoteServiceClient

logger = structlog.get_logger(__name__)

DEPARTMENT_PATH = "/departments/find-or-create"
SPECIALIZATION_PATH = "/specializations/find-or-create"


@dataclass
class ResolutionResult:
    """Result of a find-or-create call."""

    success: bool
    resource_type: str
    name: str
    reference_id: str | None = None
    error_message: str | None = None
    http_status_code: int | None = None

    def raise_for_error(self) -> None:
        """Raise ``DependencyResolutionError`` if the call failed."""
        if not self.success:
            raise DependencyResolutionError(self.resource_type, self.name, self.error_message)


class RemoteResourceResolver:
    """Resolves department and specialization names to remote ids."""

    def __init__(
        self,
        departments_client: httpx.AsyncClient,
        specializations_client: httpx.AsyncClient,
    ) -> None:
        self._departments = RemoteServiceClient(departments_client, "departments")
        self._specializations = RemoteServiceClient(specializations_client, "specializations")

    async def resolve_department(self, name: str) -> ResolutionResult:
        """Find or create the department called ``name``."""
        call = await self._departments.post_json(DEPARTMENT_PATH, {"name": name})
        return self._to_result("department", name, call)

    async def resolve_specialization(self, name: str, department_id: str) -> ResolutionResult:
        """Find or create specialization ``name`` within ``department_id``."""
        call = await self._specializations.post_json(
            SPECIALIZATION_PATH,
            {"name": name, "departmentId": department_id},
        )
        return self._to_result("specialization", name, call)

    @staticmethod
    def _to_result(resource_type: str, name: str, call: RemoteCallResult) -> ResolutionResult:
        if not call.success:
            logger.warning(
                "resolution_failed",
                resource_type=resource_type,
                name=name,
                error=call.error_message,
            )
            return ResolutionResult(
                success=False,
                resource_type=resource_type,
                name=name,
                error_message=call.error_message,
                http_status_code=call.http_status_code,
            )

        reference_id = _extract_id(call.payload or {})
        if reference_id is None:
            logger.warning("resolution_missing_id", resource_type=resource_type, name=name)
            return ResolutionResult(
                success=False,
                resource_type=resource_type,
                name=name,
                error_message="Response did not contain an id",
                http_status_code=call.http_status_code,
            )

        logger.info("resolution_succeeded", resource_type=resource_type, name=name, reference_id=reference_id)
        return ResolutionResult(
            success=True,
            resource_type=resource_type,
            name=name,
            reference_id=reference_id,
            http_status_code=call.http_status_code,
        )


def _extract_id(payload: dict) -> str | None:
    """Read ``id`` from the body, also accepting a ``{"data": {...}}`` envelope."""
    value = payload.get("id")
    if value is None and isinstance(payload.get("data"), dict):
        value = payload["data"].get("id")
    if value is None or value == "":
        return None
    return str(value)
