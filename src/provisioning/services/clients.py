"""
Remote service client handles.

Builds one ``httpx.AsyncClient`` per remote service from settings. The
bundle is created once per process and passed explicitly into the
provisioning components, so tests can substitute any single service.
"""
from __future__ import annotations

from dataclasses import dataclass, fields

import httpx
import structlog

from ..core.config import Settings, get_settings

logger = structlog.get_logger(__name__)


@dataclass
class ServiceClients:
    """HTTP client per remote service."""

    departments: httpx.AsyncClient
    specializations: httpx.AsyncClient
    auth: httpx.AsyncClient
    patients: httpx.AsyncClient
    doctors: httpx.AsyncClient
    nurses: httpx.AsyncClient

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServiceClients":
        """Create clients for every configured service URL."""
        headers = {"Accept": "application/json"}
        if settings.REMOTE_SERVICE_TOKEN:
            headers["Authorization"] = f"Bearer {settings.REMOTE_SERVICE_TOKEN}"

        def _client(base_url: str) -> httpx.AsyncClient:
            return httpx.AsyncClient(
                base_url=base_url,
                timeout=settings.REMOTE_SERVICE_TIMEOUT,
                headers=headers,
                follow_redirects=True,
            )

        urls = settings.remote_service_urls
        return cls(**{name: _client(urls[name]) for name in urls})

    async def aclose(self) -> None:
        """Close every underlying client."""
        for item in fields(self):
            await getattr(self, item.name).aclose()


# -----------------------------------------------------------------------------
# Process-level bundle
# -----------------------------------------------------------------------------

_service_clients: ServiceClients | None = None


def get_service_clients() -> ServiceClients:
    """Return the process-level client bundle, creating it on first use."""
    global _service_clients
    if _service_clients is None:
        _service_clients = ServiceClients.from_settings(get_settings())
        logger.info("remote_clients_created")
    return _service_clients


async def close_service_clients() -> None:
    """Close the process-level bundle (called on application shutdown)."""
    global _service_clients
    if _service_clients is not None:
        await _service_clients.aclose()
        _service_clients = None
        logger.info("remote_clients_closed")
