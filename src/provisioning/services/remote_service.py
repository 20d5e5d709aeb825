"""
Remote service call helper.

Wraps one httpx ``AsyncClient`` per remote service and turns every
outcome of a JSON POST (2xx, error status, timeout, transport failure)
into a ``RemoteCallResult`` so callers never see httpx exceptions.

No retries are attempted: a failed call is reported, not repeated.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)


@dataclass
class RemoteCallResult:
    """Outcome of a single remote POST."""

    success: bool
    http_status_code: int | None = None
    payload: dict[str, Any] | None = None
    error_message: str | None = None


class RemoteServiceClient:
    """Thin JSON-over-HTTP client bound to one service."""

    def __init__(self, client: httpx.AsyncClient, service_name: str) -> None:
        self.client = client
        self.service_name = service_name

    async def post_json(self, path: str, body: dict[str, Any]) -> RemoteCallResult:
        """POST ``body`` to ``path`` and classify the response."""
        logger.debug("remote_request", service=self.service_name, path=path)
        try:
            response = await self.client.post(path, json=body)
        except httpx.TimeoutException as exc:
            logger.error("remote_timeout", service=self.service_name, path=path, error=str(exc))
            return RemoteCallResult(success=False, error_message=f"Request timeout: {exc}")
        except httpx.HTTPError as exc:
            logger.error("remote_unreachable", service=self.service_name, path=path, error=str(exc))
            return RemoteCallResult(success=False, error_message=f"Connection error: {exc}")

        payload = _json_or_raw(response)
        success = response.is_success

        if success:
            logger.debug("remote_response", service=self.service_name, status=response.status_code)
        else:
            logger.warning(
                "remote_rejected",
                service=self.service_name,
                path=path,
                status=response.status_code,
                response=payload,
            )

        return RemoteCallResult(
            success=success,
            http_status_code=response.status_code,
            payload=payload,
            error_message=None if success else _error_message(response.status_code, payload),
        )


def _json_or_raw(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"raw_response": response.text[:500]}
    if isinstance(body, dict):
        return body
    return {"data": body}


def _error_message(status_code: int, payload: dict[str, Any]) -> str:
    detail = payload.get("message") or payload.get("detail") or payload.get("error")
    if isinstance(detail, str) and detail:
        return f"API returned status {status_code}: {detail}"
    return f"API returned status {status_code}"
