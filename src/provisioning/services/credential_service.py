"""
Credential Provisioner.

Registers the login credential for a freshly created identity record in
the authentication service. The call carries the local user id so the
remote credential can reference it. This component never compensates;
undoing the identity record is the orchestrator's job.
"""
from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from ..core.exceptions import CredentialProvisionError
from ..models.enums import NormalizedRole
from .remote_service import RemoteServiceClient

logger = structlog.get_logger(__name__)

SIGN_UP_PATH = "/auth/bulk-sign-up"


@dataclass
class CredentialResult:
    """Result of a credential sign-up call."""

    success: bool
    user_id: int
    email: str
    error_message: str | None = None
    http_status_code: int | None = None

    def raise_for_error(self) -> None:
        """Raise ``CredentialProvisionError`` if the call failed."""
        if not self.success:
            raise CredentialProvisionError(self.email, self.error_message, self.http_status_code)


class CredentialProvisioner:
    """Client for the authentication service's bulk sign-up endpoint."""

    def __init__(self, auth_client: httpx.AsyncClient) -> None:
        self._auth = RemoteServiceClient(auth_client, "auth")

    async def provision(
        self,
        user_id: int,
        email: str,
        password: str,
        role: NormalizedRole,
    ) -> CredentialResult:
        """Create a verified credential for ``user_id``.

        ``password`` is the plain secret; the auth service stores its own
        digest.
        """
        call = await self._auth.post_json(
            SIGN_UP_PATH,
            {
                "userId": user_id,
                "email": email,
                "password": password,
                "role": role.value,
                "verified": True,
            },
        )

        if call.success:
            logger.info("credential_provisioned", user_id=user_id)
        else:
            logger.error("credential_provision_failed", user_id=user_id, error=call.error_message)

        return CredentialResult(
            success=call.success,
            user_id=user_id,
            email=email,
            error_message=call.error_message,
            http_status_code=call.http_status_code,
        )
