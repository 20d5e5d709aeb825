"""
Profile Provisioner.

Creates the role-specific profile (patient, doctor or nurse) in the
matching remote service. Administrators have no profile.

Routing is a total table over ``NormalizedRole``; adding a role without
deciding its profile route fails at import time.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx
import structlog

from ..core.config import Settings
from ..core.exceptions import ProfileProvisionError
from ..models.enums import NormalizedRole
from .remote_service import RemoteServiceClient

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProfileFields:
    """Role-specific data carried from the input row."""

    document_number: str | None = None
    birth_date: date | None = None
    age: int | None = None
    gender: str | None = None
    phone: str | None = None
    address: str | None = None
    license_number: str | None = None
    shift: str | None = None
    department_id: str | None = None
    specialization_id: str | None = None


@dataclass
class ProfileResult:
    """Result of a profile provisioning call."""

    success: bool
    role: NormalizedRole
    user_id: int
    skipped: bool = False
    error_message: str | None = None
    http_status_code: int | None = None

    def raise_for_error(self) -> None:
        """Raise ``ProfileProvisionError`` if the call failed."""
        if not self.success:
            raise ProfileProvisionError(
                self.role.value, self.user_id, self.error_message, self.http_status_code
            )


@dataclass(frozen=True)
class ProfileRoute:
    """Where and how a role's profile is created."""

    service: str
    path: str
    build_payload: Callable[[int, ProfileFields, Settings], dict[str, Any]]


def _patient_payload(user_id: int, f: ProfileFields, settings: Settings) -> dict[str, Any]:
    return {
        "userId": user_id,
        "documentNumber": f.document_number,
        "birthDate": f.birth_date.isoformat() if f.birth_date else None,
        "age": f.age,
        "gender": f.gender,
        "phone": f.phone,
        "address": f.address,
    }


def _doctor_payload(user_id: int, f: ProfileFields, settings: Settings) -> dict[str, Any]:
    return {
        "userId": user_id,
        "licenseNumber": f.license_number,
        "specializationId": f.specialization_id,
        "departmentId": f.department_id,
        "consultationTime": settings.DOCTOR_CONSULTATION_MINUTES,
        "availableFrom": settings.DOCTOR_AVAILABLE_FROM,
        "availableTo": settings.DOCTOR_AVAILABLE_TO,
    }


def _nurse_payload(user_id: int, f: ProfileFields, settings: Settings) -> dict[str, Any]:
    return {
        "userId": user_id,
        "departmentId": f.department_id,
        "shift": f.shift,
    }


PROFILE_ROUTES: dict[NormalizedRole, ProfileRoute | None] = {
    NormalizedRole.PATIENT: ProfileRoute("patients", "/patients/bulk", _patient_payload),
    NormalizedRole.CLINICIAN: ProfileRoute("doctors", "/doctors/bulk", _doctor_payload),
    NormalizedRole.NURSE: ProfileRoute("nurses", "/nurses/bulk", _nurse_payload),
    NormalizedRole.ADMINISTRATOR: None,
}

_unrouted = set(NormalizedRole) - set(PROFILE_ROUTES)
if _unrouted:
    raise RuntimeError(f"No profile route declared for: {sorted(r.value for r in _unrouted)}")


class ProfileProvisioner:
    """Dispatches profile creation to the service that owns the role."""

    def __init__(
        self,
        patients_client: httpx.AsyncClient,
        doctors_client: httpx.AsyncClient,
        nurses_client: httpx.AsyncClient,
        settings: Settings,
    ) -> None:
        self.settings = settings
        self._clients = {
            "patients": RemoteServiceClient(patients_client, "patients"),
            "doctors": RemoteServiceClient(doctors_client, "doctors"),
            "nurses": RemoteServiceClient(nurses_client, "nurses"),
        }

    async def provision_profile(
        self,
        role: NormalizedRole,
        user_id: int,
        fields: ProfileFields,
    ) -> ProfileResult:
        """Create the profile for ``user_id``; a no-op for administrators."""
        route = PROFILE_ROUTES[role]
        if route is None:
            logger.debug("profile_not_required", user_id=user_id, role=role.value)
            return ProfileResult(success=True, role=role, user_id=user_id, skipped=True)

        payload = route.build_payload(user_id, fields, self.settings)
        call = await self._clients[route.service].post_json(route.path, payload)

        if call.success:
            logger.info("profile_provisioned", user_id=user_id, role=role.value)
        else:
            logger.error(
                "profile_provision_failed",
                user_id=user_id,
                role=role.value,
                error=call.error_message,
            )

        return ProfileResult(
            success=call.success,
            role=role,
            user_id=user_id,
            error_message=call.error_message,
            http_status_code=call.http_status_code,
        )
