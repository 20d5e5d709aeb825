"""
Row Orchestrator.

Provisions one bulk row across the identity store and the remote
services, in a fixed order:

    RECEIVED -> DEDUPLICATED -> DEPARTMENT_RESOLVED? -> SPECIALIZATION_RESOLVED?
             -> IDENTITY_CREATED -> CREDENTIAL_PROVISIONED
             -> PROFILE_PROVISIONED -> COMPLETED

Failure policy per step:

    dependency resolution   non-fatal (row continues without the reference),
                            or fatal before any write under the "abort" policy
    identity creation       fatal, nothing to undo
    credential provisioning fatal, the identity record is deleted again
    profile provisioning    fatal for the profile only, identity and
                            credential stay committed

No step is retried. Every path ends in a terminal ``RowOutcome``; no
exception other than task cancellation escapes ``process``.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from functools import partial

import structlog

from ..core.config import Settings
from ..core.exceptions import AppException
from ..core.roles import normalize_role
from ..core.security import generate_temporary_password, hash_password
from ..models.enums import NormalizedRole, UserStatus
from ..models.user import User
from ..repositories.user_repository import IdentityStore, NewUser
from ..schemas.bulk import BulkUserRow
from .credential_service import CredentialProvisioner, CredentialResult
from .profile_service import ProfileFields, ProfileProvisioner, ProfileResult
from .resource_resolver import RemoteResourceResolver

logger = structlog.get_logger(__name__)


class RowState(str, Enum):
    """States a row passes through; the last seven are terminal."""

    RECEIVED = "received"
    DEDUPLICATED = "deduplicated"
    DEPARTMENT_RESOLVED = "department-resolved"
    SPECIALIZATION_RESOLVED = "specialization-resolved"
    IDENTITY_CREATED = "identity-created"
    CREDENTIAL_PROVISIONED = "credential-provisioned"
    PROFILE_PROVISIONED = "profile-provisioned"
    COMPLETED = "completed"
    SKIPPED_INVALID = "skipped-invalid"
    SKIPPED_DUPLICATE = "skipped-duplicate"
    FAILED_DEPENDENCY = "failed-dependency"
    FAILED_IDENTITY_CREATION = "failed-identity-creation"
    FAILED_CREDENTIAL = "failed-credential"
    FAILED_PROFILE = "failed-profile"


TERMINAL_STATES = frozenset({
    RowState.COMPLETED,
    RowState.SKIPPED_INVALID,
    RowState.SKIPPED_DUPLICATE,
    RowState.FAILED_DEPENDENCY,
    RowState.FAILED_IDENTITY_CREATION,
    RowState.FAILED_CREDENTIAL,
    RowState.FAILED_PROFILE,
})


class RowStage(str, Enum):
    """Step at which a row failed."""

    DEPENDENCY_RESOLUTION = "dependency-resolution"
    IDENTITY_CREATION = "identity-creation"
    CREDENTIAL_PROVISIONING = "credential-provisioning"
    PROFILE_PROVISIONING = "profile-provisioning"


class SkipReason(str, Enum):
    DUPLICATE = "duplicate"
    INVALID = "invalid"


@dataclass
class RowOutcome:
    """Everything the batch needs to know about one processed row."""

    email: str | None
    state: RowState = RowState.RECEIVED
    role: NormalizedRole | None = None
    stage: RowStage | None = None
    reason: str | None = None
    user_id: int | None = None
    rolled_back: bool | None = None
    rollback_error: str | None = None
    department_id: str | None = None
    specialization_id: str | None = None
    warnings: list[str] = field(default_factory=list)
    history: list[RowState] = field(default_factory=lambda: [RowState.RECEIVED])

    def advance(self, state: RowState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Row already finished in state {self.state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, state: RowState, stage: RowStage, reason: str) -> None:
        self.advance(state)
        self.stage = stage
        self.reason = reason

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def skip_reason(self) -> SkipReason | None:
        if self.state is RowState.SKIPPED_DUPLICATE:
            return SkipReason.DUPLICATE
        if self.state is RowState.SKIPPED_INVALID:
            return SkipReason.INVALID
        return None

    @property
    def credential_committed(self) -> bool:
        """Identity and credential both exist after this row."""
        return self.state in (RowState.COMPLETED, RowState.FAILED_PROFILE)

    @property
    def identity_committed(self) -> bool:
        return self.credential_committed or self.orphaned

    @property
    def profile_created(self) -> bool:
        return (
            self.state is RowState.COMPLETED
            and self.role is not None
            and self.role.has_profile
        )

    @property
    def orphaned(self) -> bool:
        """Identity record left behind after a failed rollback."""
        return self.state is RowState.FAILED_CREDENTIAL and self.rolled_back is False


class RowOrchestrator:
    """Runs the provisioning saga for a single row.

    All collaborators are passed in explicitly so each can be replaced
    independently in tests.
    """

    def __init__(
        self,
        store: IdentityStore,
        resolver: RemoteResourceResolver,
        credentials: CredentialProvisioner,
        profiles: ProfileProvisioner,
        *,
        settings: Settings,
        password_hasher: Callable[[str], str] | None = None,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.credentials = credentials
        self.profiles = profiles
        self.settings = settings
        self.password_hasher = password_hasher or partial(
            hash_password, rounds=settings.BCRYPT_ROUNDS
        )

    @property
    def abort_on_dependency_failure(self) -> bool:
        return self.settings.BULK_DEPENDENCY_FAILURE_POLICY == "abort"

    async def process(self, row: BulkUserRow) -> RowOutcome:
        """Drive ``row`` to a terminal state and return its outcome."""
        outcome = RowOutcome(email=row.normalized_email)

        missing = [name for name in ("email", "fullname") if not getattr(row, name)]
        if missing:
            outcome.advance(RowState.SKIPPED_INVALID)
            outcome.reason = f"Missing required field(s): {', '.join(missing)}"
            logger.warning("row_skipped_invalid", email=outcome.email, missing=missing)
            return outcome

        try:
            duplicate = await self.store.exists(row.email)
        except Exception as exc:
            logger.exception("row_duplicate_check_failed", email=outcome.email)
            outcome.fail(
                RowState.FAILED_IDENTITY_CREATION,
                RowStage.IDENTITY_CREATION,
                f"Duplicate check failed: {exc}",
            )
            return outcome

        if duplicate:
            outcome.advance(RowState.SKIPPED_DUPLICATE)
            outcome.reason = "Email already registered"
            logger.info("row_skipped_duplicate", email=outcome.email)
            return outcome
        outcome.advance(RowState.DEDUPLICATED)

        outcome.role = normalize_role(row.role)

        if not await self._resolve_dependencies(row, outcome):
            return outcome

        secret = row.password or self.settings.BULK_DEFAULT_PASSWORD or generate_temporary_password()
        user = await self._create_identity(row, outcome, secret)
        if user is None:
            return outcome

        if not await self._provision_credential(user, outcome, secret):
            return outcome

        await self._provision_profile(row, user, outcome)
        return outcome

    # =========================================================================
    # STEPS
    # =========================================================================

    async def _resolve_dependencies(self, row: BulkUserRow, outcome: RowOutcome) -> bool:
        """Resolve department, then specialization. False if the row must stop."""
        if not row.department:
            if row.specialization:
                outcome.warnings.append(
                    f"Specialization '{row.specialization}' ignored: no department given"
                )
            return True

        department = await self.resolver.resolve_department(row.department)
        if not department.success:
            return self._dependency_failed(outcome, f"Department '{row.department}' unresolved: {department.error_message}")
        outcome.department_id = department.reference_id
        outcome.advance(RowState.DEPARTMENT_RESOLVED)

        if not row.specialization:
            return True

        specialization = await self.resolver.resolve_specialization(
            row.specialization, department.reference_id
        )
        if not specialization.success:
            return self._dependency_failed(
                outcome,
                f"Specialization '{row.specialization}' unresolved: {specialization.error_message}",
            )
        outcome.specialization_id = specialization.reference_id
        outcome.advance(RowState.SPECIALIZATION_RESOLVED)
        return True

    def _dependency_failed(self, outcome: RowOutcome, message: str) -> bool:
        if self.abort_on_dependency_failure:
            outcome.fail(RowState.FAILED_DEPENDENCY, RowStage.DEPENDENCY_RESOLUTION, message)
            logger.warning("row_failed_dependency", email=outcome.email, reason=message)
            return False
        outcome.warnings.append(message)
        logger.info("row_dependency_unresolved", email=outcome.email, reason=message)
        return True

    async def _create_identity(
        self,
        row: BulkUserRow,
        outcome: RowOutcome,
        secret: str,
    ) -> User | None:
        try:
            digest = await asyncio.to_thread(self.password_hasher, secret)
            user = await self.store.create(
                NewUser(
                    email=row.email,
                    fullname=row.fullname,
                    role=outcome.role,
                    credential_digest=digest,
                    status=UserStatus.parse(row.status),
                    department_id=outcome.department_id,
                    specialization_id=outcome.specialization_id,
                    license_number=row.license_number,
                    phone=row.phone,
                    date_of_birth=row.birth_date,
                )
            )
        except AppException as exc:
            outcome.fail(RowState.FAILED_IDENTITY_CREATION, RowStage.IDENTITY_CREATION, exc.message)
            logger.warning("row_identity_rejected", email=outcome.email, error_code=exc.error_code)
            return None
        except Exception as exc:
            outcome.fail(
                RowState.FAILED_IDENTITY_CREATION,
                RowStage.IDENTITY_CREATION,
                f"Could not save user ({type(exc).__name__}): {str(exc)[:200]}",
            )
            logger.exception("row_identity_failed", email=outcome.email)
            return None

        outcome.user_id = user.id
        outcome.advance(RowState.IDENTITY_CREATED)
        return user

    async def _provision_credential(self, user: User, outcome: RowOutcome, secret: str) -> bool:
        try:
            result = await self.credentials.provision(user.id, user.email, secret, outcome.role)
        except asyncio.CancelledError:
            outcome.fail(
                RowState.FAILED_CREDENTIAL,
                RowStage.CREDENTIAL_PROVISIONING,
                "Cancelled while provisioning credential",
            )
            await self._compensate(user.id, outcome)
            raise
        except Exception as exc:
            logger.exception("credential_provision_crashed", user_id=user.id)
            result = CredentialResult(
                success=False, user_id=user.id, email=user.email, error_message=str(exc)
            )

        if result.success:
            outcome.advance(RowState.CREDENTIAL_PROVISIONED)
            return True

        outcome.fail(
            RowState.FAILED_CREDENTIAL,
            RowStage.CREDENTIAL_PROVISIONING,
            result.error_message or "Credential provisioning failed",
        )
        await self._compensate(user.id, outcome)
        return False

    async def _compensate(self, user_id: int, outcome: RowOutcome) -> None:
        """Delete the identity record created for a row whose credential failed.

        Best effort: a failed delete is recorded on the outcome, never raised.
        """
        try:
            deleted = await self.store.delete(user_id)
            error = None if deleted else "Identity record not found during rollback"
        except Exception as exc:
            deleted = False
            error = f"{type(exc).__name__}: {exc}"

        outcome.rolled_back = deleted
        if deleted:
            logger.info("credential_rollback_succeeded", user_id=user_id, email=outcome.email)
            return

        outcome.rollback_error = error
        logger.critical(
            "credential_rollback_failed",
            user_id=user_id,
            email=outcome.email,
            error=error,
        )

    async def _provision_profile(self, row: BulkUserRow, user: User, outcome: RowOutcome) -> None:
        if not outcome.role.has_profile:
            outcome.advance(RowState.COMPLETED)
            logger.info("row_completed", user_id=user.id, role=outcome.role.value)
            return

        fields = ProfileFields(
            document_number=row.document_number,
            birth_date=row.birth_date,
            age=row.age(),
            gender=row.gender,
            phone=row.phone,
            address=row.address,
            license_number=row.license_number,
            shift=row.shift,
            department_id=outcome.department_id,
            specialization_id=outcome.specialization_id,
        )
        try:
            result = await self.profiles.provision_profile(outcome.role, user.id, fields)
        except Exception as exc:
            logger.exception("profile_provision_crashed", user_id=user.id)
            result = ProfileResult(
                success=False, role=outcome.role, user_id=user.id, error_message=str(exc)
            )

        if not result.success:
            outcome.fail(
                RowState.FAILED_PROFILE,
                RowStage.PROFILE_PROVISIONING,
                result.error_message or "Profile provisioning failed",
            )
            logger.warning("row_failed_profile", user_id=user.id, role=outcome.role.value)
            return

        outcome.advance(RowState.PROFILE_PROVISIONED)
        outcome.advance(RowState.COMPLETED)
        logger.info("row_completed", user_id=user.id, role=outcome.role.value)
