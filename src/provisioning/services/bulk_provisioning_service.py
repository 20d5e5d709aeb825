"""
Batch Aggregator.

Feeds rows to the ``RowOrchestrator`` one at a time, in input order, and
folds every terminal ``RowOutcome`` into a ``BatchSummary``.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from ..models.enums import NormalizedRole
from ..schemas.bulk import BulkUserRow
from .row_orchestrator import RowOrchestrator, RowOutcome, RowState

logger = structlog.get_logger(__name__)

ORPHANED_STAGE = "orphaned-identity"

_PROFILE_COUNTERS = {
    NormalizedRole.PATIENT: "patients",
    NormalizedRole.CLINICIAN: "doctors",
    NormalizedRole.NURSE: "nurses",
}


@dataclass(frozen=True)
class BatchError:
    """One entry of the batch error list."""

    email: str | None
    stage: str
    message: str


@dataclass
class BatchSummary:
    """Counters and ordered errors for a whole batch."""

    total: int = 0
    users: int = 0
    auth: int = 0
    patients: int = 0
    doctors: int = 0
    nurses: int = 0
    duplicates: int = 0
    invalid: int = 0
    orphaned: int = 0
    errors: list[BatchError] = field(default_factory=list)
    outcomes: list[RowOutcome] = field(default_factory=list)

    def record(self, outcome: RowOutcome) -> None:
        """Fold one terminal outcome into the summary."""
        if not outcome.is_terminal:
            raise ValueError(f"Cannot record non-terminal row state {outcome.state.value}")

        self.total += 1
        self.outcomes.append(outcome)

        if outcome.credential_committed:
            self.users += 1
            self.auth += 1

        if outcome.profile_created:
            counter = _PROFILE_COUNTERS[outcome.role]
            setattr(self, counter, getattr(self, counter) + 1)

        skip = outcome.skip_reason
        if skip is not None:
            if outcome.state is RowState.SKIPPED_DUPLICATE:
                self.duplicates += 1
            else:
                self.invalid += 1
            self.errors.append(BatchError(outcome.email, skip.value, outcome.reason or ""))
            return

        if outcome.stage is not None:
            self.errors.append(BatchError(outcome.email, outcome.stage.value, outcome.reason or ""))

        if outcome.orphaned:
            self.orphaned += 1
            self.errors.append(
                BatchError(
                    outcome.email,
                    ORPHANED_STAGE,
                    f"User {outcome.user_id} exists without a credential: {outcome.rollback_error}",
                )
            )

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.stage is not None)


class BulkProvisioningService:
    """Runs a batch of rows through the orchestrator, sequentially."""

    def __init__(self, orchestrator: RowOrchestrator) -> None:
        self.orchestrator = orchestrator

    async def run(self, rows: Iterable[BulkUserRow], *, source: str | None = None) -> BatchSummary:
        """Process every row and return the summary once all are terminal."""
        batch_id = uuid.uuid4().hex[:12]
        summary = BatchSummary()

        with structlog.contextvars.bound_contextvars(batch_id=batch_id):
            logger.info("bulk_provisioning_started", source=source)

            for row_number, row in enumerate(rows, start=1):
                with structlog.contextvars.bound_contextvars(row_number=row_number):
                    outcome = await self.orchestrator.process(row)
                summary.record(outcome)

            logger.info(
                "bulk_provisioning_finished",
                total=summary.total,
                users=summary.users,
                duplicates=summary.duplicates,
                invalid=summary.invalid,
                failed=summary.failed,
                orphaned=summary.orphaned,
            )

        return summary
