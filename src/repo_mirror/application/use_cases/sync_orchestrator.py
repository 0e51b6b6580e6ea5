from __future__ import annotations
"""Application use case composing resolve, apply and recover."""

from dataclasses import dataclass, field
import logging

from repo_mirror.application.locks import RepositoryLocks
from repo_mirror.application.use_cases.mutation_applier import MutationApplier
from repo_mirror.application.use_cases.recovery_coordinator import RecoveryCoordinator
from repo_mirror.application.use_cases.repository_resolver import RepositoryResolver
from repo_mirror.domain.entities import Locator, MutationBatch, ResolveOutcome, SyncResult, SyncStatus
from repo_mirror.domain.errors import CloneFailed


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncOrchestrator:
    """Core orchestration use case.

    Responsibilities:
    - make sure the working copy exists (clone on demand)
    - skip the batch entirely when the copy was freshly cloned
    - apply the batch and fall back to a full re-clone on any failure
    - serialize calls per repository
    """

    resolver: RepositoryResolver
    applier: MutationApplier
    recovery: RecoveryCoordinator
    locks: RepositoryLocks = field(default_factory=RepositoryLocks)

    def ensure_present(self, locator: Locator) -> ResolveOutcome:
        with self.locks.hold(locator):
            return self.resolver.resolve(locator)

    def force_reclone(self, locator: Locator) -> ResolveOutcome:
        """Delete any existing working copy and clone it again."""
        with self.locks.hold(locator):
            LOGGER.info(
                "forced re-clone requested",
                extra={"event": "orchestrator.reclone.start", "repository": locator.full_name},
            )
            try:
                self.recovery.wipe(locator)
            except OSError as error:
                detail = f"Error deleting repo: {error}"
                LOGGER.error(
                    "unable to delete working copy",
                    extra={"event": "orchestrator.reclone.wipe_failed", "repository": locator.full_name, "error": detail},
                )
                return ResolveOutcome(present=False, freshly_cloned=False, detail=detail)
            return self.resolver.resolve(locator)

    def sync_batch(self, locator: Locator, batch: MutationBatch) -> SyncResult:
        """Bring the working copy of `locator` in line with `batch`.

        Args:
            locator: Repository to update.
            batch: Validated mutation batch.

        Returns:
            `SyncResult` with status `applied`, `cloned`, `recovered` or `failed`.
        """
        with self.locks.hold(locator):
            LOGGER.info(
                "batch received",
                extra={"event": "orchestrator.sync.start", "repository": locator.full_name, "steps": len(batch)},
            )
            outcome = self.resolver.resolve(locator)
            if not outcome.present:
                error = CloneFailed(locator.full_name, outcome.detail)
                return SyncResult(locator=locator, status=SyncStatus.FAILED, detail=str(error), error=error)

            if outcome.freshly_cloned:
                LOGGER.info(
                    "repository was cloned, batch skipped",
                    extra={"event": "orchestrator.sync.cloned", "repository": locator.full_name},
                )
                return SyncResult(locator=locator, status=SyncStatus.CLONED, detail=outcome.detail)

            working_copy = self.resolver.working_copy(locator)
            applied = self.applier.apply(working_copy, locator, batch)
            if applied.succeeded:
                return SyncResult(
                    locator=locator,
                    status=SyncStatus.APPLIED,
                    detail=f"Applied {applied.applied_steps} step(s)",
                    warnings=applied.warnings,
                )

            return self.recovery.recover(locator, applied)
