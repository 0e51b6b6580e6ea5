from __future__ import annotations
"""Wipe-and-reclone fallback for batches that failed partway through."""

from dataclasses import dataclass
import logging

from repo_mirror.application.use_cases.repository_resolver import RepositoryResolver
from repo_mirror.domain.entities import ApplyOutcome, Locator, SyncResult, SyncStatus
from repo_mirror.domain.errors import RecoveryFailed
from repo_mirror.domain.ports import FileSystemPort


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RecoveryCoordinator:
    """Treat the local mirror as a disposable cache of the remote.

    Any inconsistency is resolved by deleting the working copy and cloning it
    again; the failed batch is never re-applied.
    """

    resolver: RepositoryResolver
    filesystem: FileSystemPort

    def wipe(self, locator: Locator) -> None:
        """Recursively delete the working copy. Raises `OSError` on failure."""
        destination = self.resolver.working_copy(locator)
        self.filesystem.remove_tree(destination)
        LOGGER.info(
            "deleted working copy",
            extra={"event": "recovery.wipe.success", "repository": locator.full_name, "local_path": str(destination)},
        )

    def recover(self, locator: Locator, failure: ApplyOutcome) -> SyncResult:
        """Recreate the working copy after `failure`.

        Returns a `recovered` result when the fresh clone succeeded. Otherwise
        the original mutation error stays the primary cause and the fallback
        problem is attached as `recovery_error`.
        """
        LOGGER.warning(
            "batch failed; recreating working copy",
            extra={
                "event": "recovery.start",
                "repository": locator.full_name,
                "failed_step": failure.failed_step.describe() if failure.failed_step else None,
                "error": str(failure.error),
            },
        )

        try:
            self.wipe(locator)
        except OSError as error:
            LOGGER.critical(
                "recovery abandoned: working copy left partially mutated",
                extra={"event": "recovery.wipe.failed", "repository": locator.full_name, "error": str(error)},
            )
            return self._failed(locator, failure, RecoveryFailed(locator.full_name, "wipe", str(error)))

        outcome = self.resolver.resolve(locator)
        if outcome.present and outcome.freshly_cloned:
            LOGGER.info(
                "working copy recovered from remote",
                extra={"event": "recovery.success", "repository": locator.full_name},
            )
            return SyncResult(
                locator=locator,
                status=SyncStatus.RECOVERED,
                detail=f"Batch failed ({failure.error}); working copy re-cloned from remote",
                error=failure.error,
                failed_step=failure.failed_step,
                warnings=list(failure.warnings),
            )

        LOGGER.error(
            "recovery clone failed",
            extra={"event": "recovery.reclone.failed", "repository": locator.full_name, "error": outcome.detail},
        )
        return self._failed(locator, failure, RecoveryFailed(locator.full_name, "reclone", outcome.detail))

    @staticmethod
    def _failed(locator: Locator, failure: ApplyOutcome, recovery_error: RecoveryFailed) -> SyncResult:
        return SyncResult(
            locator=locator,
            status=SyncStatus.FAILED,
            detail=str(failure.error),
            error=failure.error,
            failed_step=failure.failed_step,
            recovery_error=recovery_error,
            warnings=list(failure.warnings),
        )
