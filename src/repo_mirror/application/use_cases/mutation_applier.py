from __future__ import annotations
"""Apply an ordered mutation batch to an existing working copy."""

import logging
import os
from pathlib import Path

from repo_mirror.domain.entities import (
    ApplyOutcome,
    Locator,
    MutationBatch,
    StepDescriptor,
    StepKind,
)
from repo_mirror.domain.errors import IoFailure, MirrorError, UnsafePathError
from repo_mirror.domain.ports import RemoteContentPort


LOGGER = logging.getLogger(__name__)


class MutationApplier:
    """Execute batch steps in order, stopping at the first failure.

    Already-applied steps are never rolled back; the orchestrator recovers a
    failed batch by recreating the whole working copy instead.
    """

    def __init__(self, remote_content: RemoteContentPort) -> None:
        self._remote_content = remote_content

    def apply(self, working_copy_root: Path, locator: Locator, batch: MutationBatch) -> ApplyOutcome:
        """Apply `batch` under `working_copy_root`.

        Args:
            working_copy_root: Existing working copy directory.
            locator: Repository identity, used by download steps.
            batch: Mutations to apply, in creates/renames/removes/downloads order.

        Returns:
            ApplyOutcome describing success, or the first failed step and its error.
        """
        root = working_copy_root.resolve()
        outcome = ApplyOutcome(succeeded=True)

        for step in batch.steps():
            try:
                warning = self._apply_step(root, locator, batch, step)
            except Exception as error:
                if not isinstance(error, MirrorError):
                    error = IoFailure(
                        step.kind.value, step.path, f"{type(error).__name__}: {error}", target=step.target
                    )
                LOGGER.error(
                    "batch step failed",
                    extra={
                        "event": "applier.step.failed",
                        "repository": locator.full_name,
                        "step": step.describe(),
                        "applied_steps": outcome.applied_steps,
                        "error": str(error),
                    },
                )
                outcome.succeeded = False
                outcome.failed_step = step
                outcome.error = error
                return outcome

            if warning:
                outcome.warnings.append(warning)
            outcome.applied_steps += 1

        LOGGER.info(
            "batch applied",
            extra={
                "event": "applier.completed",
                "repository": locator.full_name,
                "applied_steps": outcome.applied_steps,
                "warnings": len(outcome.warnings),
            },
        )
        return outcome

    def _apply_step(self, root: Path, locator: Locator, batch: MutationBatch, step: StepDescriptor) -> str | None:
        if step.kind is StepKind.CREATE:
            self._create(root, step.path, batch.creates[step.path])
            return None
        if step.kind is StepKind.RENAME:
            self._rename(root, step.path, step.target or "")
            return None
        if step.kind is StepKind.REMOVE:
            return self._remove(root, step.path)
        if step.kind is StepKind.DOWNLOAD:
            self._download(root, locator, step.path)
            return None
        raise ValueError(f"Unsupported step kind: {step.kind}")

    def _create(self, root: Path, relative_path: str, content: str) -> None:
        target = resolve_inside(root, relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise IoFailure("create", relative_path, f"Error creating directories: {error}") from error

        try:
            if target.is_symlink():
                target.unlink()
            target.write_bytes(content.encode("utf-8"))
        except UnicodeEncodeError as error:
            raise IoFailure("create", relative_path, f"Content is not valid UTF-8: {error}") from error
        except OSError as error:
            raise IoFailure("create", relative_path, f"Error writing to file: {error}") from error

        LOGGER.info(
            "file content updated",
            extra={"event": "applier.create", "path": relative_path},
        )

    def _rename(self, root: Path, old_path: str, new_path: str) -> None:
        source = resolve_inside(root, old_path)
        destination = resolve_inside(root, new_path)
        if not os.path.lexists(source):
            raise IoFailure("rename", old_path, "source file does not exist", target=new_path)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            source.replace(destination)
        except OSError as error:
            raise IoFailure("rename", old_path, f"Failed to move file: {error}", target=new_path) from error

        LOGGER.info(
            "file moved",
            extra={"event": "applier.rename", "path": old_path, "target": new_path},
        )

    def _remove(self, root: Path, relative_path: str) -> str | None:
        target = resolve_inside(root, relative_path)
        if not os.path.lexists(target):
            warning = f"File not found: {relative_path}"
            LOGGER.warning(warning, extra={"event": "applier.remove.missing", "path": relative_path})
            return warning

        if target.is_dir() and not target.is_symlink():
            raise IoFailure("remove", relative_path, "path is a directory")

        try:
            target.unlink()
        except OSError as error:
            raise IoFailure("remove", relative_path, f"Error deleting file: {error}") from error

        LOGGER.info("file deleted", extra={"event": "applier.remove", "path": relative_path})
        return prune_empty_parents(target.parent, root)

    def _download(self, root: Path, locator: Locator, relative_path: str) -> None:
        destination = resolve_inside(root, relative_path)
        self._remote_content.fetch(locator, relative_path, destination)


def resolve_inside(root: Path, relative_path: str) -> Path:
    """Map `relative_path` to an absolute path that stays strictly below `root`.

    The parent directory is fully resolved so directory symlinks pointing
    outside the working copy are caught. The final component is not
    followed, which lets callers act on a symlink itself.
    """
    candidate = root.joinpath(*relative_path.split("/"))
    parent = candidate.parent.resolve()
    if parent != root and root not in parent.parents:
        raise UnsafePathError(relative_path)
    return parent / candidate.name


def prune_empty_parents(start: Path, root: Path) -> str | None:
    """Delete empty directories from `start` upward, never touching `root`.

    Returns a warning when a directory could not be removed; the walk stops
    there and the batch carries on.
    """
    current = start
    while current != root and root in current.parents:
        try:
            if any(current.iterdir()):
                break
            current.rmdir()
        except OSError as error:
            warning = f"Error deleting empty directory {current.relative_to(root)}: {error}"
            LOGGER.warning(warning, extra={"event": "applier.prune.failed", "path": str(current)})
            return warning

        LOGGER.info("deleted empty directory", extra={"event": "applier.prune", "path": str(current)})
        current = current.parent
    return None
