from __future__ import annotations
"""Error taxonomy for repository mirroring.

Use cases never let these escape to the transport layer as unhandled faults;
they are carried inside `ApplyOutcome` / `SyncResult` values instead.
"""


class MirrorError(Exception):
    """Base class for every error raised by the synchronization core."""


class InvalidLocator(MirrorError):
    """Repository identity (or a path derived from it) is empty or malformed."""


class UnsafePathError(InvalidLocator):
    """A batch path escapes the working copy root."""

    def __init__(self, path: str, reason: str = "path escapes the working copy") -> None:
        super().__init__(f"Unsafe path {path!r}: {reason}")
        self.path = path
        self.reason = reason


class CloneFailed(MirrorError):
    """The local working copy could not be created."""

    def __init__(self, repository: str, detail: str) -> None:
        super().__init__(f"Unable to locate or clone repository '{repository}': {detail}")
        self.repository = repository
        self.detail = detail


class IoFailure(MirrorError):
    """A create/rename/remove step failed at the filesystem boundary."""

    def __init__(self, step: str, path: str, detail: str, *, target: str | None = None) -> None:
        location = f"[{path}] -> [{target}]" if target is not None else f"[{path}]"
        super().__init__(f"{step} failed for {location}: {detail}")
        self.step = step
        self.path = path
        self.target = target
        self.detail = detail


class DownloadFailed(MirrorError):
    """Fetching remote raw content failed (network, HTTP status or local write)."""

    def __init__(self, path: str, cause: str) -> None:
        super().__init__(f"Error downloading file '{path}': {cause}")
        self.path = path
        self.cause = cause


class RecoveryFailed(MirrorError):
    """The wipe-and-reclone fallback could not complete.

    `stage` is either ``"wipe"`` (the working copy is left partially mutated)
    or ``"reclone"`` (the working copy is gone and could not be cloned again).
    """

    def __init__(self, repository: str, stage: str, detail: str) -> None:
        super().__init__(f"Recovery of '{repository}' failed during {stage}: {detail}")
        self.repository = repository
        self.stage = stage
        self.detail = detail
