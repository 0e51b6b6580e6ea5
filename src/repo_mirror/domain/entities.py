from __future__ import annotations
"""Core domain entities shared by use cases, adapters and the HTTP transport.

These data models are intentionally framework-agnostic: the same values flow
through the CLI, the FastAPI routes and the tests.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath, PureWindowsPath
import re
from typing import Iterator, Mapping, Sequence

from .errors import InvalidLocator, MirrorError, RecoveryFailed, UnsafePathError


_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
_CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")


@dataclass(frozen=True, slots=True)
class Locator:
    """Identity of a remote repository plus an optional ref.

    Attributes:
        organization: Owner of the remote repository (single path segment).
        repository: Repository name (single path segment).
        ref: Branch/tag used for raw-content downloads. Empty means the
            remote default branch.
    """

    organization: str
    repository: str
    ref: str = ""

    def __post_init__(self) -> None:
        _validate_segment("organization", self.organization)
        _validate_segment("repository", self.repository)
        if _CONTROL_CHARACTERS.search(self.ref):
            raise InvalidLocator(f"Invalid ref {self.ref!r}: control characters are not allowed")
        if ".." in self.ref.split("/"):
            raise InvalidLocator(f"Invalid ref {self.ref!r}: '..' segments are not allowed")

    @classmethod
    def parse(cls, value: str | None) -> Locator:
        """Parse the transport encoding ``organization/repository[;ref]``."""
        raw = (value or "").strip()
        if not raw:
            raise InvalidLocator("Repository locator is empty")

        name, _, ref = raw.partition(";")
        parts = name.strip().split("/")
        if len(parts) != 2:
            raise InvalidLocator(f"Repository locator must look like 'organization/repository', got {name!r}")
        return cls(organization=parts[0].strip(), repository=parts[1].strip(), ref=ref.strip())

    @property
    def full_name(self) -> str:
        return f"{self.organization}/{self.repository}"

    def working_copy(self, storage_root: Path) -> Path:
        """Return the working copy directory for this locator under `storage_root`."""
        return storage_root / self.organization / self.repository

    def __str__(self) -> str:
        return f"{self.full_name};{self.ref}" if self.ref else self.full_name


def _validate_segment(name: str, value: str) -> None:
    if not value:
        raise InvalidLocator(f"Repository locator is missing the {name}")
    if value in {".", ".."} or not _SEGMENT_PATTERN.match(value):
        raise InvalidLocator(f"Invalid {name} {value!r} in repository locator")


def normalize_relative_path(raw: str) -> str:
    """Canonicalize a client supplied path relative to the working copy root.

    Drops ``.`` segments and duplicate slashes. Rejects empty and absolute
    paths, NUL bytes and any ``..`` segment with `UnsafePathError`.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise UnsafePathError(str(raw), "path is empty")
    if "\x00" in raw:
        raise UnsafePathError(raw, "path contains a NUL byte")
    if PurePosixPath(raw).is_absolute() or PureWindowsPath(raw).drive:
        raise UnsafePathError(raw, "path must be relative")

    parts = [part for part in raw.split("/") if part not in {"", "."}]
    if ".." in parts:
        raise UnsafePathError(raw, "parent directory segments are not allowed")
    if not parts:
        raise UnsafePathError(raw, "path resolves to the working copy root")
    return "/".join(parts)


class StepKind(str, Enum):
    """Mutation kinds, declared in the order a batch applies them."""

    CREATE = "create"
    RENAME = "rename"
    REMOVE = "remove"
    DOWNLOAD = "download"


@dataclass(frozen=True, slots=True)
class StepDescriptor:
    """One mutation step of a batch. `target` is only set for renames."""

    kind: StepKind
    path: str
    target: str | None = None

    def describe(self) -> str:
        if self.target is not None:
            return f"{self.kind.value} {self.path} -> {self.target}"
        return f"{self.kind.value} {self.path}"


@dataclass(frozen=True, slots=True)
class MutationBatch:
    """Ordered aggregate of create/rename/remove/download operations.

    Steps are always applied as creates, renames, removes, downloads, no
    matter how the caller built the batch. All paths are normalized on
    construction, so an instance never holds a path that escapes its root.
    """

    creates: Mapping[str, str] = field(default_factory=dict)
    renames: Mapping[str, str] = field(default_factory=dict)
    removes: Sequence[str] = ()
    downloads: Sequence[str] = ()

    def __post_init__(self) -> None:
        creates = {normalize_relative_path(path): content for path, content in self.creates.items()}
        renames = {
            normalize_relative_path(old): normalize_relative_path(new) for old, new in self.renames.items()
        }
        object.__setattr__(self, "creates", creates)
        object.__setattr__(self, "renames", renames)
        object.__setattr__(self, "removes", tuple(normalize_relative_path(path) for path in self.removes))
        object.__setattr__(self, "downloads", tuple(normalize_relative_path(path) for path in self.downloads))

    @property
    def is_empty(self) -> bool:
        return not (self.creates or self.renames or self.removes or self.downloads)

    def __len__(self) -> int:
        return len(self.creates) + len(self.renames) + len(self.removes) + len(self.downloads)

    def steps(self) -> Iterator[StepDescriptor]:
        """Yield every step in application order."""
        for path in self.creates:
            yield StepDescriptor(StepKind.CREATE, path)
        for old_path, new_path in self.renames.items():
            yield StepDescriptor(StepKind.RENAME, old_path, new_path)
        for path in self.removes:
            yield StepDescriptor(StepKind.REMOVE, path)
        for path in self.downloads:
            yield StepDescriptor(StepKind.DOWNLOAD, path)


@dataclass(frozen=True, slots=True)
class ResolveOutcome:
    """Result of making sure a working copy exists.

    Attributes:
        present: Working copy exists after the call.
        freshly_cloned: Working copy was created by this call. A batch must
            never be applied on top of a fresh clone.
        detail: Human-readable description (error text on failure).
    """

    present: bool
    freshly_cloned: bool
    detail: str = ""


@dataclass(slots=True)
class ApplyOutcome:
    """Result of applying one batch to an existing working copy."""

    succeeded: bool
    applied_steps: int = 0
    failed_step: StepDescriptor | None = None
    error: MirrorError | None = None
    warnings: list[str] = field(default_factory=list)


class SyncStatus(str, Enum):
    APPLIED = "applied"
    CLONED = "cloned"
    RECOVERED = "recovered"
    FAILED = "failed"


@dataclass(slots=True)
class SyncResult:
    """Final outcome of one `sync_batch` call, consumed by the transport layer.

    Attributes:
        locator: Repository the call targeted.
        status: `applied` (batch applied), `cloned` (fresh clone, batch
            skipped), `recovered` (fallback clone succeeded, batch skipped)
            or `failed`.
        detail: Human-readable summary.
        error: Failure cause. For `failed` and `recovered` results that went
            through recovery it is always the original mutation error.
        failed_step: Step that aborted the batch, if any.
        recovery_error: Set when the wipe-and-reclone fallback itself failed.
        warnings: Non-fatal notes collected while applying the batch.
    """

    locator: Locator
    status: SyncStatus
    detail: str = ""
    error: MirrorError | None = None
    failed_step: StepDescriptor | None = None
    recovery_error: RecoveryFailed | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status is not SyncStatus.FAILED

    @property
    def recovery_attempted(self) -> bool:
        return self.status is SyncStatus.RECOVERED or self.recovery_error is not None
