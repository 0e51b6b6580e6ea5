from __future__ import annotations
"""Hexagonal architecture port interfaces.

Core use cases depend only on these abstractions. Adapters provide concrete
implementations for the shell `git` client, raw-content HTTP downloads and
the local filesystem.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from .entities import Locator


class GitClientPort(ABC):
    """Local git operations used by the resolver."""

    @abstractmethod
    def clone(self, clone_url: str, local_path: Path) -> None:
        """Clone remote repository into local path.

        Raises:
            RuntimeError: when the clone could not be completed.
        """
        raise NotImplementedError

    @abstractmethod
    def version(self) -> str:
        """Return the version banner of the underlying git client."""
        raise NotImplementedError


class RemoteContentPort(ABC):
    """Raw file content provider (one file at one ref)."""

    @abstractmethod
    def fetch(self, locator: Locator, relative_path: str, destination: Path) -> int:
        """Download `relative_path` at `locator.ref` into `destination`.

        Returns:
            Number of bytes written.

        Raises:
            DownloadFailed: on network errors, non-2xx responses or local
                write errors. The destination is left untouched on failure.
        """
        raise NotImplementedError


class FileSystemPort(ABC):
    """Filesystem operations abstracted for testability and portability."""

    @abstractmethod
    def ensure_directory(self, path: Path) -> None:
        """Ensure target directory exists (create recursively if needed)."""
        raise NotImplementedError

    @abstractmethod
    def path_exists(self, path: Path) -> bool:
        """Return whether a path exists."""
        raise NotImplementedError

    @abstractmethod
    def remove_tree(self, path: Path) -> None:
        """Recursively delete a directory tree. Missing paths are ignored."""
        raise NotImplementedError
