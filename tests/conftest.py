"""Shared fixtures and fakes for repo-mirror tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from repo_mirror.adapters.filesystem.local_filesystem import LocalFileSystemAdapter
from repo_mirror.application.use_cases.mutation_applier import MutationApplier
from repo_mirror.application.use_cases.recovery_coordinator import RecoveryCoordinator
from repo_mirror.application.use_cases.repository_resolver import RepositoryResolver
from repo_mirror.application.use_cases.sync_orchestrator import SyncOrchestrator
from repo_mirror.domain.entities import Locator
from repo_mirror.domain.errors import DownloadFailed
from repo_mirror.domain.ports import GitClientPort, RemoteContentPort


class FakeGitClient(GitClientPort):
    """Simulates `git clone` by writing a fixed tree into the destination."""

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = files if files is not None else {"README.md": "remote readme\n", "src/app.py": "print('hi')\n"}
        self.fail = False
        self.clones: list[tuple[str, Path]] = []

    def clone(self, clone_url: str, local_path: Path) -> None:
        self.clones.append((clone_url, local_path))
        if self.fail:
            raise RuntimeError(f"Git command failed (128): git clone {clone_url}\nrepository not found")
        (local_path / ".git").mkdir(parents=True)
        for relative_path, content in self.files.items():
            target = local_path / relative_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)

    def version(self) -> str:
        return "git version 2.43.0"


class FakeRemoteContent(RemoteContentPort):
    """Serves raw content from an in-memory mapping; unknown paths are HTTP 404."""

    def __init__(self, contents: dict[str, bytes] | None = None) -> None:
        self.contents = contents or {}
        self.requests: list[tuple[Locator, str]] = []

    def fetch(self, locator: Locator, relative_path: str, destination: Path) -> int:
        self.requests.append((locator, relative_path))
        if relative_path not in self.contents:
            raise DownloadFailed(relative_path, "HTTP 404 for URL: https://raw.example/" + relative_path)
        data = self.contents[relative_path]
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(data)
        return len(data)


class UndeletableFileSystem(LocalFileSystemAdapter):
    def remove_tree(self, path: Path) -> None:
        raise PermissionError(13, "Permission denied", str(path))


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def locator():
    return Locator(organization="octo", repository="demo", ref="main")


@pytest.fixture
def git_client():
    return FakeGitClient()


@pytest.fixture
def remote_content():
    return FakeRemoteContent({"assets/logo.png": b"\x89PNG\r\n\x1a\n"})


@pytest.fixture
def make_orchestrator(storage_root, git_client, remote_content):
    """Factory wiring an orchestrator around the fakes; any part can be swapped."""

    def _make(*, filesystem=None, git=None, content=None) -> SyncOrchestrator:
        filesystem = filesystem or LocalFileSystemAdapter()
        resolver = RepositoryResolver(
            git_client=git or git_client,
            filesystem=filesystem,
            storage_root=storage_root,
        )
        return SyncOrchestrator(
            resolver=resolver,
            applier=MutationApplier(content or remote_content),
            recovery=RecoveryCoordinator(resolver=resolver, filesystem=filesystem),
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator()


@pytest.fixture
def working_copy(orchestrator, locator, storage_root):
    """A working copy that already exists before the test runs."""
    outcome = orchestrator.ensure_present(locator)
    assert outcome.freshly_cloned
    return locator.working_copy(storage_root)


@pytest.fixture
def undeletable_filesystem():
    return UndeletableFileSystem()
