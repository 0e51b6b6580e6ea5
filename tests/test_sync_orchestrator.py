"""End-to-end behavior of `sync_batch`, `force_reclone` and `ensure_present`."""

from pathlib import Path

from conftest import FakeRemoteContent

from repo_mirror.application.use_cases.mutation_applier import MutationApplier
from repo_mirror.domain.entities import Locator, MutationBatch, StepKind, SyncStatus
from repo_mirror.domain.errors import CloneFailed, DownloadFailed


def test_fresh_clone_skips_batch(orchestrator, locator, storage_root, git_client):
    batch = MutationBatch(
        creates={"new.txt": "should not be written"},
        removes=["README.md"],
    )

    result = orchestrator.sync_batch(locator, batch)

    working_copy = locator.working_copy(storage_root)
    assert result.status is SyncStatus.CLONED
    assert result.succeeded
    assert not (working_copy / "new.txt").exists()
    assert (working_copy / "README.md").is_file()
    assert len(git_client.clones) == 1


def test_existing_copy_gets_batch_applied(orchestrator, working_copy, locator):
    batch = MutationBatch(
        creates={"docs/guide.md": "# Guide"},
        renames={"src/app.py": "src/main.py"},
        removes=["README.md", "never-existed.txt"],
        downloads=["assets/logo.png"],
    )

    result = orchestrator.sync_batch(locator, batch)

    assert result.status is SyncStatus.APPLIED
    assert result.warnings == ["File not found: never-existed.txt"]
    assert (working_copy / "docs" / "guide.md").read_text() == "# Guide"
    assert (working_copy / "src" / "main.py").is_file()
    assert not (working_copy / "src" / "app.py").exists()
    assert not (working_copy / "README.md").exists()
    assert (working_copy / "assets" / "logo.png").is_file()


def test_clone_failure_is_terminal(orchestrator, locator, git_client):
    git_client.fail = True

    result = orchestrator.sync_batch(locator, MutationBatch(creates={"a.txt": "a"}))

    assert result.status is SyncStatus.FAILED
    assert isinstance(result.error, CloneFailed)
    assert not result.recovery_attempted


def test_failed_batch_recovers_then_next_sync_applies(orchestrator, working_copy, locator, git_client):
    (working_copy / "blocker").write_text("file where a directory is expected")

    result = orchestrator.sync_batch(locator, MutationBatch(creates={"blocker/x.txt": "x"}))

    assert result.status is SyncStatus.RECOVERED
    assert result.failed_step.path == "blocker/x.txt"
    assert not (working_copy / "blocker").exists()
    assert (working_copy / "README.md").is_file()
    assert len(git_client.clones) == 2

    follow_up = orchestrator.sync_batch(locator, MutationBatch())

    assert follow_up.status is SyncStatus.APPLIED
    assert len(git_client.clones) == 2


def test_download_failure_triggers_recovery_without_partial_file(orchestrator, working_copy, locator):
    result = orchestrator.sync_batch(
        locator,
        MutationBatch(creates={"fresh.txt": "applied before failure"}, downloads=["missing.bin"]),
    )

    assert result.status is SyncStatus.RECOVERED
    assert isinstance(result.error, DownloadFailed)
    assert result.failed_step.kind is StepKind.DOWNLOAD
    assert not (working_copy / "missing.bin").exists()
    assert not (working_copy / "fresh.txt").exists()


def test_unencodable_content_triggers_recovery(orchestrator, working_copy, locator, git_client):
    result = orchestrator.sync_batch(locator, MutationBatch(creates={"a.txt": "first", "b.txt": "bad \ud800"}))

    assert result.status is SyncStatus.RECOVERED
    assert result.error.step == "create"
    assert result.failed_step.path == "b.txt"
    assert not (working_copy / "a.txt").exists()
    assert not (working_copy / "b.txt").exists()
    assert len(git_client.clones) == 2


class BrokenRemoteContent(FakeRemoteContent):
    def fetch(self, locator, relative_path, destination):
        raise ValueError("unexpected response")


def test_unexpected_step_error_triggers_recovery(make_orchestrator, locator, storage_root, git_client):
    orchestrator = make_orchestrator(content=BrokenRemoteContent())
    orchestrator.ensure_present(locator)
    working_copy = locator.working_copy(storage_root)

    result = orchestrator.sync_batch(
        locator, MutationBatch(creates={"fresh.txt": "x"}, downloads=["assets/logo.png"])
    )

    assert result.status is SyncStatus.RECOVERED
    assert result.failed_step.kind is StepKind.DOWNLOAD
    assert "ValueError: unexpected response" in str(result.error)
    assert not (working_copy / "fresh.txt").exists()
    assert len(git_client.clones) == 2


def test_unrecoverable_failure_is_reported(make_orchestrator, working_copy, locator, undeletable_filesystem):
    orchestrator = make_orchestrator(filesystem=undeletable_filesystem)

    result = orchestrator.sync_batch(locator, MutationBatch(renames={"ghost.txt": "b.txt"}))

    assert result.status is SyncStatus.FAILED
    assert result.error.step == "rename"
    assert result.recovery_error.stage == "wipe"


def test_force_reclone_replaces_existing_copy(orchestrator, working_copy, locator, git_client):
    (working_copy / "local-only.txt").write_text("stale")

    outcome = orchestrator.force_reclone(locator)

    assert outcome.present
    assert outcome.freshly_cloned
    assert not (working_copy / "local-only.txt").exists()
    assert len(git_client.clones) == 2


def test_force_reclone_without_existing_copy_clones(orchestrator, locator, git_client):
    outcome = orchestrator.force_reclone(locator)

    assert outcome.freshly_cloned
    assert len(git_client.clones) == 1


def test_force_reclone_reports_wipe_failure(make_orchestrator, working_copy, locator, undeletable_filesystem):
    outcome = make_orchestrator(filesystem=undeletable_filesystem).force_reclone(locator)

    assert not outcome.present
    assert outcome.detail.startswith("Error deleting repo")


def test_ensure_present_passes_through(orchestrator, working_copy, locator):
    outcome = orchestrator.ensure_present(locator)

    assert outcome.present
    assert not outcome.freshly_cloned


class LockCheckingRemoteContent(FakeRemoteContent):
    def __init__(self, locks, locator):
        super().__init__({"data.bin": b"1"})
        self.locks = locks
        self.locator = locator
        self.held_during_fetch: list[bool] = []

    def fetch(self, locator: Locator, relative_path: str, destination: Path) -> int:
        self.held_during_fetch.append(self.locks.is_held(self.locator))
        return super().fetch(locator, relative_path, destination)


def test_sync_batch_holds_repository_lock(make_orchestrator, locator):
    orchestrator = make_orchestrator()
    content = LockCheckingRemoteContent(orchestrator.locks, locator)
    orchestrator.applier = MutationApplier(content)
    orchestrator.ensure_present(locator)

    orchestrator.sync_batch(locator, MutationBatch(downloads=["data.bin"]))

    assert content.held_during_fetch == [True]
    assert not orchestrator.locks.is_held(locator)
