"""Tests for applying batches to a working copy."""

import os

import pytest

from repo_mirror.application.use_cases.mutation_applier import MutationApplier, prune_empty_parents
from repo_mirror.domain.entities import Locator, MutationBatch, StepKind
from repo_mirror.domain.errors import DownloadFailed, IoFailure, UnsafePathError


@pytest.fixture
def root(tmp_path):
    path = tmp_path / "octo" / "demo"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def applier(remote_content):
    return MutationApplier(remote_content)


LOCATOR = Locator("octo", "demo", "main")


def test_create_writes_nested_file(applier, root):
    outcome = applier.apply(root, LOCATOR, MutationBatch(creates={"src/plain/.keep": "some text"}))

    assert outcome.succeeded
    assert outcome.applied_steps == 1
    assert (root / "src" / "plain" / ".keep").read_bytes() == b"some text"


def test_create_overwrites_existing_file(applier, root):
    (root / "notes.md").write_text("old content that is longer")

    applier.apply(root, LOCATOR, MutationBatch(creates={"notes.md": "new"}))

    assert (root / "notes.md").read_text() == "new"


def test_create_then_remove_in_same_batch(applier, root):
    batch = MutationBatch(removes=["a/b.txt"], creates={"a/b.txt": "short lived"})

    outcome = applier.apply(root, LOCATOR, batch)

    assert outcome.succeeded
    assert outcome.warnings == []
    assert not (root / "a").exists()
    assert root.is_dir()


def test_remove_cascades_up_to_but_not_including_root(applier, root):
    nested = root / "x" / "y" / "z"
    nested.mkdir(parents=True)
    (nested / "file.txt").write_text("only file")

    outcome = applier.apply(root, LOCATOR, MutationBatch(removes=["x/y/z/file.txt"]))

    assert outcome.succeeded
    assert not (root / "x").exists()
    assert root.is_dir()
    assert list(root.iterdir()) == []


def test_remove_cascade_stops_at_non_empty_directory(applier, root):
    (root / "x" / "y").mkdir(parents=True)
    (root / "x" / "keep.txt").write_text("stay")
    (root / "x" / "y" / "file.txt").write_text("go")

    applier.apply(root, LOCATOR, MutationBatch(removes=["x/y/file.txt"]))

    assert not (root / "x" / "y").exists()
    assert (root / "x" / "keep.txt").is_file()


def test_remove_missing_file_is_a_warning(applier, root):
    (root / "present.txt").write_text("bye")

    outcome = applier.apply(root, LOCATOR, MutationBatch(removes=["missing.txt", "present.txt"]))

    assert outcome.succeeded
    assert outcome.applied_steps == 2
    assert outcome.warnings == ["File not found: missing.txt"]
    assert not (root / "present.txt").exists()


def test_remove_directory_fails(applier, root):
    (root / "folder").mkdir()

    outcome = applier.apply(root, LOCATOR, MutationBatch(removes=["folder"]))

    assert not outcome.succeeded
    assert isinstance(outcome.error, IoFailure)
    assert outcome.error.step == "remove"


def test_rename_creates_destination_directories(applier, root):
    (root / "old.txt").write_bytes(b"\x00payload\xff")

    outcome = applier.apply(root, LOCATOR, MutationBatch(renames={"old.txt": "new/old.txt"}))

    assert outcome.succeeded
    assert not (root / "old.txt").exists()
    assert (root / "new" / "old.txt").read_bytes() == b"\x00payload\xff"


def test_rename_missing_source_fails(applier, root):
    outcome = applier.apply(root, LOCATOR, MutationBatch(renames={"ghost.txt": "b.txt"}))

    assert not outcome.succeeded
    assert outcome.failed_step.kind is StepKind.RENAME
    assert isinstance(outcome.error, IoFailure)
    assert outcome.error.path == "ghost.txt"
    assert outcome.error.target == "b.txt"


def test_first_failure_aborts_without_rollback(applier, root):
    (root / "blocker").write_text("a file where a directory is needed")
    (root / "later.txt").write_text("must survive")
    batch = MutationBatch(
        creates={"ok.txt": "applied", "blocker/inner.txt": "cannot be written"},
        removes=["later.txt"],
    )

    outcome = applier.apply(root, LOCATOR, batch)

    assert not outcome.succeeded
    assert outcome.applied_steps == 1
    assert outcome.failed_step.path == "blocker/inner.txt"
    assert isinstance(outcome.error, IoFailure)
    assert (root / "ok.txt").read_text() == "applied"
    assert (root / "later.txt").exists()


def test_download_writes_remote_bytes(applier, root, remote_content):
    outcome = applier.apply(root, LOCATOR, MutationBatch(downloads=["assets/logo.png"]))

    assert outcome.succeeded
    assert (root / "assets" / "logo.png").read_bytes() == b"\x89PNG\r\n\x1a\n"
    assert remote_content.requests == [(LOCATOR, "assets/logo.png")]


def test_download_failure_aborts(applier, root):
    outcome = applier.apply(root, LOCATOR, MutationBatch(downloads=["missing.bin"]))

    assert not outcome.succeeded
    assert outcome.failed_step.kind is StepKind.DOWNLOAD
    assert isinstance(outcome.error, DownloadFailed)
    assert not (root / "missing.bin").exists()


def test_symlinked_directory_cannot_escape_root(applier, root, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    os.symlink(outside, root / "link")

    outcome = applier.apply(root, LOCATOR, MutationBatch(creates={"link/evil.txt": "pwned"}))

    assert not outcome.succeeded
    assert isinstance(outcome.error, UnsafePathError)
    assert not (outside / "evil.txt").exists()


def test_create_replaces_symlink_instead_of_following_it(applier, root, tmp_path):
    outside = tmp_path / "target.txt"
    outside.write_text("untouched")
    os.symlink(outside, root / "link.txt")

    applier.apply(root, LOCATOR, MutationBatch(creates={"link.txt": "regular file now"}))

    assert not (root / "link.txt").is_symlink()
    assert (root / "link.txt").read_text() == "regular file now"
    assert outside.read_text() == "untouched"


def test_prune_empty_parents_never_leaves_root(root):
    assert prune_empty_parents(root, root) is None
    assert root.is_dir()
