from __future__ import annotations
"""Resolve a locator to a local working copy, cloning on demand."""

from dataclasses import dataclass
import logging
from pathlib import Path

from repo_mirror.domain.entities import Locator, ResolveOutcome
from repo_mirror.domain.ports import FileSystemPort, GitClientPort


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RepositoryResolver:
    """Guarantee a working copy exists under `storage_root`.

    Existence of ``storage_root/organization/repository`` is the only check;
    the contents are never validated. A missing working copy is cloned from
    ``<git_base_url>/<organization>/<repository>.git`` at its default ref.
    """

    git_client: GitClientPort
    filesystem: FileSystemPort
    storage_root: Path
    git_base_url: str = "https://github.com"

    def working_copy(self, locator: Locator) -> Path:
        return locator.working_copy(self.storage_root)

    def clone_url(self, locator: Locator) -> str:
        return f"{self.git_base_url.rstrip('/')}/{locator.organization}/{locator.repository}.git"

    def resolve(self, locator: Locator) -> ResolveOutcome:
        destination = self.working_copy(locator)
        if self.filesystem.path_exists(destination):
            LOGGER.info(
                "working copy exists",
                extra={"event": "resolver.exists", "repository": locator.full_name, "local_path": str(destination)},
            )
            return ResolveOutcome(present=True, freshly_cloned=False, detail=f"{destination} exists")

        organization_dir = destination.parent
        LOGGER.info(
            "creating organization directory",
            extra={"event": "resolver.directory.ensure", "local_path": str(organization_dir)},
        )
        try:
            self.filesystem.ensure_directory(organization_dir)
        except OSError as error:
            detail = f"Error creating directory: {error}"
            LOGGER.error(
                "unable to create organization directory",
                extra={"event": "resolver.directory.failed", "local_path": str(organization_dir), "error": detail},
            )
            return ResolveOutcome(present=False, freshly_cloned=False, detail=detail)

        try:
            self.git_client.clone(self.clone_url(locator), destination)
        except RuntimeError as error:
            detail = f"Failed to clone repo {locator.full_name}: {error}"
            LOGGER.error(
                "repository clone failed",
                extra={"event": "resolver.clone.failed", "repository": locator.full_name, "error": str(error)},
            )
            return ResolveOutcome(present=False, freshly_cloned=False, detail=detail)

        LOGGER.info(
            "repository cloned",
            extra={"event": "resolver.clone.success", "repository": locator.full_name, "local_path": str(destination)},
        )
        return ResolveOutcome(present=True, freshly_cloned=True, detail=f"Cloned {locator.full_name} into {destination}")
