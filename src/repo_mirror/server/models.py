from __future__ import annotations
"""Request and response bodies of the HTTP transport."""

from typing import Optional

from pydantic import BaseModel, Field

from repo_mirror.domain.entities import MutationBatch, SyncResult


class BackupPayload(BaseModel):
    """Mutation batch as sent by clients.

    Sample::

        {
            "create": {"src/plain/.keep": "some text"},
            "modify": {"src/plain/main.py": "src/main.py"},
            "remove": ["matrix/executor.py"],
            "download": ["src/sample.png"]
        }

    ``modify`` maps old paths to new paths (move/rename). ``download`` lists
    files whose bytes cannot travel inside JSON and must be fetched from the
    remote host instead.
    """

    create: dict[str, str] = Field(default_factory=dict)
    modify: dict[str, str] = Field(default_factory=dict)
    remove: list[str] = Field(default_factory=list)
    download: list[str] = Field(default_factory=list)

    def to_batch(self) -> MutationBatch:
        """Build the domain batch. Raises `UnsafePathError` on unsafe paths."""
        return MutationBatch(
            creates=self.create,
            renames=self.modify,
            removes=self.remove,
            downloads=self.download,
        )


class SyncResponse(BaseModel):
    status: str
    detail: str = ""
    warnings: list[str] = Field(default_factory=list)
    failed_step: Optional[str] = None
    recovery_error: Optional[str] = None

    @classmethod
    def from_result(cls, result: SyncResult) -> SyncResponse:
        return cls(
            status=result.status.value,
            detail=result.detail,
            warnings=list(result.warnings),
            failed_step=result.failed_step.describe() if result.failed_step else None,
            recovery_error=str(result.recovery_error) if result.recovery_error else None,
        )


class CloneResponse(BaseModel):
    status: str
    detail: str = ""
