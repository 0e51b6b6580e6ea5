from __future__ import annotations
"""Repository routes -- batch backup and forced re-clone."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from repo_mirror.application.use_cases.sync_orchestrator import SyncOrchestrator
from repo_mirror.domain.entities import Locator
from repo_mirror.domain.errors import CloneFailed, InvalidLocator
from repo_mirror.server.auth import require_locator, verify_token
from repo_mirror.server.models import BackupPayload, CloneResponse, SyncResponse


LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["repositories"], dependencies=[Depends(verify_token)])


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


@router.post("/backup", response_model=SyncResponse)
def backup(
    payload: BackupPayload,
    locator: Locator = Depends(require_locator),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Apply a mutation batch to the working copy of the addressed repository.

    Returns ``200`` when the batch was applied, or when it was skipped because
    the repository was (re-)cloned from the remote. A failure that could not
    be recovered returns ``417`` with the original error.
    """
    try:
        batch = payload.to_batch()
    except InvalidLocator as error:
        LOGGER.warning("rejected unsafe batch", extra={"event": "server.backup.invalid", "error": str(error)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error)) from error

    result = orchestrator.sync_batch(locator, batch)
    if result.succeeded:
        return SyncResponse.from_result(result)

    if isinstance(result.error, CloneFailed):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="unable to locate or clone repository in data source",
        )

    return JSONResponse(
        status_code=status.HTTP_417_EXPECTATION_FAILED,
        content=SyncResponse.from_result(result).model_dump(),
    )


@router.get("/clone", response_model=CloneResponse)
def clone(
    locator: Locator = Depends(require_locator),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Delete the working copy (if any) and clone the repository again."""
    outcome = orchestrator.force_reclone(locator)
    if outcome.present and outcome.freshly_cloned:
        return CloneResponse(status="cloned", detail=outcome.detail)

    return JSONResponse(
        status_code=status.HTTP_417_EXPECTATION_FAILED,
        content=CloneResponse(status="failed", detail=outcome.detail).model_dump(),
    )
