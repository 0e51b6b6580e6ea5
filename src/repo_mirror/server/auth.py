from __future__ import annotations
"""Auth dependencies -- bearer token check and locator extraction.

Clients authenticate with ``Authorization: Bearer <token>`` and address a
repository with ``Content-Location: organization/repository[;branch]``.
"""

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, Request, status

from repo_mirror.domain.entities import Locator
from repo_mirror.domain.errors import InvalidLocator


LOGGER = logging.getLogger(__name__)


def verify_token(request: Request, authorization: Optional[str] = Header(None)) -> None:
    """FastAPI dependency that rejects requests without the configured bearer token."""
    config = request.app.state.config
    if not authorization:
        LOGGER.error("no auth header received", extra={"event": "server.auth.missing"})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expected = f"Bearer {config.auth_token}"
    if not hmac.compare_digest(authorization.encode("utf-8"), expected.encode("utf-8")):
        LOGGER.error(
            "invalid token",
            extra={"event": "server.auth.invalid", "client": request.client.host if request.client else None},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_locator(content_location: Optional[str] = Header(None)) -> Locator:
    """FastAPI dependency that parses the ``Content-Location`` header into a `Locator`."""
    try:
        return Locator.parse(content_location)
    except InvalidLocator as error:
        LOGGER.warning(
            "'content-location' header is invalid",
            extra={"event": "server.locator.invalid", "error": str(error)},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="'content-location' header is invalid",
        ) from error
