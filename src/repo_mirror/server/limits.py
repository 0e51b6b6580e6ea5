from __future__ import annotations
"""Request body size limit, enforced on the bytes actually received."""

import logging

from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send


LOGGER = logging.getLogger(__name__)


class PayloadLimitMiddleware:
    """Reject request bodies larger than `max_size` bytes with ``413``.

    A declared ``Content-Length`` above the limit is refused before the body
    is read. Chunked bodies are counted while they stream in; the route's
    body parsing turns the overflow into a ``413`` response.
    """

    def __init__(self, app: ASGIApp, max_size: int) -> None:
        self.app = app
        self.max_size = max_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = Headers(scope=scope).get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            self._log_rejection(int(content_length))
            response = JSONResponse(status_code=413, content={"detail": self.detail})
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_size:
                    self._log_rejection(received)
                    raise HTTPException(status_code=413, detail=self.detail)
            return message

        await self.app(scope, limited_receive, send)

    @property
    def detail(self) -> str:
        return f"Payload exceeds {self.max_size} bytes"

    def _log_rejection(self, size: int) -> None:
        LOGGER.warning("payload too large", extra={"event": "server.payload.too_large", "content_length": size})
