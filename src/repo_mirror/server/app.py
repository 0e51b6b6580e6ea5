from __future__ import annotations
"""FastAPI application exposing the repository mirror over HTTP.

Endpoints:
- ``POST /backup`` -- apply a create/modify/remove/download batch
- ``GET /clone`` -- force a fresh clone of a repository
- ``GET /health`` -- liveness probe (no authentication)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from repo_mirror.application.use_cases.sync_orchestrator import SyncOrchestrator
from repo_mirror.cli.config import AppConfig
from repo_mirror.server.limits import PayloadLimitMiddleware
from repo_mirror.server.routes import router


LOGGER = logging.getLogger(__name__)


def create_app(config: AppConfig, orchestrator: SyncOrchestrator) -> FastAPI:
    """Build the application around an already wired orchestrator."""
    app = FastAPI(
        title="repo-mirror",
        description="Keeps local mirrors of remote repositories in sync with client supplied batches.",
        version="0.1.0",
    )
    app.state.config = config
    app.state.orchestrator = orchestrator

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.cors_origins),
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    app.add_middleware(PayloadLimitMiddleware, max_size=config.max_payload_size)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        LOGGER.info(
            "connection received",
            extra={
                "event": "server.request",
                "client": request.client.host if request.client else None,
                "method": request.method,
                "path": request.url.path,
            },
        )
        return await call_next(request)

    @app.get("/health", tags=["meta"])
    async def health():
        return {"status": "ok"}

    app.include_router(router)
    return app
