from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

import uvicorn

from repo_mirror.adapters.filesystem.local_filesystem import LocalFileSystemAdapter
from repo_mirror.adapters.git_client.shell_git_client import ShellGitClientAdapter
from repo_mirror.adapters.remote_content.raw_content_client import RawContentClientAdapter
from repo_mirror.application.use_cases.mutation_applier import MutationApplier
from repo_mirror.application.use_cases.recovery_coordinator import RecoveryCoordinator
from repo_mirror.application.use_cases.repository_resolver import RepositoryResolver
from repo_mirror.application.use_cases.sync_orchestrator import SyncOrchestrator
from repo_mirror.cli.config import AppConfig, load_config
from repo_mirror.domain.entities import Locator, ResolveOutcome, SyncResult
from repo_mirror.domain.errors import InvalidLocator
from repo_mirror.domain.ports import GitClientPort
from repo_mirror.logging_utils import configure_logging
from repo_mirror.server import create_app
from repo_mirror.server.models import BackupPayload


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--storage-root",
        required=False,
        help="Directory holding <organization>/<repository> working copies. Falls back to MIRROR_STORAGE_ROOT.",
    )

    parser = argparse.ArgumentParser(
        prog="repo-mirror",
        description="Keep local mirrors of remote repositories in sync with mutation batches.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", parents=[common], help="Run the HTTP server.")
    serve.add_argument("--host", required=False, help="Bind address. Falls back to MIRROR_SERVER_HOST.")
    serve.add_argument("--port", type=int, required=False, help="Bind port. Falls back to MIRROR_SERVER_PORT.")

    sync = subparsers.add_parser("sync", parents=[common], help="Apply a batch file to one repository.")
    sync.add_argument("--repository", required=True, help="Locator: organization/repository[;ref].")
    sync.add_argument(
        "--batch",
        required=True,
        help="JSON file with create/modify/remove/download keys, or '-' for stdin.",
    )

    reclone = subparsers.add_parser("reclone", parents=[common], help="Delete and clone one repository again.")
    reclone.add_argument("--repository", required=True, help="Locator: organization/repository.")

    return parser


def build_orchestrator(config: AppConfig, *, git_client: GitClientPort | None = None) -> SyncOrchestrator:
    filesystem = LocalFileSystemAdapter()
    resolver = RepositoryResolver(
        git_client=git_client or _build_git_client(config),
        filesystem=filesystem,
        storage_root=config.storage_root,
        git_base_url=config.git_base_url,
    )
    remote_content = RawContentClientAdapter(
        base_url=config.raw_content_base_url,
        timeout_seconds=config.download_timeout_seconds,
    )
    return SyncOrchestrator(
        resolver=resolver,
        applier=MutationApplier(remote_content),
        recovery=RecoveryCoordinator(resolver=resolver, filesystem=filesystem),
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args=args, env=os.environ, require_token=args.command == "serve")
    except ValueError as error:
        parser.error(str(error))

    configure_logging(config.log_level, utc=config.utc_logging)
    logger = logging.getLogger(__name__)
    logger.info(
        "cli configuration resolved",
        extra={
            "event": "cli.config.resolved",
            "command": args.command,
            "storage_root": str(config.storage_root),
            "git_base_url": config.git_base_url,
            "raw_content_base_url": config.raw_content_base_url,
        },
    )

    git_client = _build_git_client(config)
    orchestrator = build_orchestrator(config, git_client=git_client)

    if args.command == "serve":
        return _serve(config, orchestrator, git_client)

    try:
        locator = Locator.parse(args.repository)
    except InvalidLocator as error:
        parser.error(str(error))

    if args.command == "sync":
        try:
            payload = BackupPayload.model_validate_json(_read_batch(args.batch))
            batch = payload.to_batch()
        except (OSError, ValueError, InvalidLocator) as error:
            parser.error(f"Invalid batch: {error}")
        result = orchestrator.sync_batch(locator, batch)
        _print_sync_result(result)
        return 0 if result.succeeded else 1

    outcome = orchestrator.force_reclone(locator)
    _print_resolve_outcome(locator, outcome)
    return 0 if outcome.present and outcome.freshly_cloned else 1


def _build_git_client(config: AppConfig) -> ShellGitClientAdapter:
    return ShellGitClientAdapter(
        git_executable=config.git_executable,
        timeout_seconds=config.git_timeout_seconds,
    )


def _serve(config: AppConfig, orchestrator: SyncOrchestrator, git_client: GitClientPort) -> int:
    logger = logging.getLogger(__name__)
    try:
        version = git_client.version()
    except RuntimeError:
        logger.exception("git client unavailable", extra={"event": "cli.git.missing"})
        print("'git' command line is mandatory!!", file=sys.stderr)
        return 1

    logger.info(
        "starting server",
        extra={
            "event": "cli.serve.start",
            "git_version": version,
            "host": config.server_host,
            "port": config.server_port,
            "tls": config.tls_enabled,
            "max_connections": config.max_connections,
        },
    )
    ssl_options: dict[str, str] = {}
    if config.tls_enabled:
        ssl_options = {"ssl_keyfile": str(config.ssl_key_file), "ssl_certfile": str(config.ssl_cert_file)}

    uvicorn.run(
        create_app(config, orchestrator),
        host=config.server_host,
        port=config.server_port,
        limit_concurrency=config.max_connections,
        log_config=None,
        **ssl_options,
    )
    return 0


def _read_batch(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).expanduser().read_text(encoding="utf-8")


def _print_sync_result(result: SyncResult) -> None:
    print(f"Repository: {result.locator}")
    print(f"Status: {result.status.value}")
    if result.detail:
        print(f"Detail: {result.detail}")
    if result.failed_step:
        print(f"Failed step: {result.failed_step.describe()}")
    for warning in result.warnings:
        print(f"- warning: {warning}")
    if result.recovery_error:
        print(f"Recovery error: {result.recovery_error}")


def _print_resolve_outcome(locator: Locator, outcome: ResolveOutcome) -> None:
    status = "cloned" if outcome.present and outcome.freshly_cloned else "failed"
    print(f"Repository: {locator}")
    print(f"Status: {status}")
    if outcome.detail:
        print(f"Detail: {outcome.detail}")


if __name__ == "__main__":
    raise SystemExit(main())
