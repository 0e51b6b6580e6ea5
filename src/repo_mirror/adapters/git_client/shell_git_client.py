from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Callable, Sequence

from repo_mirror.domain.ports import GitClientPort


class ShellGitClientAdapter(GitClientPort):
    def __init__(
        self,
        *,
        git_executable: str = "git",
        timeout_seconds: float = 600.0,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ) -> None:
        self._git_executable = git_executable
        self._timeout_seconds = timeout_seconds
        self._runner = runner
        self._logger = logging.getLogger(__name__)

    def clone(self, clone_url: str, local_path: Path) -> None:
        if local_path.exists():
            raise RuntimeError(f"Cannot clone repository: destination already exists: {local_path}")

        self._logger.info(
            "cloning repository",
            extra={
                "event": "git.clone.start",
                "clone_url": clone_url,
                "local_path": str(local_path),
            },
        )
        self._run_git(["clone", clone_url, str(local_path)], cwd=local_path.parent)
        self._logger.info(
            "clone completed",
            extra={"event": "git.clone.success", "local_path": str(local_path)},
        )

    def version(self) -> str:
        result = self._run_git(["--version"], cwd=Path.cwd())
        return (result.stdout or "").strip()

    def _run_git(self, args: Sequence[str], cwd: Path) -> subprocess.CompletedProcess[str]:
        command = [self._git_executable, *args]
        self._logger.debug(
            "executing git command",
            extra={"event": "git.command.start", "command": " ".join(command), "cwd": str(cwd)},
        )
        try:
            return self._runner(
                command,
                cwd=str(cwd),
                check=True,
                text=True,
                capture_output=True,
                timeout=self._timeout_seconds,
                env=self._command_env(),
            )
        except FileNotFoundError as error:
            raise RuntimeError(
                f"Git executable '{self._git_executable}' was not found in PATH"
            ) from error
        except subprocess.TimeoutExpired as error:
            raise RuntimeError(
                f"Git command timed out after {self._timeout_seconds}s: {' '.join(command)}"
            ) from error
        except subprocess.CalledProcessError as error:
            stderr = (error.stderr or "").strip()
            stdout = (error.stdout or "").strip()
            details = stderr or stdout or "No command output"
            self._logger.error(
                "git command failed",
                extra={
                    "event": "git.command.error",
                    "command": " ".join(command),
                    "cwd": str(cwd),
                    "return_code": error.returncode,
                    "details": details,
                },
            )
            raise RuntimeError(
                f"Git command failed ({error.returncode}): {' '.join(command)}\n{details}"
            ) from error

    @staticmethod
    def _command_env() -> dict[str, str]:
        # never block on a credential prompt for private or missing repositories
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env
