from __future__ import annotations

import logging
import os
import tempfile
from http.client import HTTPException
from pathlib import Path
from typing import Any, BinaryIO, Callable
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from repo_mirror.domain.entities import Locator
from repo_mirror.domain.errors import DownloadFailed
from repo_mirror.domain.ports import RemoteContentPort


DEFAULT_REF = "HEAD"


class RawContentClientAdapter(RemoteContentPort):
    """Download single files from a raw-content host such as raw.githubusercontent.com."""

    def __init__(
        self,
        *,
        base_url: str = "https://raw.githubusercontent.com",
        timeout_seconds: float = 60.0,
        chunk_size: int = 64 * 1024,
        urlopen_fn: Callable[..., Any] = urlopen,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._chunk_size = chunk_size
        self._urlopen_fn = urlopen_fn
        self._logger = logging.getLogger(__name__)

    def build_url(self, locator: Locator, relative_path: str) -> str:
        ref = locator.ref or DEFAULT_REF
        return "/".join(
            [
                self._base_url,
                quote(locator.organization, safe=""),
                quote(locator.repository, safe=""),
                quote(ref, safe="/"),
                quote(relative_path, safe="/"),
            ]
        )

    def fetch(self, locator: Locator, relative_path: str, destination: Path) -> int:
        url = self.build_url(locator, relative_path)
        self._logger.info(
            "downloading file",
            extra={"event": "download.start", "url": url, "destination": str(destination)},
        )

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise DownloadFailed(relative_path, f"Error creating directories: {error}") from error

        request = Request(url, headers={"Accept": "application/octet-stream", "User-Agent": "repo-mirror"})
        try:
            with self._urlopen_fn(request, timeout=self._timeout_seconds) as response:
                status = getattr(response, "status", None) or response.getcode()
                if not 200 <= status < 300:
                    raise DownloadFailed(relative_path, f"HTTP {status} for URL: {url}")
                written = self._stream_to(response, destination)
        except HTTPError as error:
            raise DownloadFailed(relative_path, f"HTTP {error.code} for URL: {url}") from error
        except URLError as error:
            raise DownloadFailed(relative_path, f"request failed for URL: {url}: {error.reason}") from error
        except OSError as error:
            raise DownloadFailed(relative_path, f"Error transferring file: {error}") from error
        except HTTPException as error:
            raise DownloadFailed(relative_path, f"Error transferring file: {error!r}") from error

        self._logger.info(
            "download completed",
            extra={"event": "download.success", "destination": str(destination), "bytes": written},
        )
        return written

    def _stream_to(self, response: BinaryIO, destination: Path) -> int:
        """Stream into a sibling temporary file, then move it over `destination`."""
        handle, temp_name = tempfile.mkstemp(prefix=f".{destination.name}.", suffix=".part", dir=destination.parent)
        temp_path = Path(temp_name)
        written = 0
        try:
            with os.fdopen(handle, "wb") as temp_file:
                while True:
                    chunk = response.read(self._chunk_size)
                    if not chunk:
                        break
                    temp_file.write(chunk)
                    written += len(chunk)
            os.chmod(temp_path, 0o644)
            if destination.is_symlink():
                destination.unlink()
            os.replace(temp_path, destination)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
        return written
