from __future__ import annotations
"""Per-repository mutual exclusion for orchestration calls."""

import threading
from contextlib import contextmanager
from typing import Iterator

from repo_mirror.domain.entities import Locator


class RepositoryLocks:
    """Registry of one lock per ``organization/repository``.

    The ref is not part of the key: every ref of a repository shares one
    working copy on disk.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _get_lock(self, key: str) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    @contextmanager
    def hold(self, locator: Locator) -> Iterator[None]:
        lock = self._get_lock(locator.full_name)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def is_held(self, locator: Locator) -> bool:
        return self._get_lock(locator.full_name).locked()
