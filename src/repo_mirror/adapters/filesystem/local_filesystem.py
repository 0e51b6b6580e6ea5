from __future__ import annotations

import shutil
from pathlib import Path

from repo_mirror.domain.ports import FileSystemPort


class LocalFileSystemAdapter(FileSystemPort):
    def ensure_directory(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def path_exists(self, path: Path) -> bool:
        return path.exists()

    def remove_tree(self, path: Path) -> None:
        if path.is_symlink():
            path.unlink()
            return
        if not path.exists():
            return
        shutil.rmtree(path)
