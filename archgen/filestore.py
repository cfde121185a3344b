"""Local file-system implementation of the ``FileStore`` interface."""

from __future__ import annotations

import shutil
from pathlib import Path

from archgen.errors import StorageError
from archgen.utils import atomic_write_text, ensure_dir


class LocalFileStore:
    """Reads and writes UTF-8 text files; every write is atomic."""

    def read(self, path: Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot read {path}: {exc}", path=path) from exc

    def write(self, path: Path, text: str) -> None:
        try:
            atomic_write_text(path, text)
        except OSError as exc:
            raise StorageError(f"Cannot write {path}: {exc}", path=path) from exc

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def list(self, path: Path) -> list[Path]:
        """Direct children of *path*, sorted; empty when it is not a directory."""
        directory = Path(path)
        if not directory.is_dir():
            return []
        return sorted(directory.iterdir())

    def mkdir(self, path: Path) -> None:
        try:
            ensure_dir(path)
        except OSError as exc:
            raise StorageError(f"Cannot create directory {path}: {exc}", path=path) from exc

    def remove(self, path: Path) -> None:
        """Delete a file or directory tree; a missing path is ignored."""
        target = Path(path)
        try:
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot remove {path}: {exc}", path=path) from exc
