"""Snapshot and restore of project files around a mutating operation.

A backup is a directory ``<backup_dir>/<backup_id>/`` holding a copy of every
file that existed when the backup was taken (under ``files/``) plus a
``manifest.json`` mapping each original project-relative path to its
snapshot. The manifest is the source of truth for restore and for manual
recovery when an automatic restore fails.
"""

from __future__ import annotations

import json
import shutil
import threading
import time
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from archgen.errors import BackupFailed, BackupNotFound
from archgen.utils import atomic_write_text, ensure_dir, print_info

MANIFEST_FILE = "manifest.json"
FILES_DIR = "files"

_token_lock = threading.Lock()
_last_token = 0


def _next_token() -> int:
    """Strictly increasing nanosecond token, even within one clock tick."""
    global _last_token
    with _token_lock:
        _last_token = max(time.time_ns(), _last_token + 1)
        return _last_token


def _format_backup_id(token: int) -> str:
    stamp = datetime.fromtimestamp(token / 1_000_000_000, tz=timezone.utc)
    return f"backup_{stamp:%Y%m%d_%H%M%S}_{token % 1_000_000_000:09d}"


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class BackupManifest(BaseModel):
    """Index of one backup: original relative path -> snapshot path."""

    backup_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    entries: dict[str, str] = Field(
        default_factory=dict,
        description="Project-relative original path -> path relative to the backup directory",
    )

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), indent=2) + "\n"


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class BackupCoordinator:
    """Creates, restores and deletes backups under an explicit root.

    ``backup_dir`` is injected; a relative value is resolved against the
    project root passed to each call, so every project (and every test) keeps
    its backups apart.
    """

    def __init__(self, backup_dir: str | Path = Path(".archgen/backups")) -> None:
        self.backup_dir = Path(backup_dir)

    def backup_root(self, root: Path) -> Path:
        if self.backup_dir.is_absolute():
            return self.backup_dir
        return Path(root) / self.backup_dir

    def backup_path(self, root: Path, backup_id: str) -> Path:
        return self.backup_root(root) / backup_id

    # -- Create ------------------------------------------------------------

    def create_backup(self, root: Path, relative_paths: Iterable[str | Path]) -> str:
        """Copy every existing file in *relative_paths* and return the backup id.

        Paths that do not exist are skipped. The manifest is written last and
        atomically, so a backup without a manifest is never considered valid.

        Raises:
            BackupFailed: A copy or the manifest write failed. The partial
                backup directory has been removed.
        """
        root = Path(root)
        backup_root = self.backup_root(root)
        backup_id = _format_backup_id(_next_token())
        while (backup_root / backup_id).exists():
            backup_id = _format_backup_id(_next_token())
        location = backup_root / backup_id

        manifest = BackupManifest(backup_id=backup_id)
        try:
            for rel in relative_paths:
                rel_path = Path(rel)
                source = root / rel_path
                if not source.is_file():
                    continue
                snapshot_rel = Path(FILES_DIR) / rel_path
                snapshot = location / snapshot_rel
                snapshot.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, snapshot)
                manifest.entries[rel_path.as_posix()] = snapshot_rel.as_posix()

            ensure_dir(location)
            atomic_write_text(location / MANIFEST_FILE, manifest.to_json())
        except OSError as exc:
            shutil.rmtree(location, ignore_errors=True)
            raise BackupFailed(
                f"Failed to create backup {backup_id}: {exc}",
                backup_id=backup_id,
                location=location,
            ) from exc

        print_info(f"  Backup {backup_id}: {len(manifest.entries)} file(s)")
        return backup_id

    # -- Restore -----------------------------------------------------------

    def load_manifest(self, root: Path, backup_id: str) -> BackupManifest:
        """Read the manifest of *backup_id*.

        Raises:
            BackupNotFound: The manifest does not exist.
            BackupFailed: The manifest exists but cannot be read.
        """
        location = self.backup_path(root, backup_id)
        manifest_path = location / MANIFEST_FILE
        if not manifest_path.is_file():
            raise BackupNotFound(backup_id, location=location)
        try:
            return BackupManifest.model_validate_json(manifest_path.read_text(encoding="utf-8"))
        except (OSError, PydanticValidationError) as exc:
            raise BackupFailed(
                f"Cannot read manifest of backup {backup_id}: {exc}",
                backup_id=backup_id,
                location=location,
            ) from exc

    def restore_backup(self, root: Path, backup_id: str) -> list[str]:
        """Overwrite every backed-up file with its snapshot.

        Returns the restored project-relative paths.

        Raises:
            BackupNotFound: No manifest for *backup_id*.
            BackupFailed: A file could not be restored; the message names the
                backup location for manual recovery.
        """
        root = Path(root)
        manifest = self.load_manifest(root, backup_id)
        location = self.backup_path(root, backup_id)

        restored: list[str] = []
        for original, snapshot in manifest.entries.items():
            target = root / original
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(location / snapshot, target)
            except OSError as exc:
                raise BackupFailed(
                    f"Failed to restore '{original}' from backup {backup_id}: {exc}. "
                    f"Manual recovery may be required. Backup location: {location}",
                    backup_id=backup_id,
                    location=location,
                ) from exc
            restored.append(original)

        print_info(f"  Restored {len(restored)} file(s) from {backup_id}")
        return restored

    # -- Housekeeping ------------------------------------------------------

    def delete_backup(self, root: Path, backup_id: str) -> None:
        """Remove *backup_id*; a backup that does not exist is ignored."""
        location = self.backup_path(root, backup_id)
        if location.exists():
            shutil.rmtree(location)

    def list_backups(self, root: Path) -> list[str]:
        """Ids of every backup with a manifest, oldest first."""
        backup_root = self.backup_root(root)
        if not backup_root.is_dir():
            return []
        return sorted(
            child.name
            for child in backup_root.iterdir()
            if child.is_dir() and (child / MANIFEST_FILE).is_file()
        )
