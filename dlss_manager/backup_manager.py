"""
Backup Manager for DLSS Manager
Per-game backups of the original DLLs taken before the first swap.

Each game gets one directory under ``<data root>/backups/<game id>/`` holding
copies of its DLLs and a ``backup.json`` metadata file. The metadata file is
what makes a backup exist: it is written last, and once written the backup
is never overwritten, only restored or deleted.
"""

import logging
import os
import shutil
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

import msgspec

from .constants import BACKUP_METADATA_FILE, BACKUPS_DIR, LOGGER_NAME
from .exceptions import BackupError, BackupNotFoundError
from .models import BackedUpFile, Backup, DetectedDLL, decode_json, encode_json, format_json
from .paths import as_data_root

logger = logging.getLogger(LOGGER_NAME)


def remove_read_only(file_path: Path):
    if file_path.exists() and not os.access(file_path, os.W_OK):
        logger.info(f"Removing read-only attribute from {file_path}")
        os.chmod(file_path, file_path.stat().st_mode | stat.S_IWRITE)


def replace_file(src: Path, dst: Path) -> None:
    """
    Copy src over dst through a temporary sibling and an atomic rename, so an
    interrupted copy never leaves a truncated dst behind.
    """
    src = Path(src)
    dst = Path(dst)
    temp_path = dst.with_name(f".{dst.name}.tmp")
    original_mode = dst.stat().st_mode if dst.exists() else None

    try:
        shutil.copyfile(src, temp_path)
        if original_mode is not None:
            os.chmod(temp_path, stat.S_IMODE(original_mode))
        remove_read_only(dst)
        os.replace(temp_path, dst)
    finally:
        if temp_path.exists():
            temp_path.unlink()


class BackupManager:
    """
    Backup ledger keyed by game id.
    """

    def __init__(self, data_root):
        self.data_root = as_data_root(data_root)

    @property
    def backups_dir(self) -> Path:
        return self.data_root.join(BACKUPS_DIR)

    def backup_dir(self, game_id: int) -> Path:
        return self.backups_dir / str(game_id)

    def metadata_path(self, game_id: int) -> Path:
        return self.backup_dir(game_id) / BACKUP_METADATA_FILE

    def load(self, game_id: int) -> Optional[Backup]:
        """
        Load backup metadata for a game.

        Returns:
            The Backup, or None if the game has no backup

        Raises:
            BackupError: If the metadata file exists but cannot be read
        """
        path = self.metadata_path(game_id)
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BackupError(f"Failed to read backup metadata for {game_id}: {e}") from e

        try:
            return decode_json(data, type=Backup)
        except msgspec.DecodeError as e:
            raise BackupError(f"Corrupt backup metadata at {path}: {e}") from e

    def exists(self, game_id: int) -> bool:
        return self.metadata_path(game_id).is_file()

    def ensure_backup(self, game_id: int, game_name: str, current_dlls: Iterable[DetectedDLL]) -> Backup:
        """
        Back up every DLL of a game unless a backup already exists.

        Args:
            game_id: Steam app id of the game
            game_name: Display name stored in the metadata
            current_dlls: Every accelerator DLL known for the game

        Returns:
            The existing backup, or the newly created one

        Raises:
            BackupError: If there is nothing to back up or a copy fails
        """
        existing = self.load(game_id)
        if existing is not None:
            logger.debug(f"[BACKUP] Backup already exists for {game_name} ({game_id})")
            return existing

        dlls = list(current_dlls)
        if not dlls:
            raise BackupError(f"No DLLs to back up for {game_name} ({game_id})")

        backup_dir = self.backup_dir(game_id)
        logger.info(f"[BACKUP] Creating backup for {game_name} ({game_id}) at {backup_dir}")

        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
            files = self._copy_originals(backup_dir, dlls)
            backup = Backup(
                game_id=game_id,
                game_name=game_name,
                created_at=datetime.now(timezone.utc),
                backup_path=str(backup_dir),
                files=files,
            )
            self._write_metadata(backup)
        except OSError as e:
            logger.error(f"[BACKUP] Failed to back up {game_name} ({game_id}): {e}")
            shutil.rmtree(backup_dir, ignore_errors=True)
            raise BackupError(f"Failed to back up {game_name}: {e}") from e

        logger.info(f"[BACKUP] Backed up {len(files)} DLL(s) for {game_name} ({game_id})")
        return backup

    def _copy_originals(self, backup_dir: Path, dlls: List[DetectedDLL]) -> List[BackedUpFile]:
        files = []
        used_names = set()
        for dll in dlls:
            original = Path(dll.path)
            backup_path = backup_dir / self._unique_name(original.name, used_names)
            shutil.copy2(original, backup_path)
            logger.debug(f"[BACKUP] Copied {original} -> {backup_path}")
            files.append(
                BackedUpFile(
                    original_path=str(original),
                    backup_path=str(backup_path),
                    filename=dll.filename,
                    version=dll.version,
                )
            )
        return files

    @staticmethod
    def _unique_name(name: str, used_names: set) -> str:
        # DLLs with the same name can live in several folders of one game
        candidate = name
        counter = 1
        while candidate.lower() in used_names or candidate == BACKUP_METADATA_FILE:
            stem, dot, suffix = name.rpartition(".")
            candidate = f"{stem}.{counter}.{suffix}" if dot else f"{name}.{counter}"
            counter += 1
        used_names.add(candidate.lower())
        return candidate

    def _write_metadata(self, backup: Backup) -> None:
        path = self.metadata_path(backup.game_id)
        temp_path = path.with_name(path.name + ".tmp")
        try:
            with open(temp_path, "wb") as f:
                f.write(format_json(encode_json(backup), indent=2))
            os.replace(temp_path, path)
        finally:
            if temp_path.exists():
                temp_path.unlink()

    def restore(self, game_id: int) -> Backup:
        """
        Copy every backed-up DLL back over its original path.

        Files are restored one by one; a failure stops at that file and the
        backup stays intact, so calling restore again is safe.

        Raises:
            BackupNotFoundError: If the game has no backup
        """
        backup = self.load(game_id)
        if backup is None:
            raise BackupNotFoundError(f"No backup found for app {game_id}")

        logger.info(f"[RESTORE] Restoring {len(backup.files)} DLL(s) for {backup.game_name} ({game_id})")
        for backed_up in backup.files:
            try:
                replace_file(Path(backed_up.backup_path), Path(backed_up.original_path))
            except OSError as e:
                logger.error(f"[RESTORE] Failed to restore {backed_up.filename}: {e}")
                raise BackupError(f"Failed to restore {backed_up.filename}: {e}") from e
            logger.info(f"[RESTORE] Restored {backed_up.original_path}")

        return backup

    def delete(self, game_id: int) -> bool:
        """
        Remove a game's backup directory tree.

        Returns:
            True if a backup directory was removed
        """
        backup_dir = self.backup_dir(game_id)
        if not backup_dir.exists():
            return False
        shutil.rmtree(backup_dir)
        logger.info(f"[BACKUP] Deleted backup for app {game_id}")
        return True

    def list_backups(self) -> List[Backup]:
        """All valid backups, sorted by creation time"""
        if not self.backups_dir.exists():
            return []

        backups = []
        for entry in self.backups_dir.iterdir():
            if not entry.is_dir() or not entry.name.isdigit():
                continue
            try:
                backup = self.load(int(entry.name))
            except BackupError as e:
                logger.warning(f"Skipping unreadable backup {entry}: {e}")
                continue
            if backup is not None:
                backups.append(backup)

        return sorted(backups, key=lambda b: b.created_at)
