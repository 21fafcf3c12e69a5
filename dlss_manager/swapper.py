"""
Swap Engine for DLSS Manager
Backup-then-replace of a game's DLL, and restore from that backup.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from .backup_manager import BackupManager, replace_file
from .constants import LOGGER_NAME
from .exceptions import DLLNotFoundError
from .game_lock import GameLockRegistry
from .models import Backup, DetectedDLL

logger = logging.getLogger(LOGGER_NAME)


def same_path(a, b) -> bool:
    """Compare two file paths the way the filesystem would"""
    return os.path.normcase(os.path.abspath(a)) == os.path.normcase(os.path.abspath(b))


def find_dll(dlls: Iterable[DetectedDLL], target: Union[str, DetectedDLL]) -> Optional[DetectedDLL]:
    """
    Locate the DLL to replace.

    A DetectedDLL matches by path, so same-named DLLs in different folders
    stay distinct; a plain filename matches the first DLL of that name,
    ignoring case.
    """
    if isinstance(target, DetectedDLL):
        for dll in dlls:
            if same_path(dll.path, target.path):
                return dll
        return None

    wanted = target.lower()
    for dll in dlls:
        if dll.filename.lower() == wanted:
            return dll
    return None


class DLLSwapper:
    """
    Replaces game DLLs in place.

    The first swap for a game backs up every DLL passed in ``current_dlls``;
    later swaps reuse that backup so it always holds the game's original files.
    """

    def __init__(self, backups: BackupManager, locks: GameLockRegistry):
        self.backups = backups
        self.locks = locks

    def swap(
        self,
        game_id: int,
        game_name: str,
        current_dlls: Iterable[DetectedDLL],
        target: Union[str, DetectedDLL],
        new_binary_path,
    ) -> Path:
        """
        Replace one of a game's DLLs with a new binary.

        Args:
            game_id: Steam app id of the game
            game_name: Display name, stored in the backup metadata
            current_dlls: Every accelerator DLL currently installed in the game
            target: The DetectedDLL to replace, or a filename matching the first DLL of that name
            new_binary_path: Path of the replacement, usually a cache entry

        Returns:
            Path of the replaced DLL

        Raises:
            DLLNotFoundError: If target is not among current_dlls
            BackupError: If the initial backup cannot be created
        """
        dlls = list(current_dlls)
        found = find_dll(dlls, target)
        if found is None:
            wanted = target.path if isinstance(target, DetectedDLL) else target
            raise DLLNotFoundError(f"DLL {wanted} not found in {game_name}")

        target_path = Path(found.path)
        with self.locks.hold(game_id):
            self.backups.ensure_backup(game_id, game_name, dlls)

            logger.info(f"[SWAP] Replacing {target_path} with {new_binary_path}")
            replace_file(Path(new_binary_path), target_path)

        logger.info(f"[SWAP] Swapped {found.filename} for {game_name} ({game_id})")
        return target_path

    def restore(self, game_id: int) -> Backup:
        """Restore the game's original DLLs; the backup is kept"""
        with self.locks.hold(game_id):
            return self.backups.restore(game_id)

    def delete_backup(self, game_id: int) -> bool:
        with self.locks.hold(game_id):
            return self.backups.delete(game_id)

    def has_backup(self, game_id: int) -> bool:
        return self.backups.exists(game_id)
