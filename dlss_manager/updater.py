import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .backup_manager import BackupManager
from .constants import DLL_TYPE_DESCRIPTIONS, LOGGER_NAME, AcceleratorType
from .dll_repository import DLLRepository, ProgressCallback
from .exceptions import DLLNotFoundError
from .game_lock import GameLockRegistry
from .manifest import ManifestStore
from .models import Backup, DetectedDLL, DLLUpdate, Manifest
from .swapper import DLLSwapper
from .version_compare import is_newer

logger = logging.getLogger(LOGGER_NAME)


def needs_update(dll: DetectedDLL, latest_version: str) -> bool:
    """An unreadable installed version always counts as outdated"""
    if not dll.has_version:
        return True
    return is_newer(dll.version, latest_version)


class DLLUpdater:
    """
    Check, download and install accelerator DLL updates for games.

    Games and their DLLs come from the caller's detector; this class never
    scans the filesystem itself.
    """

    def __init__(self, manifests: ManifestStore, repository: DLLRepository, swapper: DLLSwapper):
        self.manifests = manifests
        self.repository = repository
        self.swapper = swapper

    @classmethod
    def from_config(cls, config=None) -> "DLLUpdater":
        """Build the updater from ConfigManager settings"""
        if config is None:
            from .config import ConfigManager
            config = ConfigManager()

        cache_root = config.get_cache_root()
        data_root = config.get_data_root()
        timeout = config.get_request_timeout()

        manifests = ManifestStore(
            cache_root,
            repository_url=config.get_repository_url(),
            max_age=config.get_manifest_max_age(),
            timeout=timeout,
        )
        repository = DLLRepository(
            cache_root,
            session=manifests.session,
            timeout=timeout,
            chunk_size=config.get_chunk_size(),
        )
        swapper = DLLSwapper(BackupManager(data_root), GameLockRegistry(data_root))
        return cls(manifests, repository, swapper)

    def get_manifest(self, force_refresh: bool = False) -> Manifest:
        return self.manifests.get(force_refresh)

    def check_updates(self, dlls: Iterable[DetectedDLL], force_refresh: bool = False) -> List[DLLUpdate]:
        """
        List the DLLs for which the manifest offers a newer version.

        Raises:
            ManifestFetchError: If the manifest needs refreshing and cannot be fetched
        """
        manifest = self.get_manifest(force_refresh)
        updates = []
        for dll in dlls:
            latest = manifest.latest(dll.dll_type)
            if latest is None:
                logger.debug(f"No {dll.dll_type} versions in manifest, skipping {dll.path}")
                continue
            if needs_update(dll, latest.version):
                logger.info(
                    f"Update available for {dll.filename}: "
                    f"{dll.version or 'unknown'} -> {latest.version}"
                )
                updates.append(DLLUpdate(dll=dll, latest=latest))
            else:
                logger.debug(f"{dll.path} is up to date (version {dll.version})")
        return updates

    def update_dll(
        self,
        game_id: int,
        game_name: str,
        dlls: Iterable[DetectedDLL],
        dll_type: AcceleratorType,
        version: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Optional[DLLUpdate]:
        """
        Download and install a DLL version for one game.

        Args:
            game_id: Steam app id of the game
            game_name: Display name of the game
            dlls: Every accelerator DLL detected in the game
            dll_type: Which accelerator to update
            version: Specific manifest version, or None for the latest
            progress_callback: Optional download progress callback

        Returns:
            The applied update, or None if the installed DLL is already current

        Raises:
            DLLNotFoundError: If the game has no DLL of that type or the version is unknown
        """
        dll_type = AcceleratorType(dll_type)
        dlls = list(dlls)
        target = next((dll for dll in dlls if dll.dll_type == dll_type), None)
        if target is None:
            raise DLLNotFoundError(f"{game_name} does not have a {DLL_TYPE_DESCRIPTIONS[dll_type]}")

        manifest = self.get_manifest()
        descriptor = manifest.resolve(dll_type, version)
        if descriptor is None:
            raise DLLNotFoundError(f"No {dll_type} version {version or 'latest'} in manifest")

        # An explicit version is installed even when it is older (downgrade)
        if version is None and not needs_update(target, descriptor.version):
            logger.info(f"{target.filename} is already at the latest version ({target.version})")
            return None

        cache_path = self.repository.fetch(descriptor, dll_type, progress_callback)
        self.swapper.swap(game_id, game_name, dlls, target, cache_path)

        logger.info(
            f"Updated {target.filename} for {game_name} from "
            f"{target.version or 'unknown'} to {descriptor.version}"
        )
        return DLLUpdate(dll=target, latest=descriptor)

    def update_game(
        self,
        game_id: int,
        game_name: str,
        dlls: Iterable[DetectedDLL],
        force_refresh: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[DLLUpdate]:
        """
        Bring every outdated DLL of a game to the latest manifest version.

        Each DLL is replaced on its own path, so same-named DLLs in different
        folders are all updated. The first failure stops the run; DLLs swapped
        before it stay swapped and the backup still holds the originals.

        Returns:
            The updates that were applied, in the order of ``dlls``
        """
        dlls = list(dlls)
        updates = self.check_updates(dlls, force_refresh)
        if not updates:
            logger.info(f"All DLLs of {game_name} are up to date")
            return []

        applied = []
        for update in updates:
            cache_path = self.repository.fetch(update.latest, update.dll.dll_type, progress_callback)
            self.swapper.swap(game_id, game_name, dlls, update.dll, cache_path)
            logger.info(
                f"Updated {update.dll.path} for {game_name} from "
                f"{update.installed_version} to {update.latest.version}"
            )
            applied.append(update)
        return applied

    def restore(self, game_id: int) -> Backup:
        return self.swapper.restore(game_id)

    def delete_backup(self, game_id: int) -> bool:
        return self.swapper.delete_backup(game_id)

    def list_backups(self) -> List[Backup]:
        return self.swapper.backups.list_backups()

    def cached_dll_path(self, dll_type, version: str) -> Optional[Path]:
        if self.repository.is_cached(dll_type, version):
            return self.repository.cache_path(dll_type, version)
        return None
