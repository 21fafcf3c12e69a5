from .constants import AcceleratorType, DLL_TYPE_MAP, UNKNOWN_VERSION, classify_dll
from .paths import CacheRoot, DataRoot
from .logger import setup_logger
from .models import (
    BackedUpFile,
    Backup,
    DetectedDLL,
    DLLUpdate,
    Manifest,
    VersionDescriptor,
)
from .exceptions import (
    BackupError,
    BackupNotFoundError,
    ChecksumMismatchError,
    DLLManagerError,
    DLLNotFoundError,
    DownloadError,
    GameLockedError,
    ManifestFetchError,
)
from .version_reader import get_dll_version
from .version_compare import VersionOrder, compare_versions, is_newer, parse_version
from .manifest import ManifestStore
from .dll_repository import DLLRepository
from .backup_manager import BackupManager
from .game_lock import GameLockRegistry
from .swapper import DLLSwapper
from .updater import DLLUpdater

__version__ = "0.1.0"

__all__ = [
    "AcceleratorType",
    "DLL_TYPE_MAP",
    "UNKNOWN_VERSION",
    "classify_dll",
    "CacheRoot",
    "DataRoot",
    "setup_logger",
    "BackedUpFile",
    "Backup",
    "DetectedDLL",
    "DLLUpdate",
    "Manifest",
    "VersionDescriptor",
    "BackupError",
    "BackupNotFoundError",
    "ChecksumMismatchError",
    "DLLManagerError",
    "DLLNotFoundError",
    "DownloadError",
    "GameLockedError",
    "ManifestFetchError",
    "get_dll_version",
    "VersionOrder",
    "compare_versions",
    "is_newer",
    "parse_version",
    "ManifestStore",
    "DLLRepository",
    "BackupManager",
    "GameLockRegistry",
    "DLLSwapper",
    "DLLUpdater",
    "__version__",
]
