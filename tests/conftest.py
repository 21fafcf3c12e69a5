import pytest

from dlss_manager.backup_manager import BackupManager
from dlss_manager.constants import AcceleratorType
from dlss_manager.dll_repository import DLLRepository
from dlss_manager.game_lock import GameLockRegistry
from dlss_manager.manifest import ManifestStore
from dlss_manager.models import DetectedDLL
from dlss_manager.paths import CacheRoot, DataRoot
from dlss_manager.swapper import DLLSwapper
from tests.helpers import MANIFEST_URL, FakeSession, write_dll


@pytest.fixture
def cache_root(tmp_path):
    return CacheRoot(tmp_path / "cache")


@pytest.fixture
def data_root(tmp_path):
    return DataRoot(tmp_path / "data")


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def manifest_store(cache_root, session):
    return ManifestStore(cache_root, repository_url=MANIFEST_URL, session=session)


@pytest.fixture
def repository(cache_root, session):
    return DLLRepository(cache_root, session=session, chunk_size=64)


@pytest.fixture
def backups(data_root):
    return BackupManager(data_root)


@pytest.fixture
def swapper(data_root, backups):
    return DLLSwapper(backups, GameLockRegistry(data_root))


@pytest.fixture
def game_dlls(tmp_path):
    """A game installation with a DLSS and a Frame Generation DLL"""
    game_dir = tmp_path / "steamapps" / "common" / "Cyberpunk 2077" / "bin" / "x64"
    dlss = write_dll(game_dir / "nvngx_dlss.dll", 3, 5, 10, payload=b"original-sr")
    dlssg = write_dll(game_dir / "nvngx_dlssg.dll", 3, 5, 0, payload=b"original-fg")
    return [
        DetectedDLL(path=str(dlss), filename=dlss.name, dll_type=AcceleratorType.SR, version="3.5.10"),
        DetectedDLL(path=str(dlssg), filename=dlssg.name, dll_type=AcceleratorType.FRAME_GEN, version="3.5"),
    ]
