"""
Filesystem roots for DLSS Manager.

Components receive a CacheRoot (manifest + downloaded DLLs) and a DataRoot
(backups + lock files) at construction instead of reading module globals,
so tests can point them at a temporary directory.
"""

from pathlib import Path
from typing import NamedTuple

import platformdirs

from .constants import APP_AUTHOR, APP_NAME


class CacheRoot(NamedTuple):
    """Root directory for disposable data: manifest cache and DLL cache."""
    path: Path

    @classmethod
    def default(cls) -> "CacheRoot":
        return cls(Path(platformdirs.user_cache_dir(APP_NAME, APP_AUTHOR)))

    def join(self, *parts) -> Path:
        return self.path.joinpath(*parts)

    def ensure(self) -> Path:
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path


class DataRoot(NamedTuple):
    """Root directory for data that must survive cache cleanup: backups and locks."""
    path: Path

    @classmethod
    def default(cls) -> "DataRoot":
        return cls(Path(platformdirs.user_data_dir(APP_NAME, APP_AUTHOR)))

    def join(self, *parts) -> Path:
        return self.path.joinpath(*parts)


def as_cache_root(value) -> CacheRoot:
    if isinstance(value, CacheRoot):
        return value
    return CacheRoot(Path(value))


def as_data_root(value) -> DataRoot:
    if isinstance(value, DataRoot):
        return value
    return DataRoot(Path(value))
