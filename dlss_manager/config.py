import os
import threading
import configparser
from datetime import timedelta
from enum import StrEnum
from pathlib import Path

import platformdirs

from .constants import (
    APP_AUTHOR,
    APP_NAME,
    DEFAULT_MANIFEST_URL,
    DOWNLOAD_CHUNK_SIZE,
    MANIFEST_MAX_AGE,
)
from .logger import get_logger
from .paths import CacheRoot, DataRoot

logger = get_logger()


def get_config_path():
    """Get the path for storing configuration files"""
    config_dir = platformdirs.user_config_dir(APP_NAME, APP_AUTHOR)
    os.makedirs(config_dir, exist_ok=True)
    return os.path.join(config_dir, "config.ini")


class PathName(StrEnum):
    CACHE_ROOT = "CacheRoot"
    DATA_ROOT = "DataRoot"


class ConfigManager(configparser.ConfigParser):
    _instance = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(ConfigManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        with self._lock:
            if getattr(self, "initialized", False):
                return
            super().__init__()
            self.config_path = get_config_path()
            self.read(self.config_path)

            changed = False

            if not self.has_section("Paths"):
                self.add_section("Paths")
                self["Paths"].update(
                    {
                        PathName.CACHE_ROOT: "",
                        PathName.DATA_ROOT: "",
                    }
                )
                changed = True

            if not self.has_section("Manifest"):
                self.add_section("Manifest")
                self["Manifest"].update(
                    {
                        "RepositoryURL": DEFAULT_MANIFEST_URL,
                        "MaxAgeHours": str(int(MANIFEST_MAX_AGE.total_seconds() // 3600)),
                    }
                )
                changed = True

            if not self.has_section("Network"):
                self.add_section("Network")
                self["Network"].update(
                    {
                        "RequestTimeout": "",
                        "ChunkSize": str(DOWNLOAD_CHUNK_SIZE),
                    }
                )
                changed = True

            if changed:
                self.save()

            self.initialized = True

    def update_path(self, path_to_update: PathName, new_path: str):
        logger.debug(f"Attempting to update path for {path_to_update}.")
        self["Paths"][path_to_update] = str(new_path)
        self.save()
        logger.debug(f"Updated path for {path_to_update}.")

    def reset_path(self, path_to_reset: PathName):
        logger.debug(f"Resetting path for {path_to_reset}.")
        self["Paths"][path_to_reset] = ""
        self.save()

    def check_path_value(self, path_to_check: PathName) -> str:
        return self["Paths"].get(path_to_check, "")

    def get_cache_root(self) -> CacheRoot:
        """Configured cache root, or the platform cache dir when unset"""
        value = self.check_path_value(PathName.CACHE_ROOT)
        return CacheRoot(Path(value)) if value else CacheRoot.default()

    def get_data_root(self) -> DataRoot:
        """Configured data root, or the platform data dir when unset"""
        value = self.check_path_value(PathName.DATA_ROOT)
        return DataRoot(Path(value)) if value else DataRoot.default()

    def get_repository_url(self) -> str:
        return self["Manifest"].get("RepositoryURL", "") or DEFAULT_MANIFEST_URL

    def set_repository_url(self, url: str):
        self["Manifest"]["RepositoryURL"] = url
        self.save()

    def get_manifest_max_age(self) -> timedelta:
        hours = self["Manifest"].getfloat("MaxAgeHours", fallback=None)
        if hours is None or hours < 0:
            return MANIFEST_MAX_AGE
        return timedelta(hours=hours)

    def get_request_timeout(self):
        """Request timeout in seconds, or None when no timeout is configured"""
        value = self["Network"].get("RequestTimeout", "").strip()
        if not value:
            return None
        try:
            timeout = float(value)
        except ValueError:
            logger.warning(f"Ignoring invalid RequestTimeout value: {value!r}")
            return None
        return timeout if timeout > 0 else None

    def get_chunk_size(self) -> int:
        size = self["Network"].getint("ChunkSize", fallback=DOWNLOAD_CHUNK_SIZE)
        return size if size > 0 else DOWNLOAD_CHUNK_SIZE

    def save(self):
        """Save configuration to disk"""
        with open(self.config_path, "w") as configfile:
            self.write(configfile)
