import hashlib
import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Optional

import requests

from .constants import DLL_CACHE_DIR, DOWNLOAD_CHUNK_SIZE, LOGGER_NAME
from .exceptions import ChecksumMismatchError, DLLNotFoundError, DownloadError
from .models import Manifest, VersionDescriptor
from .paths import as_cache_root

logger = logging.getLogger(LOGGER_NAME)

# Called with (bytes downloaded so far, total bytes or None when unknown)
ProgressCallback = Callable[[int, Optional[int]], None]


def is_safe_component(value: str) -> bool:
    """True if a manifest value can be used as a single path component"""
    if not value or value in (".", ".."):
        return False
    if "/" in value or "\\" in value or "\x00" in value:
        return False
    return not os.path.isabs(value) and not os.path.splitdrive(value)[0]


class DLLRepository:
    """
    Local content cache of downloaded DLLs.

    Entries live at ``<cache root>/dlls/<type>/<version>.dll``, are written
    once per (type, version) pair and never modified afterwards.
    """

    def __init__(
        self,
        cache_root,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
    ):
        self.cache_root = as_cache_root(cache_root)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.chunk_size = chunk_size

    @property
    def dll_cache_dir(self) -> Path:
        return self.cache_root.join(DLL_CACHE_DIR)

    def cache_path(self, type_name, version: str) -> Path:
        """
        Cache location of one (type, version) pair.

        Raises:
            DownloadError: If either value would leave the DLL cache directory
        """
        type_name = str(type_name)
        for part in (type_name, version):
            if not is_safe_component(part):
                raise DownloadError(f"Refusing unsafe cache path component: {part!r}")

        path = self.dll_cache_dir / type_name / f"{version}.dll"
        if self.dll_cache_dir.resolve() not in path.resolve().parents:
            raise DownloadError(f"Cache path escapes the DLL cache: {path}")
        return path

    def is_cached(self, type_name, version: str) -> bool:
        return self.cache_path(type_name, version).is_file()

    def fetch(
        self,
        descriptor: VersionDescriptor,
        type_name,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Path:
        """
        Return the local path of a DLL version, downloading it on a cache miss.

        Args:
            descriptor: Manifest entry to materialize
            type_name: Accelerator type the entry belongs to
            progress_callback: Optional callback(bytes_so_far, total_or_None)

        Raises:
            DownloadError: Connection failure or non-2xx response
            ChecksumMismatchError: Downloaded bytes do not match descriptor.sha256
        """
        cache_path = self.cache_path(type_name, descriptor.version)
        if cache_path.is_file():
            logger.debug(f"Cache hit for {type_name} {descriptor.version}: {cache_path}")
            return cache_path

        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DownloadError(f"Failed to create cache directory: {e}") from e

        logger.info(f"Downloading {type_name} {descriptor.version} from {descriptor.source_url}")

        try:
            response = self.session.get(descriptor.source_url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise DownloadError(f"Failed to download {type_name} {descriptor.version}: {e}") from e

        # Save to temp file first, then rename to avoid partial downloads
        temp_path = cache_path.with_name(cache_path.name + ".tmp")
        try:
            with response:
                if not 200 <= response.status_code < 300:
                    raise DownloadError(
                        f"Failed to download {type_name} {descriptor.version}: "
                        f"HTTP {response.status_code}"
                    )
                actual = self._stream_to_file(response, temp_path, progress_callback)

            expected = descriptor.sha256.strip().lower()
            if expected and actual != expected:
                raise ChecksumMismatchError(
                    f"Checksum mismatch for {type_name} {descriptor.version}: "
                    f"expected {expected}, got {actual}",
                    expected=expected,
                    actual=actual,
                )
            if not expected:
                logger.warning(f"No checksum published for {type_name} {descriptor.version}")

            os.replace(temp_path, cache_path)
        except requests.RequestException as e:
            raise DownloadError(f"Failed to download {type_name} {descriptor.version}: {e}") from e
        except OSError as e:
            raise DownloadError(f"Failed to write {type_name} {descriptor.version}: {e}") from e
        finally:
            if temp_path.exists():
                temp_path.unlink()

        logger.info(f"Successfully downloaded {type_name} v{descriptor.version} to {cache_path}")
        return cache_path

    def _stream_to_file(self, response, temp_path: Path, progress_callback) -> str:
        """Write the response body to temp_path and return its SHA-256 hex digest"""
        content_length = response.headers.get("content-length")
        total = int(content_length) if content_length and content_length.isdigit() else None

        hasher = hashlib.sha256()
        downloaded = 0
        with open(temp_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=self.chunk_size):
                if not chunk:
                    continue
                f.write(chunk)
                hasher.update(chunk)
                downloaded += len(chunk)
                if progress_callback:
                    progress_callback(downloaded, total)
        return hasher.hexdigest()

    def get_or_download(
        self,
        manifest: Manifest,
        type_name,
        version: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Path:
        """Resolve a version in the manifest (latest by default) and fetch it"""
        descriptor = manifest.resolve(type_name, version)
        if descriptor is None:
            raise DLLNotFoundError(f"DLL not found in manifest: {type_name} {version or 'latest'}")
        return self.fetch(descriptor, type_name, progress_callback)

    def clear_cache(self) -> None:
        """Remove every downloaded DLL"""
        if self.dll_cache_dir.exists():
            shutil.rmtree(self.dll_cache_dir)
            logger.info(f"Cleared DLL cache at {self.dll_cache_dir}")

    def cache_size(self) -> int:
        """Total size in bytes of the downloaded DLLs"""
        if not self.dll_cache_dir.exists():
            return 0
        return sum(
            entry.stat().st_size
            for entry in self.dll_cache_dir.rglob("*")
            if entry.is_file()
        )
