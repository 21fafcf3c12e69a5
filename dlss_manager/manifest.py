"""
Manifest Store for DLSS Manager
Loads, caches and refreshes the remote catalog of accelerator DLL versions.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import msgspec
import requests

from .constants import (
    DEFAULT_MANIFEST_URL,
    LOGGER_NAME,
    MANIFEST_CACHE_FILE,
    MANIFEST_MAX_AGE,
)
from .exceptions import ManifestFetchError
from .models import Manifest, decode_json, encode_json, format_json
from .paths import as_cache_root
from .version_compare import VersionOrder, compare_versions

logger = logging.getLogger(LOGGER_NAME)


class ManifestStore:
    """
    Cached access to the DLL manifest.

    The cached copy lives at ``<cache root>/manifest.json`` and is reused
    while its ``updated_at`` is younger than ``max_age``.
    """

    def __init__(
        self,
        cache_root,
        repository_url: str = DEFAULT_MANIFEST_URL,
        max_age: timedelta = MANIFEST_MAX_AGE,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.cache_root = as_cache_root(cache_root)
        self.repository_url = repository_url or DEFAULT_MANIFEST_URL
        self.max_age = max_age
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def cache_path(self):
        return self.cache_root.join(MANIFEST_CACHE_FILE)

    def get(self, force_refresh: bool = False, source_url: Optional[str] = None) -> Manifest:
        """
        Return the cached manifest if it is fresh, otherwise fetch and cache it.

        Args:
            force_refresh: Skip the cached copy even if it is fresh
            source_url: Manifest URL, defaults to the store's repository URL

        Raises:
            ManifestFetchError: If a fetch is needed and fails
        """
        if not force_refresh:
            manifest = self.load_cached()
            if manifest is not None and self.is_fresh(manifest):
                logger.debug("Using cached DLL manifest")
                return manifest

        return self.refresh(source_url)

    def is_fresh(self, manifest: Manifest, now: Optional[datetime] = None) -> bool:
        return manifest.age(now) < self.max_age.total_seconds()

    def load_cached(self) -> Optional[Manifest]:
        """Get the cached manifest if available; a corrupt cache counts as absent"""
        try:
            with open(self.cache_path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Failed to read cached manifest: {e}")
            return None

        try:
            manifest = decode_json(data, type=Manifest)
        except msgspec.DecodeError as e:
            logger.warning(f"Ignoring corrupt cached manifest at {self.cache_path}: {e}")
            return None

        check_ordering(manifest)
        return manifest

    def save(self, manifest: Manifest) -> None:
        """Write the manifest to the cache atomically"""
        self.cache_root.ensure()
        temp_path = self.cache_path.with_name(self.cache_path.name + ".tmp")
        try:
            with open(temp_path, "wb") as f:
                f.write(format_json(encode_json(manifest), indent=2))
            os.replace(temp_path, self.cache_path)
        finally:
            if temp_path.exists():
                temp_path.unlink()

    def fetch(self, source_url: Optional[str] = None) -> Manifest:
        """Fetch and parse the remote manifest without touching the cache"""
        url = source_url or self.repository_url
        logger.info(f"Fetching DLL manifest from {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise ManifestFetchError(f"Failed to fetch manifest: {e}") from e

        try:
            if not 200 <= response.status_code < 300:
                raise ManifestFetchError(
                    f"Failed to fetch manifest: HTTP {response.status_code}"
                )
            data = response.content
        finally:
            response.close()

        try:
            manifest = decode_json(data, type=Manifest)
        except msgspec.DecodeError as e:
            raise ManifestFetchError(f"Failed to parse manifest: {e}") from e

        check_ordering(manifest)
        return manifest

    def refresh(self, source_url: Optional[str] = None) -> Manifest:
        """Fetch the remote manifest and overwrite the cached copy"""
        manifest = self.fetch(source_url)
        try:
            self.save(manifest)
        except OSError as e:
            raise ManifestFetchError(f"Failed to cache manifest: {e}") from e

        total = sum(len(versions) for versions in manifest.dlls.values())
        logger.info(
            f"Cached DLL manifest {manifest.schema_version} "
            f"({len(manifest.dlls)} types, {total} versions)"
        )
        return manifest

    def age(self) -> Optional[timedelta]:
        """
        Age of the cached manifest, or None if nothing is cached.
        A manifest without ``updated_at`` reports timedelta.max.
        """
        manifest = self.load_cached()
        if manifest is None:
            return None
        if manifest.updated_at is None:
            return timedelta.max
        return timedelta(seconds=manifest.age(datetime.now(timezone.utc)))


def check_ordering(manifest: Manifest) -> bool:
    """
    Log a warning for any type whose versions are not newest-first.
    The published order is kept as-is.
    """
    ordered = True
    for dll_type, versions in manifest.dlls.items():
        for newer, older in zip(versions, versions[1:]):
            if compare_versions(newer.version, older.version) == VersionOrder.LESS:
                logger.warning(
                    f"Manifest versions for {dll_type} are not newest-first "
                    f"({newer.version} listed before {older.version})"
                )
                ordered = False
                break
    return ordered
