"""
msgspec-based data models for type-safe, high-performance serialization.

This module provides:
- The manifest catalog (Manifest, VersionDescriptor)
- Detected game DLLs and update candidates (DetectedDLL, DLLUpdate)
- Backup metadata (Backup, BackedUpFile)
- Convenience functions for JSON encoding/decoding

JSON field names follow the on-disk formats shared with the manifest
publisher, so several attributes are renamed with msgspec.field(name=...).
"""

import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import msgspec

from .constants import LOGGER_NAME, UNKNOWN_VERSION, AcceleratorType, classify_dll

logger = logging.getLogger(LOGGER_NAME)


# =============================================================================
# Global Encoders/Decoders
# =============================================================================

def path_enc_hook(obj):
    """Encode pathlib paths as plain strings."""
    if isinstance(obj, Path):
        return str(obj)
    raise NotImplementedError(f"Cannot encode {type(obj)}")


json_encoder = msgspec.json.Encoder(enc_hook=path_enc_hook)
json_decoder = msgspec.json.Decoder()


def encode_json(obj) -> bytes:
    """
    Encode object to JSON bytes using msgspec.

    Args:
        obj: Any msgspec.Struct or serializable object

    Returns:
        JSON as bytes
    """
    return json_encoder.encode(obj)


def decode_json(data: bytes, type=None):
    """
    Decode JSON bytes to object using msgspec.

    Args:
        data: JSON as bytes
        type: Optional msgspec.Struct type for validation

    Returns:
        Decoded object (validated if type provided)
    """
    if type:
        return msgspec.json.decode(data, type=type)
    return json_decoder.decode(data)


def format_json(data: bytes, indent: int = 2) -> bytes:
    """Format JSON with indentation for pretty-printing."""
    return msgspec.json.format(data, indent=indent)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they can be compared with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Manifest
# =============================================================================

class VersionDescriptor(msgspec.Struct, frozen=True):
    """
    One downloadable version of an accelerator DLL as listed in the manifest.
    """
    version: str
    filename: str
    source_url: str = msgspec.field(name="url")
    sha256: str = ""
    size: int = 0
    release_date: Optional[datetime] = None
    notes: str = ""


class Manifest(msgspec.Struct):
    """
    Catalog of available DLL versions per accelerator type.

    Each list in ``dlls`` is newest-first as published; index 0 is the latest.
    """
    updated_at: Optional[datetime] = None
    schema_version: str = msgspec.field(default="1", name="version")
    repository: str = ""
    dlls: Dict[str, List[VersionDescriptor]] = msgspec.field(default_factory=dict)

    def latest(self, dll_type) -> Optional[VersionDescriptor]:
        versions = self.dlls.get(str(dll_type))
        if not versions:
            return None
        return versions[0]

    def by_version(self, dll_type, version: str) -> Optional[VersionDescriptor]:
        for descriptor in self.dlls.get(str(dll_type), []):
            if descriptor.version == version:
                return descriptor
        return None

    def resolve(self, dll_type, version: Optional[str] = None) -> Optional[VersionDescriptor]:
        """Latest descriptor when version is empty or "latest", else an exact match"""
        if not version or version == "latest":
            return self.latest(dll_type)
        return self.by_version(dll_type, version)

    def dll_types(self) -> List[str]:
        return sorted(self.dlls)

    def age(self, now: Optional[datetime] = None) -> float:
        """Seconds elapsed since ``updated_at``; infinite when the feed has no timestamp"""
        if self.updated_at is None:
            return math.inf
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        return (now - as_utc(self.updated_at)).total_seconds()


# =============================================================================
# Detected DLLs
# =============================================================================

class DetectedDLL(msgspec.Struct):
    """
    An accelerator DLL found inside a game installation.

    Supplied by the game detector; version is empty when it could not be read.
    """
    path: str
    filename: str
    dll_type: AcceleratorType
    version: str = ""

    @classmethod
    def from_path(cls, path) -> Optional["DetectedDLL"]:
        """
        Describe one explicitly given file, or return None if its name is not
        a recognized accelerator DLL.
        """
        path = Path(path)
        dll_type = classify_dll(path.name)
        if dll_type is None:
            return None

        from .version_reader import get_dll_version

        version = get_dll_version(path)
        return cls(
            path=str(path.absolute()),
            filename=path.name,
            dll_type=dll_type,
            version="" if version == UNKNOWN_VERSION else version,
        )

    @property
    def has_version(self) -> bool:
        return bool(self.version) and self.version != UNKNOWN_VERSION


class DLLUpdate(msgspec.Struct):
    """An installed DLL for which the manifest offers a newer version."""
    dll: DetectedDLL
    latest: VersionDescriptor

    @property
    def installed_version(self) -> str:
        return self.dll.version or UNKNOWN_VERSION


# =============================================================================
# Backups
# =============================================================================

class BackedUpFile(msgspec.Struct):
    """One original DLL copied into a game's backup directory."""
    original_path: str
    backup_path: str
    filename: str = msgspec.field(name="dll_name")
    version: str = ""


class Backup(msgspec.Struct):
    """
    Backup metadata for one game.

    Written once, after every file has been copied; never overwritten.
    """
    game_id: int = msgspec.field(name="app_id")
    game_name: str
    created_at: datetime
    backup_path: str
    files: List[BackedUpFile] = msgspec.field(default_factory=list)
