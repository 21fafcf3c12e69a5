"""
Test doubles and builders shared across the test suite.
"""

import hashlib
import struct
from datetime import datetime, timedelta, timezone
from pathlib import Path

import requests


# =============================================================================
# Synthetic PE images
# =============================================================================

def build_version_resource(major, minor, build=0, revision=0, prefix=b"\x00" * 24):
    """
    Build bytes resembling a .rsrc section holding a VS_VERSIONINFO block.
    """
    key = "VS_VERSION_INFO\x00".encode("utf-16-le")
    header = struct.pack("<HHH", 0, 52, 0) + key
    header += b"\x00" * (-len(header) % 4)

    file_version_ms = (major << 16) | minor
    file_version_ls = (build << 16) | revision
    fixed_info = struct.pack(
        "<13I",
        0xFEEF04BD,       # dwSignature
        0x00010000,       # dwStrucVersion
        file_version_ms,
        file_version_ls,
        file_version_ms,  # dwProductVersionMS
        file_version_ls,  # dwProductVersionLS
        0x3F, 0, 0x4, 0x2, 0, 0, 0,
    )
    block = header + fixed_info
    return prefix + struct.pack("<H", len(block)) + block[2:] + b"\x00" * 16


def build_pe(section_data, section_name=b".rsrc"):
    """
    Build a minimal PE32 DLL image with a single section.
    """
    file_alignment = 0x200
    section_alignment = 0x1000
    raw_size = len(section_data) + (-len(section_data) % file_alignment)
    raw_size = max(raw_size, file_alignment)

    dos_header = bytearray(64)
    dos_header[0:2] = b"MZ"
    struct.pack_into("<I", dos_header, 0x3C, 0x40)

    file_header = struct.pack(
        "<HHIIIHH",
        0x14C,   # Machine: i386
        1,       # NumberOfSections
        0,       # TimeDateStamp
        0,       # PointerToSymbolTable
        0,       # NumberOfSymbols
        224,     # SizeOfOptionalHeader
        0x2102,  # EXECUTABLE_IMAGE | 32BIT_MACHINE | DLL
    )

    optional_header = struct.pack(
        "<HBBIIIIIIIIIHHHHHHIIIIHHIIIIII",
        0x10B,              # Magic: PE32
        14, 0,              # Linker version
        0,                  # SizeOfCode
        raw_size,           # SizeOfInitializedData
        0,                  # SizeOfUninitializedData
        0,                  # AddressOfEntryPoint
        section_alignment,  # BaseOfCode
        section_alignment,  # BaseOfData
        0x10000000,         # ImageBase
        section_alignment,
        file_alignment,
        6, 0,               # OS version
        0, 0,               # Image version
        6, 0,               # Subsystem version
        0,                  # Win32VersionValue
        section_alignment * 2,  # SizeOfImage
        file_alignment,     # SizeOfHeaders
        0,                  # CheckSum
        2,                  # Subsystem: Windows GUI
        0,                  # DllCharacteristics
        0x100000, 0x1000,   # Stack reserve/commit
        0x100000, 0x1000,   # Heap reserve/commit
        0,                  # LoaderFlags
        16,                 # NumberOfRvaAndSizes
    ) + b"\x00" * (16 * 8)

    section_header = struct.pack(
        "<8sIIIIIIHHI",
        section_name.ljust(8, b"\x00"),
        len(section_data),  # VirtualSize
        section_alignment,  # VirtualAddress
        raw_size,           # SizeOfRawData
        file_alignment,     # PointerToRawData
        0, 0, 0, 0,
        0x40000040,         # INITIALIZED_DATA | MEM_READ
    )

    headers = bytes(dos_header) + b"PE\x00\x00" + file_header + optional_header + section_header
    headers += b"\x00" * (file_alignment - len(headers))
    return headers + section_data + b"\x00" * (raw_size - len(section_data))


def write_dll(path, major=3, minor=7, build=20, revision=0, payload=b""):
    """Write a PE DLL carrying the given file version; payload makes contents unique"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(build_pe(build_version_resource(major, minor, build, revision) + payload))
    return path


def sha256_hex(data):
    return hashlib.sha256(data).hexdigest()


# =============================================================================
# HTTP doubles
# =============================================================================

class FakeResponse:
    """Just enough of requests.Response for streaming and whole-body reads."""

    def __init__(self, content=b"", status_code=200, headers=None, fail_after=None):
        self._content = content
        self.status_code = status_code
        self.headers = {"content-length": str(len(content))} if headers is None else headers
        self.fail_after = fail_after
        self.closed = False

    @property
    def content(self):
        return self._content

    def iter_content(self, chunk_size=1):
        sent = 0
        for start in range(0, len(self._content), chunk_size):
            if self.fail_after is not None and sent >= self.fail_after:
                raise requests.ConnectionError("connection reset")
            chunk = self._content[start:start + chunk_size]
            sent += len(chunk)
            yield chunk

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class FakeSession:
    """
    Stand-in for requests.Session serving canned responses per URL.

    A value may be a FakeResponse, bytes (served with status 200) or an
    exception instance to raise.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def get(self, url, stream=False, timeout=None, **kwargs):
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(b"not found", status_code=404)
        if isinstance(route, Exception):
            raise route
        if isinstance(route, bytes):
            return FakeResponse(route)
        return route

    def count(self, url):
        return self.calls.count(url)


# =============================================================================
# Manifest payloads
# =============================================================================

MANIFEST_URL = "https://example.invalid/manifest.json"


def manifest_payload(updated_at=None, dlls=None):
    """Manifest JSON as published by the DLL repository"""
    if updated_at is None:
        updated_at = datetime.now(timezone.utc) - timedelta(hours=1)
    return {
        "version": "1",
        "updated_at": updated_at.isoformat(),
        "repository": "https://example.invalid/dlls",
        "dlls": dlls if dlls is not None else {
            "dlss": [
                {
                    "version": "3.7.20",
                    "filename": "nvngx_dlss.dll",
                    "url": "https://example.invalid/dlss/3.7.20.dll",
                    "sha256": "",
                    "size": 0,
                    "release_date": "2024-07-01T00:00:00Z",
                    "notes": "Preset E",
                },
                {
                    "version": "3.5.10",
                    "filename": "nvngx_dlss.dll",
                    "url": "https://example.invalid/dlss/3.5.10.dll",
                    "sha256": "",
                    "size": 0,
                    "release_date": "2023-10-01T00:00:00Z",
                },
            ],
        },
    }
