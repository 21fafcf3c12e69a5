"""
Read the file version of a Windows DLL from its VS_FIXEDFILEINFO block.

The version is taken from the fixed binary block rather than the
StringFileInfo table, since vendors often leave "FileVersion" strings stale
or formatted with commas.
"""

import logging
import struct

import pefile

from .constants import LOGGER_NAME, UNKNOWN_VERSION

logger = logging.getLogger(LOGGER_NAME)

RESOURCE_SECTION = b".rsrc"
VS_VERSION_INFO_KEY = "VS_VERSION_INFO".encode("utf-16-le")
# 0xFEEF04BD stored little-endian
FIXED_FILE_INFO_SIGNATURE = struct.pack("<I", 0xFEEF04BD)

# signature(4) | struct version(4) | dwFileVersionMS(4) | dwFileVersionLS(4)
FILE_VERSION_OFFSET = 8


def format_version(major: int, minor: int, build: int, revision: int) -> str:
    """Join version components, dropping trailing zero build/revision."""
    if revision == 0:
        if build == 0:
            return f"{major}.{minor}"
        return f"{major}.{minor}.{build}"
    return f"{major}.{minor}.{build}.{revision}"


def extract_version_from_resource(data: bytes) -> str:
    """
    Locate VS_FIXEDFILEINFO inside raw resource section bytes.

    Args:
        data: Raw bytes of the .rsrc section

    Returns:
        Formatted version string, or UNKNOWN_VERSION if no usable block exists
    """
    key_index = data.find(VS_VERSION_INFO_KEY)
    if key_index == -1:
        return UNKNOWN_VERSION

    signature_index = data.find(FIXED_FILE_INFO_SIGNATURE, key_index)
    if signature_index == -1:
        return UNKNOWN_VERSION

    version_offset = signature_index + FILE_VERSION_OFFSET
    if version_offset + 8 > len(data):
        return UNKNOWN_VERSION

    file_version_ms, file_version_ls = struct.unpack_from("<II", data, version_offset)

    major = file_version_ms >> 16
    minor = file_version_ms & 0xFFFF
    build = file_version_ls >> 16
    revision = file_version_ls & 0xFFFF

    if major == 0 and minor == 0:
        return UNKNOWN_VERSION

    return format_version(major, minor, build, revision)


def get_dll_version(dll_path) -> str:
    """
    Read the file version of a DLL.

    Never raises: unreadable files, non-PE input and images without a
    resource section all yield UNKNOWN_VERSION.
    """
    try:
        pe = pefile.PE(str(dll_path), fast_load=True)
    except pefile.PEFormatError as e:
        logger.debug(f"Not a PE image, version unknown: {dll_path} ({e})")
        return UNKNOWN_VERSION
    except OSError as e:
        logger.warning(f"Could not open {dll_path} to read its version: {e}")
        return UNKNOWN_VERSION
    except Exception as e:
        logger.debug(f"Malformed PE image {dll_path}: {e}")
        return UNKNOWN_VERSION

    try:
        for section in pe.sections:
            if section.Name.rstrip(b"\x00") != RESOURCE_SECTION:
                continue
            return extract_version_from_resource(section.get_data())
    except Exception as e:
        logger.debug(f"Error reading resource section of {dll_path}: {e}")
        return UNKNOWN_VERSION
    finally:
        pe.close()

    return UNKNOWN_VERSION
