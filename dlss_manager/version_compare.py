from enum import IntEnum
from functools import lru_cache

from packaging import version


class VersionOrder(IntEnum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


def version_components(version_string):
    """
    Split a dotted version into integers.
    A leading "v" is ignored and non-numeric components count as 0.
    """
    if not version_string:
        return (0,)
    if version_string.startswith("v"):
        version_string = version_string[1:]
    return tuple(
        int(part) if part.isascii() and part.isdigit() else 0
        for part in version_string.split(".")
    )


@lru_cache(maxsize=512)
def parse_version(version_string):
    """
    Parse a version string into a comparable packaging Version.
    Never raises: malformed components are normalized to 0.
    """
    components = version_components(version_string)
    return version.Version(".".join(str(part) for part in components))


def compare_versions(a, b) -> VersionOrder:
    """Order two dotted version strings; missing trailing components count as 0."""
    parsed_a = parse_version(a)
    parsed_b = parse_version(b)
    if parsed_a < parsed_b:
        return VersionOrder.LESS
    if parsed_a > parsed_b:
        return VersionOrder.GREATER
    return VersionOrder.EQUAL


def is_newer(installed, available) -> bool:
    """True if the available version is newer than the installed one."""
    return compare_versions(installed, available) == VersionOrder.LESS
