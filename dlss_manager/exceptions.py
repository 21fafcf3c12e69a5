"""
Exception hierarchy for DLSS Manager.

Parse failures never surface here: version extraction degrades to
"unknown" instead of raising.
"""

from typing import Optional


class DLLManagerError(Exception):
    """Base class for every error raised by dlss_manager"""


class ManifestFetchError(DLLManagerError):
    """Raised when the remote manifest cannot be fetched or parsed"""


class DownloadError(DLLManagerError):
    """Raised when a DLL download fails (connection error or non-2xx status)"""


class ChecksumMismatchError(DownloadError):
    """
    Raised when a downloaded DLL does not match the manifest's SHA-256 digest.

    The partially written file has already been removed when this is raised.
    """

    def __init__(self, message: str, expected: str, actual: str):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class DLLNotFoundError(DLLManagerError):
    """Raised when a requested DLL is not part of a game or of the manifest"""


class BackupError(DLLManagerError):
    """Raised when a backup cannot be created or restored"""


class BackupNotFoundError(BackupError):
    """Raised when restoring a game that has no backup"""


class GameLockedError(DLLManagerError):
    """
    Raised when another live process holds the lock for a game.
    """

    def __init__(self, message: str, pid: Optional[int] = None):
        super().__init__(message)
        self.pid = pid
