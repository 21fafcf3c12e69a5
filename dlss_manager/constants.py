from datetime import timedelta
from enum import StrEnum
from types import MappingProxyType


APP_NAME = "DLSS-Manager"
APP_AUTHOR = "dlss-manager"
LOGGER_NAME = "DLSSManager"

DEFAULT_MANIFEST_URL = (
    "https://raw.githubusercontent.com/jgabor/spela-dlls/main/manifest.json"
)
MANIFEST_CACHE_FILE = "manifest.json"
MANIFEST_MAX_AGE = timedelta(hours=24)

DLL_CACHE_DIR = "dlls"
BACKUPS_DIR = "backups"
LOCKS_DIR = "locks"
# A lock file without a readable PID is only reclaimed after this many seconds
LOCK_PID_GRACE_SECONDS = 10
BACKUP_METADATA_FILE = "backup.json"

DOWNLOAD_CHUNK_SIZE = 65536

UNKNOWN_VERSION = "unknown"


class AcceleratorType(StrEnum):
    """Accelerator technologies; the value is the manifest key for that type"""
    SR = "dlss"
    FRAME_GEN = "dlssg"
    RAY_RECON = "dlssd"
    XESS = "xess"
    FSR = "fsr"


DLL_TYPE_MAP = MappingProxyType({
    "nvngx_dlss.dll": AcceleratorType.SR,
    "nvngx_dlssg.dll": AcceleratorType.FRAME_GEN,
    "nvngx_dlssd.dll": AcceleratorType.RAY_RECON,
    "libxess.dll": AcceleratorType.XESS,
    "amd_fidelityfx_vk.dll": AcceleratorType.FSR,
    "amd_fidelityfx_dx12.dll": AcceleratorType.FSR,
})


DLL_TYPE_DESCRIPTIONS = MappingProxyType({
    AcceleratorType.SR: "DLSS Super Resolution DLL",
    AcceleratorType.FRAME_GEN: "DLSS Frame Generation DLL",
    AcceleratorType.RAY_RECON: "DLSS Ray Reconstruction DLL",
    AcceleratorType.XESS: "XeSS DLL",
    AcceleratorType.FSR: "FidelityFX Super Resolution DLL",
})


def classify_dll(filename):
    """Return the AcceleratorType for a DLL filename, or None if unrecognized"""
    return DLL_TYPE_MAP.get(filename.lower())
