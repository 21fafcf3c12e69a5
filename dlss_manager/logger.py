import logging
import sys
from pathlib import Path

import platformdirs

from .constants import APP_AUTHOR, APP_NAME, LOGGER_NAME


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def get_log_dir() -> Path:
    """Get the platform log directory for the application"""
    return Path(platformdirs.user_log_dir(APP_NAME, APP_AUTHOR))


def setup_logger(log_file_name="dlss_manager.log", log_dir=None):
    """
    Setups the application logger.
    param: log_file_name: filename to be used for the logfile.
    param: log_dir: directory for the logfile, defaults to the platform log dir.
    return: logger instance created.
    """
    logger = logging.getLogger(LOGGER_NAME)

    # Check if the logger has already been configured
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)

        log_dir = Path(log_dir) if log_dir is not None else get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file_path = log_dir / log_file_name

        console_handler = logging.StreamHandler(sys.stdout)
        file_handler = logging.FileHandler(log_file_path, encoding="utf-8")

        log_format = logging.Formatter(LOG_FORMAT)
        console_handler.setFormatter(log_format)
        file_handler.setFormatter(log_format)

        logger.addHandler(console_handler)
        logger.addHandler(file_handler)

        # Prevent propagation to avoid duplicate logs
        logger.propagate = False

    return logger


def get_logger():
    """Return the shared application logger without attaching handlers"""
    return logging.getLogger(LOGGER_NAME)
