import logging

import pytest

from dlss_manager.constants import LOGGER_NAME
from dlss_manager.logger import get_logger, setup_logger


@pytest.fixture
def clean_logger():
    logger = logging.getLogger(LOGGER_NAME)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


def test_setup_writes_to_log_file(clean_logger, tmp_path):
    logger = setup_logger("test.log", log_dir=tmp_path / "logs")

    logger.info("Swapped nvngx_dlss.dll")
    for handler in logger.handlers:
        handler.flush()

    text = (tmp_path / "logs" / "test.log").read_text(encoding="utf-8")
    assert " - INFO - Swapped nvngx_dlss.dll" in text
    assert logger.propagate is False


def test_setup_is_idempotent(clean_logger, tmp_path):
    setup_logger("test.log", log_dir=tmp_path)
    setup_logger("test.log", log_dir=tmp_path)

    assert len(clean_logger.handlers) == 2


def test_get_logger_is_shared(clean_logger):
    assert get_logger() is clean_logger
    assert clean_logger.handlers == []
