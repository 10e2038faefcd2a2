"""Tests for logging setup."""

import logging

import pytest

from ledger_recon.utils import LOGGER_NAME, setup_logging


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []


class TestSetupLogging:
    def test_string_level(self):
        logger = setup_logging("warning")

        assert logger.level == logging.WARNING
        assert len(logger.handlers) == 1

    def test_unknown_level_falls_back_to_info(self):
        assert setup_logging("chatty").level == logging.INFO

    def test_repeated_setup_replaces_handlers(self):
        setup_logging()
        logger = setup_logging()

        assert len(logger.handlers) == 1

    def test_file_receives_debug_below_console_level(self, tmp_path):
        log_file = tmp_path / "logs" / "recon.log"
        setup_logging(logging.WARNING, log_file)

        logging.getLogger(f"{LOGGER_NAME}.matching.engine").debug("candidate scored")

        assert "candidate scored" in log_file.read_text()
