"""Tests for the shared logger setup."""

import logging
from unittest.mock import patch

from scripts.lib.logger import setup_logger


def _close(logger):
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


class TestSetupLogger:
    def test_daily_file_handler(self, tmp_path):
        logger = setup_logger("solar_test.file", level="debug", log_to_file=True, log_dir=tmp_path)
        try:
            logger.info("refresh started")
            assert logger.level == logging.DEBUG
            (log_file,) = tmp_path.glob("*_solar_hub.log")
            assert "refresh started" in log_file.read_text(encoding="utf-8")
        finally:
            _close(logger)

    def test_handlers_are_attached_once(self):
        logger = setup_logger("solar_test.once", log_to_file=False)
        try:
            assert setup_logger("solar_test.once") is logger
            assert len(logger.handlers) == 1
        finally:
            _close(logger)

    def test_environment_controls_level_and_file(self, tmp_path):
        with patch.dict("os.environ", {"LOG_LEVEL": "warning", "LOG_TO_FILE": "false"}, clear=False):
            logger = setup_logger("solar_test.env", log_dir=tmp_path)
        try:
            assert logger.level == logging.WARNING
            assert len(logger.handlers) == 1
            assert list(tmp_path.iterdir()) == []
        finally:
            _close(logger)
