"""Tests for logging setup."""

import logging

from sitesmith.logging_config import configure_logging


class TestConfigureLogging:
    def test_levels(self):
        assert configure_logging().level == logging.INFO
        assert configure_logging(verbose=True).level == logging.DEBUG

    def test_repeated_calls_do_not_duplicate_handlers(self):
        configure_logging()
        logger = configure_logging()

        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_file_sink(self, tmp_path):
        log_file = tmp_path / "sitesmith.log"
        logger = configure_logging(log_file=log_file)

        logging.getLogger("sitesmith.service.runs").info("run started")
        for handler in logger.handlers:
            handler.flush()

        assert "run started" in log_file.read_text()
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
