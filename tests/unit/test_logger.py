"""
Tests for the logging helpers.
"""

import logging
from logging.handlers import RotatingFileHandler

from market_stream.core.logger import ColoredFormatter, configure_logging, get_logger, setup_logger


class TestLogger:
    """Logger setup and reconfiguration."""

    def test_setup_logger_does_not_propagate(self):
        logger = setup_logger("market_stream.tests.setup", level="WARNING")
        assert logger.level == logging.WARNING
        assert logger.propagate is False
        assert len(logger.handlers) == 1

    def test_get_logger_reuses_handlers(self):
        first = get_logger("market_stream.tests.reuse")
        second = get_logger("market_stream.tests.reuse")
        assert first is second
        assert len(second.handlers) == 1

    def test_colored_formatter_restores_levelname(self):
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)
        output = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "boom" in output
        assert "\033[" in output
        assert record.levelname == "ERROR"

    def test_configure_logging_adds_shared_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "stream.log"
        first = get_logger("market_stream.tests.configure_a")
        second = get_logger("market_stream.tests.configure_b")

        try:
            configure_logging(level="DEBUG", log_file=log_file)

            file_handlers = [h for h in first.handlers if isinstance(h, RotatingFileHandler)]
            assert len(file_handlers) == 1
            assert file_handlers[0] in second.handlers
            assert first.level == logging.DEBUG

            first.info("hello file")
            file_handlers[0].flush()
            assert "hello file" in log_file.read_text(encoding="utf-8")
        finally:
            configure_logging(level="INFO")
