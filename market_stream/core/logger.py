"""
Logging system for the market stream client.

Provides colored terminal output and optional rotating file logs.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    GRAY = "\033[90m"
    CYAN = "\033[96m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BOLD = "\033[1m"


# Color mapping for log levels
LEVEL_COLORS = {
    logging.DEBUG: Colors.CYAN,
    logging.INFO: Colors.GREEN,
    logging.WARNING: Colors.YELLOW,
    logging.ERROR: Colors.RED,
    logging.CRITICAL: Colors.RED + Colors.BOLD,
}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name for terminal output."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, Colors.RESET)
        original = record.levelname
        record.levelname = f"{color}{original}{Colors.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class PlainFormatter(logging.Formatter):
    """Plain formatter for file output (no colors)."""
    pass


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logger(
    name: str,
    level: int | str | None = None,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """
    Set up and return a configured logger.

    Args:
        name: Logger name, typically the module name like "market_stream.stream.session"
        level: Log level. Defaults to LOG_LEVEL env var or INFO
        log_file: Log file path. Defaults to LOG_FILE env var; no file output if unset

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logger("market_stream.stream")
        >>> logger.info("WebSocket handshake successful.")
    """
    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    level = _resolve_level(level)
    logger.setLevel(level)
    for handler in _build_handlers(level, log_file):
        logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def _build_handlers(level: int, log_file: str | Path | None) -> list[logging.Handler]:
    # Terminal handler (colored)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))
    handlers: list[logging.Handler] = [console_handler]

    if log_file is None:
        log_file = os.getenv("LOG_FILE") or None

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(PlainFormatter(LOG_FORMAT, DATE_FORMAT))
        handlers.append(file_handler)

    return handlers


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger by name.

    If the logger doesn't exist, creates a new one with default settings.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger


def configure_logging(level: int | str | None = None, log_file: str | Path | None = None) -> None:
    """
    Reconfigure every logger created under the market_stream namespace.

    Called once by the CLI after configuration is loaded, so module-level
    loggers created at import time pick up the configured level and file.
    """
    resolved = _resolve_level(level)
    # One set of handlers shared by all loggers so a single file is rotated once
    handlers = _build_handlers(resolved, log_file)
    for name, logger in list(logging.root.manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger):
            continue
        if name != "market_stream" and not name.startswith("market_stream."):
            continue
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(resolved)
        for handler in handlers:
            logger.addHandler(handler)
        logger.propagate = False
