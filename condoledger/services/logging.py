"""Logging configuration for the ledger engine and API server.

Provides dual output (stdout + file) with configurable level via LOG_LEVEL.
Default: INFO. Set LOG_LEVEL=WARNING for production, DEBUG for verbose output.
"""

import logging
import sys
from pathlib import Path

from condoledger.config import settings

# Map string level names to logging constants
LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def get_log_level(level_name: str | None = None) -> int:
    """Resolve a level name (default: settings.log_level) to a logging constant.

    Unknown names fall back to INFO.
    """
    level_str = (level_name or settings.log_level).upper()
    return LOG_LEVEL_MAP.get(level_str, logging.INFO)


def setup_logging(log_file: str | None = None, level_name: str | None = None) -> None:
    """
    Configure the root logger.

    Args:
        log_file: Path to log file (default: settings.log_file)
        level_name: Level name override (default: settings.log_level)

    Behavior:
        - Sets up all loggers to output to both stdout and file
        - ISO format timestamps for consistency
        - Replaces existing root handlers to avoid duplicates
    """
    log_path = Path(log_file or settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # ISO format: [YYYY-MM-DD HH:MM:SS]
    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_level = get_log_level(level_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
