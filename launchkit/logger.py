"""
launchkit logging setup.

Log layout:
- logs/system.log: routine operations (INFO+)
- logs/error.log: failures with stack traces (ERROR/CRITICAL)
- console: only what a developer needs to see (WARNING+)

RotatingFileHandler keeps the files bounded.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER_NAME = "launchkit"

# Log directory, overridable for deployments and tests
LOGS_DIR = Path(os.getenv("LAUNCHKIT_LOG_DIR", "") or Path(__file__).parent.parent / "logs")

MAX_BYTES = 5 * 1024 * 1024  # 5MB
BACKUP_COUNT = 3

Level = Union[int, str]


def level_from_name(level: Level) -> int:
    """Accept 10, "debug" or "DEBUG"."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def setup_logging(
    log_level: Level = logging.INFO,
    console_level: Level = logging.WARNING,
    logs_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Initialise the launchkit logger hierarchy.

    Args:
        log_level: level for system.log (default INFO), number or name
        console_level: level for stderr output (default WARNING), number or name
        logs_dir: directory for log files (default LOGS_DIR)

    Returns:
        The configured package root logger.
    """
    file_level = level_from_name(log_level)
    stderr_level = level_from_name(console_level)
    target_dir = Path(logs_dir) if logs_dir is not None else LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # handlers do the filtering

    # Avoid duplicate handlers on repeated setup
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    file_format = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_format = logging.Formatter(
        "[%(levelname)s] %(message)s"
    )

    system_handler = RotatingFileHandler(
        target_dir / "system.log",
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8"
    )
    system_handler.setLevel(file_level)
    system_handler.setFormatter(file_format)
    logger.addHandler(system_handler)

    error_handler = RotatingFileHandler(
        target_dir / "error.log",
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8"
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_format)
    logger.addHandler(error_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(stderr_level)
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Return a module logger under the launchkit namespace.

    Args:
        name: module name, e.g. "progress_tracker", "write_queue"
    """
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)
