"""
Logging setup for AccessGate entry points

Library modules only create module-level loggers; handlers are attached here
by the CLI. The log file lives at <data_dir>/logs/accessgate.log.
"""

import logging
from pathlib import Path

from accessgate.platform_utils import get_log_dir

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_FILENAME = "accessgate.log"


def configure_logging(data_dir: Path, verbose: bool = False) -> Path:
    """
    Configure console and file logging

    Args:
        data_dir: AccessGate data directory
        verbose: Log DEBUG to the console instead of WARNING

    Returns:
        Path of the log file
    """
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        handlers=[console_handler],
    )

    log_dir = get_log_dir(data_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILENAME

    logger = logging.getLogger("accessgate")
    logger.setLevel(logging.DEBUG)

    # Check if file handler already exists
    has_file_handler = any(
        isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file.resolve())
        for h in logger.handlers
    )

    if not has_file_handler:
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        file_handler.setLevel(logging.INFO)
        logger.addHandler(file_handler)

    return log_file
