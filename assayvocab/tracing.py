"""Logging setup for assayvocab.

Library modules log through ``logging.getLogger(__name__)``, so everything ends
up under the package logger configured here.
"""

import logging
import sys
from pathlib import Path

logger = logging.getLogger("assayvocab")


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure logging for the package.

    Args:
        verbose: If True, show DEBUG level logs
        log_file: Optional file to write logs to
    """
    level = logging.DEBUG if verbose else logging.INFO

    fmt = "%(asctime)s %(levelname)s %(message)s"
    datefmt = "%H:%M:%S"

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(fmt, datefmt))

    # DEBUG on the logger when a file is attached, so the file gets everything
    logger.setLevel(logging.DEBUG if log_file else level)
    logger.handlers = [console_handler]

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)  # Always verbose in file
        file_handler.setFormatter(logging.Formatter(fmt, datefmt))
        logger.addHandler(file_handler)

    logger.propagate = False
