"""Logger setup: rich console output plus a private log file."""

import logging
import os
from pathlib import Path
from typing import Union

from rich.logging import RichHandler

from letsencrypt_configurator.ui import console

LOGGER_NAME: str = "letsencrypt_configurator"


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def setup_logger(log_file: Union[str, Path], debug: bool = False) -> logging.Logger:
    """Set up and configure the logger."""
    logger = get_logger()
    logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    for h in logger.handlers[:]:
        logger.removeHandler(h)

    console_handler = RichHandler(
        console=console, rich_tracebacks=True, show_path=False
    )
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    logger.addHandler(console_handler)

    log_file = Path(log_file)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
    except OSError as e:
        logger.warning(f"Could not open log file {log_file}: {e}")
        return logger

    file_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    try:
        # Secure the log file
        os.chmod(str(log_file), 0o600)
    except OSError as e:
        logger.warning(f"Could not set permissions on log file {log_file}: {e}")

    return logger
