"""
Logging configuration for EchoProbe.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

from .config import LoggingConfig


def setup_logging(config: LoggingConfig, level: int = logging.INFO) -> None:
    """Setup logging configuration."""
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if config.file:
        try:
            log_path = Path(config.file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                log_path,
                maxBytes=config.max_size * 1024 * 1024,  # MB to bytes
                backupCount=config.backup_count
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        except OSError as e:
            logging.warning(f"Failed to setup file logging: {e}")

    logging.getLogger('echoprobe').setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(f"echoprobe.{name}")
