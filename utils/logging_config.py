"""
Logging configuration for the GWAS Study Explorer.

Everything at DEBUG and above goes to a rotating app.log, errors are
duplicated into error.log, and the console gets the level the CLI asks for.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from config import LOG_DIR, LOG_LEVEL, LOG_FILE_SIZE, LOG_BACKUP_COUNT

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_dir: Optional[str] = None, console_level: int = logging.INFO) -> logging.Logger:
    """
    Configure the root logger and install the unhandled-exception hook.

    Calling it again replaces the previous handlers.

    Args:
        log_dir: Directory for app.log and error.log. Uses LOG_DIR if None.
        console_level: Minimum level printed to the console.

    Returns:
        logging.Logger: Configured root logger instance.
    """
    log_dir = log_dir or LOG_DIR
    os.makedirs(log_dir, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(LOG_LEVEL)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [
        (RotatingFileHandler(os.path.join(log_dir, 'app.log'),
                             maxBytes=LOG_FILE_SIZE, backupCount=LOG_BACKUP_COUNT), logging.DEBUG),
        (logging.FileHandler(os.path.join(log_dir, 'error.log'), mode='a'), logging.ERROR),
        (logging.StreamHandler(), console_level),
    ]
    for handler, level in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    sys.excepthook = global_exception_handler

    return root_logger


def global_exception_handler(exc_type, exc_value, exc_traceback):
    """Log an unhandled exception at CRITICAL, then defer to the default hook."""
    if not issubclass(exc_type, KeyboardInterrupt):
        logging.getLogger('unhandled').critical(
            f"Unhandled exception: {exc_type.__name__}: {exc_value}",
            exc_info=(exc_type, exc_value, exc_traceback)
        )
    sys.__excepthook__(exc_type, exc_value, exc_traceback)


def log_error(message: str, exception: Optional[BaseException] = None) -> None:
    """
    Log a handled failure, with its traceback when an exception is given.

    The record reaches error.log through the handler set up by setup_logging.

    Args:
        message: Error message
        exception: Optional exception object
    """
    logging.getLogger('error').error(message, exc_info=exception)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: Logger instance.
    """
    return logging.getLogger(name)
