"""
Centralized logging configuration for aegis.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = '[%(asctime)s] %(levelname)-8s %(name)-20s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
ROOT_LOGGER = 'aegis'

_configured = False


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the ``aegis`` logger hierarchy.

    Only the first call installs handlers; later calls just adjust the level.

    Args:
        level: Log level name, defaults to ``settings.log_level``
        log_file: Optional file that receives the same records

    Returns:
        The ``aegis`` root logger
    """
    global _configured

    if level is None or log_file is None:
        from aegis.config import settings
        level = level or settings.log_level
        log_file = log_file or settings.log_file

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if _configured:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _configured = True
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the ``aegis`` hierarchy."""
    if not name.startswith(ROOT_LOGGER):
        name = f'{ROOT_LOGGER}.{name}'
    return logging.getLogger(name)


class DatabaseLogger:
    """Special logger for database operations."""

    def __init__(self):
        self.logger = get_logger('aegis.database')

    def log_query(self, query: str, params: Optional[dict] = None):
        """Log database queries."""
        if params:
            self.logger.debug(f"SQL Query: {query} | Params: {params}")
        else:
            self.logger.debug(f"SQL Query: {query}")

    def log_connection(self, operation: str):
        """Log database connection operations."""
        self.logger.debug(f"Database connection: {operation}")

    def log_error(self, operation: str, error: Exception):
        """Log database errors."""
        self.logger.error(f"Database error in {operation}: {error}", exc_info=True)
