"""
Migration logging configuration.

This module sets up the ``migrations`` logger hierarchy. The log level comes
from the main configuration; handlers and formatting are configured here.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, Any, Optional

LOGGER_NAME = 'migrations'


class SafeFormatter(logging.Formatter):
    """Custom formatter that provides default values for missing fields."""

    def format(self, record):
        if not hasattr(record, 'table_context'):
            record.table_context = LOGGER_NAME
        return super().format(record)


def get_logger(component: str, table_name: Optional[str] = None) -> 'MigrationLoggerAdapter':
    """Return the adapter used by a manager component."""
    logger = logging.getLogger(f'{LOGGER_NAME}.{component.lower()}')
    return MigrationLoggerAdapter(logger, {'table_name': table_name})


def setup_migration_logging(main_config: Dict[str, Any]) -> logging.Logger:
    """
    Setup migration logging based on main configuration.

    Args:
        main_config: Main configuration dictionary

    Returns:
        Configured ``migrations`` logger
    """
    logging_config = main_config.get('logging', {})
    log_level = str(logging_config.get('level', 'INFO')).upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Remove any existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if log_level == 'DEBUG':
        console_format = '%(asctime)s - %(name)s - [%(table_context)s] - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    else:
        console_format = '%(asctime)s - [%(table_context)s] - %(levelname)s - %(message)s'

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(SafeFormatter(console_format, datefmt='%H:%M:%S'))
    logger.addHandler(console_handler)

    log_file = logging_config.get('file')
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(SafeFormatter(
            '%(asctime)s.%(msecs)03d - %(name)s - [%(table_context)s] - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    # Prevent propagation to root logger to avoid duplicate messages
    logger.propagate = False

    return logger


def log_migration_event(logger: logging.Logger, migration: str, event: str,
                        duration: float = None, error: str = None) -> None:
    """
    Log the outcome of a single migration step.

    Args:
        logger: Migration logger or adapter
        migration: Migration name
        event: 'started', 'completed' or 'failed'
        duration: Execution time in seconds
        error: Error message if the migration failed
    """
    if event == 'failed':
        message = f"Migration {migration} failed"
        if duration is not None:
            message += f" after {duration:.3f}s"
        if error:
            message += f": {error}"
        logger.error(message)
    elif event == 'completed':
        message = f"Migration {migration} completed"
        if duration is not None:
            message += f" in {duration:.3f}s"
        logger.info(message)
    else:
        logger.info(f"Migration {migration} {event}")


class MigrationLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that adds the ledger table name to log records.
    """

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any] = None):
        super().__init__(logger, extra or {})

    def process(self, msg, kwargs):
        """Add table context to log records."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}
        kwargs['extra']['table_context'] = self.extra.get('table_name') or LOGGER_NAME
        return msg, kwargs

    def migration(self, migration: str, event: str, duration: float = None,
                  error: str = None) -> None:
        """Log a migration step."""
        log_migration_event(self, migration, event, duration, error)
