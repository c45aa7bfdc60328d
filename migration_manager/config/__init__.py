"""
Migration manager configuration.

This module handles:
- Database connection settings and engine creation
- YAML configuration with environment overrides
- Logging configuration
"""

from .db_config import get_default_config, get_engine, build_url, DEFAULT_CONFIG, DEFAULT_TABLE_NAME
from .config_manager import ConfigManager, load_config, CONFIG_SCHEMA
from .logging_config import setup_migration_logging, get_logger, MigrationLoggerAdapter

__all__ = [
    'get_default_config',
    'get_engine',
    'build_url',
    'DEFAULT_CONFIG',
    'DEFAULT_TABLE_NAME',
    'ConfigManager',
    'load_config',
    'CONFIG_SCHEMA',
    'setup_migration_logging',
    'get_logger',
    'MigrationLoggerAdapter',
]
