"""Configuration loading for the migration manager.

This module provides:
- YAML configuration loading merged over defaults
- Environment variable overrides
- Configuration schema validation
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union
from copy import deepcopy
from jsonschema import validate, ValidationError

from .db_config import get_default_config
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["database", "migrations"],
    "properties": {
        "database": {
            "type": "object",
            "properties": {
                "url": {"type": ["string", "null"]},
                "db_type": {"type": "string", "enum": ["sqlite", "mysql", "postgresql", "duckdb"]},
                "connection_params": {"type": "object"},
                "engine_args": {"type": "object"}
            }
        },
        "migrations": {
            "type": "object",
            "required": ["table", "path"],
            "properties": {
                "table": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]{0,63}$"},
                "path": {"type": "string", "minLength": 1}
            }
        },
        "logging": {
            "type": "object",
            "properties": {
                "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
                                                    "debug", "info", "warning", "error", "critical"]},
                "file": {"type": ["string", "null"]}
            }
        }
    }
}


class ConfigManager:
    """Loads, merges and validates the manager configuration."""

    ENV_MAPPINGS = {
        'database.url': 'MIGRATIONS_DATABASE_URL',
        'migrations.table': 'MIGRATIONS_TABLE',
        'migrations.path': 'MIGRATIONS_PATH',
        'logging.level': 'MIGRATIONS_LOG_LEVEL',
    }

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize config manager.

        Args:
            config_path: Optional YAML file merged over the defaults
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = get_default_config()

        if self.config_path is not None:
            if not self.config_path.exists():
                raise ConfigurationError(f"Config file not found: {self.config_path}")
            self.config = self._deep_merge(self.config, self._load_yaml_file(self.config_path))

        self._apply_env_overrides()

    def _load_yaml_file(self, path: Path) -> Dict[str, Any]:
        """Safely load YAML file."""
        try:
            with open(path, 'r') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML file {path}: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigurationError(f"Config file must contain a dictionary, got {type(config).__name__}")
        return config

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = deepcopy(value)

        return result

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        for config_path, env_var in self.ENV_MAPPINGS.items():
            env_value = os.environ.get(env_var)
            if env_value:
                self.set(config_path, env_value)
                logger.debug(f"Applied environment override for {config_path}")

    def set(self, path: str, value: Any) -> None:
        """Set a nested configuration value using dot notation."""
        keys = path.split('.')
        current = self.config

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get a configuration value using dot notation.

        Args:
            path: Dot-separated path (e.g., 'migrations.table')
            default: Default value if path not found
        """
        current = self.config

        for key in path.split('.'):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default

        return current

    def validate(self) -> None:
        """Validate configuration against the schema.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        try:
            validate(self.config, CONFIG_SCHEMA)
        except ValidationError as e:
            location = '.'.join(str(p) for p in e.path) or '<root>'
            raise ConfigurationError(f"Invalid configuration at {location}: {e.message}") from e

    def get_config(self) -> Dict[str, Any]:
        """Get a copy of the merged configuration."""
        return deepcopy(self.config)


def load_config(config_path: Optional[Union[str, Path]] = None,
                overrides: Optional[Dict[str, Any]] = None) -> ConfigManager:
    """Load, override and validate configuration in one step.

    Args:
        config_path: Optional YAML file
        overrides: Dot-path values applied last (e.g. from command line flags)
    """
    manager = ConfigManager(config_path)
    for path, value in (overrides or {}).items():
        if value is not None:
            manager.set(path, value)
    manager.validate()
    return manager
