"""
Database configuration and engine management.

The engine only matters to the command line front end; library users hand
the manager an already configured SQLAlchemy connection.
"""

from typing import Dict, Any
from copy import deepcopy
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = 'migrations'

DEFAULT_CONFIG = {
    'database': {
        'url': None,                       # Full SQLAlchemy URL, wins over db_type
        'db_type': 'sqlite',               # sqlite, mysql, postgresql, duckdb
        'connection_params': {
            'database': 'migrations.db',
        },
        'engine_args': {
            'pool_pre_ping': True,
            'echo': False,
        },
    },
    'migrations': {
        'table': DEFAULT_TABLE_NAME,       # Ledger table name
        'path': 'migrations',              # Directory or "package.module:registry"
    },
    'logging': {
        'level': 'INFO',
        'file': None,
    },
}


def get_default_config() -> Dict[str, Any]:
    """Get a copy of the default configuration dictionary."""
    return deepcopy(DEFAULT_CONFIG)


def build_url(db_type: str, connection_params: Dict[str, Any]) -> str:
    """
    Build a SQLAlchemy URL from a database type and parameters

    Args:
        db_type: Database type ('sqlite', 'mysql', 'postgresql', 'duckdb')
        connection_params: Database connection parameters

    Returns:
        SQLAlchemy connection string
    """
    if db_type == 'sqlite':
        database = connection_params.get('database', ':memory:')
        return f"sqlite:///{database}"
    elif db_type == 'duckdb':
        # Requires duckdb-engine
        database = connection_params.get('database', ':memory:')
        return f"duckdb:///{database}"
    elif db_type in ('mysql', 'postgresql'):
        default_port = 3306 if db_type == 'mysql' else 5432
        driver = 'mysql+pymysql' if db_type == 'mysql' else 'postgresql+psycopg2'
        user = connection_params.get('user', 'root' if db_type == 'mysql' else 'postgres')
        password = connection_params.get('password', '')
        host = connection_params.get('host', 'localhost')
        port = connection_params.get('port', default_port)
        database = connection_params.get('database', '')
        return f"{driver}://{user}:{password}@{host}:{port}/{database}"

    raise ConfigurationError(f"Unsupported database type: {db_type}")


def get_engine(config: Dict[str, Any]) -> Engine:
    """
    Create SQLAlchemy engine from the ``database`` section of a configuration

    Args:
        config: Full configuration dictionary

    Returns:
        SQLAlchemy Engine instance
    """
    db_config = config.get('database', {})
    url = db_config.get('url')
    if not url:
        url = build_url(db_config.get('db_type', 'sqlite'), db_config.get('connection_params', {}))

    engine_args = dict(db_config.get('engine_args') or {})
    engine_args.setdefault('pool_pre_ping', True)
    engine_args.setdefault('echo', False)

    logger.info(f"Creating engine for {url.split('://', 1)[0]}")
    return create_engine(url, **engine_args)
