"""
Shared fixtures for migration manager tests
"""

import logging
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, text

from migration_manager import MigrationRegistry
from migration_manager.config.logging_config import LOGGER_NAME

TODAY = datetime(2024, 1, 3, 10, 30, 0)
TABLE = 'migrations'


class FrozenClock:
    """Clock that only moves when told to"""

    def __init__(self, current):
        self.current = current

    def now(self):
        return self.current

    def advance(self, seconds=0, **kwargs):
        self.current = self.current + timedelta(seconds=seconds, **kwargs)
        return self.current

    def set(self, current):
        self.current = current


@pytest.fixture(autouse=True)
def reset_migration_logger():
    """Drop handlers installed by setup_migration_logging"""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clock():
    """Clock frozen at 2024-01-03 10:30"""
    return FrozenClock(TODAY)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so several connections share one database"""
    engine = create_engine(f"sqlite:///{tmp_path / 'migrations.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def connection(engine):
    with engine.connect() as conn:
        yield conn


@pytest.fixture
def other_connection(engine):
    """Second connection, standing in for another host"""
    with engine.connect() as conn:
        yield conn


@pytest.fixture
def registry():
    return MigrationRegistry()


@pytest.fixture
def applied():
    """Names of migrations in the order their apply() ran"""
    return []


@pytest.fixture
def recording_registry(registry, applied, clock):
    """Registry whose migrations record themselves and take one minute each"""

    def make(identifier):
        def apply(connection):
            applied.append(identifier)
            clock.advance(minutes=1)
        return apply

    def add(*identifiers):
        for identifier in identifiers:
            registry.register(identifier, make(identifier))
        return registry

    return add


@pytest.fixture
def ledger_rows():
    """Reader for raw ledger content as (name, dt_started, dt_finished) tuples"""

    def read(connection, table=TABLE):
        result = connection.execute(text(f"SELECT name, dt_started, dt_finished FROM {table} ORDER BY name"))
        rows = [tuple(row) for row in result]
        connection.commit()
        return rows

    return read
