"""
Migration manager.

Migrations are non-reversible. They are applied exactly once, in order of
scheduled date and then name, by whichever manager holds the ledger lock.
Migrations dated after today are reported but not run until their date.

Example:
    with engine.connect() as connection:
        with MigrationManager(connection, registry, 'migrations') as manager:
            manager.execute_migrations()
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.engine import Connection

from .executor import MigrationExecutor
from .registry import MigrationRegistry, load_directory
from .scheduler import MigrationSchedule, build_schedule, discover
from ..clock import default_clock
from ..config.db_config import DEFAULT_TABLE_NAME
from ..config.logging_config import get_logger
from ..core.ledger import HistoryLedger
from ..core.lock import LockManager
from ..models import MigrationEntry

MigrationSource = Union[MigrationRegistry, str, Path]


class MigrationManager:
    """
    Applies pending migrations while holding the ledger lock.

    Construction creates the ledger table, takes the lock, discovers the
    migrations and loads the execution history. If anything fails after the
    lock was taken, the lock is released before the error propagates. Once
    constructed, the caller must call ``release()``, or use the manager as a
    context manager which does it on every exit path.
    """

    def __init__(self, connection: Connection, source: MigrationSource,
                 table_name: str = DEFAULT_TABLE_NAME, clock=None):
        """
        Initialize migration manager.

        Args:
            connection: Configured SQLAlchemy connection, shared with migrations
            source: Registry of migrations, or a directory of migration files
            table_name: Ledger table name
            clock: Object with a ``now()`` method, defaults to the system clock

        Raises:
            MigrationLockError: Lock held elsewhere or an unfinished migration exists
            MigrationIntegrityError: Invalid or duplicate migrations
            UnexpectedValueError: Unreadable source or malformed ledger values
        """
        self.connection = connection
        self.source = source
        self.table_name = table_name
        self.clock = default_clock(clock)
        self.logger = get_logger(self.__class__.__name__, table_name)

        self.ledger = HistoryLedger(connection, table_name, self.clock)
        self.lock = LockManager(self.ledger)
        self.registry: Optional[MigrationRegistry] = None
        self.schedule = MigrationSchedule()
        self._locked = False

        self.ledger.bootstrap()
        self.lock.acquire()
        self._locked = True

        try:
            self.registry = self._load_source()
            entries = discover(self.registry)
            executed = self.ledger.load_executed()
            self.schedule = build_schedule(entries, executed, self.clock.now())
        except Exception:
            self.release()
            raise

        self.logger.debug(f"Manager ready with {len(self.schedule.pending)} pending migrations")
        self.executor = MigrationExecutor(connection, self.ledger, self.registry)

    def _load_source(self) -> MigrationRegistry:
        if isinstance(self.source, MigrationRegistry):
            return self.source
        return load_directory(self.source)

    def __enter__(self) -> 'MigrationManager':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def release(self) -> None:
        """Release the ledger lock. Safe to call more than once."""
        if not self._locked:
            return
        self.lock.release()
        self._locked = False

    unlock = release

    @property
    def is_locked(self) -> bool:
        return self._locked

    def executed_migrations(self) -> Tuple[MigrationEntry, ...]:
        """Executed migrations in completion order."""
        return tuple(self.schedule.executed)

    def pending_migrations(self) -> Tuple[MigrationEntry, ...]:
        """Migrations that should be executed now, in execution order."""
        return tuple(self.schedule.pending)

    def future_migrations(self) -> Tuple[MigrationEntry, ...]:
        """Migrations scheduled after today."""
        return tuple(self.schedule.future)

    def execute_migrations(self) -> List[MigrationEntry]:
        """
        Run every pending migration.

        Returns:
            Entries executed by this call

        The first failing migration stops the run; its error propagates as
        raised by the migration and the lock stays held until ``release()``.
        """
        return self.executor.run_all(self.schedule)

    def status(self) -> Dict[str, Any]:
        """
        Get current migration status.

        Returns:
            Dictionary with migration status information
        """
        return {
            'table': self.table_name,
            'executed_migrations': len(self.schedule.executed),
            'pending_migrations': len(self.schedule.pending),
            'future_migrations': len(self.schedule.future),
            'is_up_to_date': not self.schedule.pending,
            'executed_migration_list': [
                {'name': m.name, 'executed_at': m.executed_at.isoformat()}
                for m in self.schedule.executed
            ],
            'pending_migration_list': [
                {'name': m.name, 'scheduled_at': m.scheduled_at.date().isoformat()}
                for m in self.schedule.pending
            ],
            'future_migration_list': [
                {'name': m.name, 'scheduled_at': m.scheduled_at.date().isoformat()}
                for m in self.schedule.future
            ],
        }
