"""
Sequential migration executor.

Migrations run one at a time in schedule order. There is no rollback: if a
migration raises, its ledger row stays unfinished, the error propagates
unchanged and the next manager refuses to start until someone clears it.

Ledger statements commit on the connection the migrations share. Whatever a
failed migration left uncommitted is committed by the next ledger write,
which is normally the lock release.
"""

import time
from typing import List

from sqlalchemy.engine import Connection

from .registry import MigrationRegistry
from .scheduler import MigrationSchedule
from ..config.logging_config import get_logger
from ..core.ledger import HistoryLedger
from ..models import MigrationEntry


class MigrationExecutor:
    """Runs pending migrations against the shared connection."""

    def __init__(self, connection: Connection, ledger: HistoryLedger, registry: MigrationRegistry):
        self.connection = connection
        self.ledger = ledger
        self.registry = registry
        self.logger = get_logger(self.__class__.__name__, ledger.table_name)

    def execute(self, entry: MigrationEntry) -> MigrationEntry:
        """
        Apply a single migration.

        Args:
            entry: Migration to apply

        Returns:
            The entry marked with its execution time
        """
        self.ledger.begin_record(entry.name)
        self.logger.migration(entry.name, 'started')
        start_time = time.time()

        try:
            migration = self.registry.instantiate(entry.name)
            migration.apply(self.connection)
        except Exception as e:
            self.logger.migration(entry.name, 'failed', time.time() - start_time, str(e))
            raise

        finished_at = self.ledger.complete_record(entry.name)
        self.logger.migration(entry.name, 'completed', time.time() - start_time)
        return entry.mark_executed(finished_at)

    def run_all(self, schedule: MigrationSchedule) -> List[MigrationEntry]:
        """
        Drain ``schedule.pending`` in order.

        Returns:
            Entries executed by this call
        """
        if not schedule.pending:
            self.logger.info("No pending migrations to run")
            return []

        applied = []
        while schedule.pending:
            done = self.execute(schedule.pending[0])
            schedule.pending.pop(0)
            schedule.executed.append(done)
            applied.append(done)

        self.logger.info(f"Successfully applied {len(applied)} migrations")
        return applied
