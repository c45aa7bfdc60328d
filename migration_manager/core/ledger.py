"""
Migration history ledger using SQLAlchemy Core.

One table records, per migration name, when it started and when it finished.
The same table carries the lock sentinel row (see lock.py).
"""

from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    MetaData, Table, Column, String, DateTime, Index, select, insert, update, delete
)
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from ..clock import default_clock
from ..config.logging_config import get_logger
from ..exceptions import UnexpectedValueError
from ..models import MigrationEntry, LedgerRecord, LOCK_NAME

# Formats accepted when a driver hands timestamps back as text
TIMESTAMP_FORMATS = ('%Y-%m-%d %H:%M:%S', '%Y-%m-%d %H:%M:%S.%f')


def build_ledger_table(table_name: str, metadata: Optional[MetaData] = None) -> Table:
    """
    Describe the ledger table

    Args:
        table_name: Name of the ledger table
        metadata: MetaData collection to attach the table to

    Returns:
        SQLAlchemy Table object
    """
    metadata = metadata if metadata is not None else MetaData()
    return Table(
        table_name,
        metadata,
        Column('name', String(512), primary_key=True),
        Column('dt_started', DateTime, nullable=False),
        Column('dt_finished', DateTime, nullable=True),
        Index(f'ix_{table_name}_dt_finished', 'dt_finished'),
    )


def coerce_timestamp(value) -> datetime:
    """
    Turn a stored finish time into a datetime

    Raises:
        UnexpectedValueError: If the value is missing or not a timestamp
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        for fmt in TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(value, fmt)
            except ValueError:
                continue
    raise UnexpectedValueError(f"Invalid migration finish date/time: {value!r}")


class HistoryLedger:
    """Reads and writes the migration ledger table on a shared connection."""

    def __init__(self, connection: Connection, table_name: str, clock=None):
        """
        Initialize ledger

        Args:
            connection: SQLAlchemy connection shared with the migrations
            table_name: Name of the ledger table
            clock: Object with a ``now()`` method, defaults to the system clock
        """
        self.connection = connection
        self.table_name = table_name
        self.clock = default_clock(clock)
        self.metadata = MetaData()
        self.table = build_ledger_table(table_name, self.metadata)
        self.logger = get_logger(self.__class__.__name__, table_name)

    @contextmanager
    def statement(self):
        """Run one ledger statement and commit it on its own."""
        try:
            yield self.connection
            self.connection.commit()
        except SQLAlchemyError:
            self.connection.rollback()
            raise

    def bootstrap(self) -> None:
        """Create the ledger table if it does not exist yet."""
        with self.statement() as conn:
            self.metadata.create_all(conn, checkfirst=True)
        self.logger.debug(f"Ledger table {self.table_name} ready")

    def now(self) -> datetime:
        return self.clock.now()

    def insert_row(self, name: str) -> int:
        """
        Insert an unfinished row

        Returns:
            Number of rows inserted
        """
        stmt = insert(self.table).values(name=name, dt_started=self.now(), dt_finished=None)
        with self.statement() as conn:
            result = conn.execute(stmt)
            return result.rowcount if result.rowcount is not None else 0

    def delete_row(self, name: str) -> int:
        """
        Delete a row by name

        Returns:
            Number of rows deleted
        """
        stmt = delete(self.table).where(self.table.c.name == name)
        with self.statement() as conn:
            result = conn.execute(stmt)
            return result.rowcount if result.rowcount is not None else 0

    def begin_record(self, name: str) -> None:
        """Record that a migration has started."""
        self.insert_row(name)

    def complete_record(self, name: str) -> datetime:
        """
        Record that a migration has finished

        Returns:
            The finish timestamp written to the ledger
        """
        finished_at = self.now()
        stmt = (
            update(self.table)
            .where(self.table.c.name == name)
            .values(dt_finished=finished_at)
        )
        with self.statement() as conn:
            conn.execute(stmt)
        return finished_at

    def get_record(self, name: str) -> Optional[LedgerRecord]:
        """Fetch a single ledger row, or None."""
        stmt = select(self.table).where(self.table.c.name == name)
        with self.statement() as conn:
            row = conn.execute(stmt).first()
        if row is None:
            return None
        return LedgerRecord(name=row.name, started_at=row.dt_started, finished_at=row.dt_finished)

    def find_unfinished(self) -> Optional[str]:
        """Return the name of a migration row that was started but never finished."""
        stmt = (
            select(self.table.c.name)
            .where(self.table.c.dt_finished.is_(None))
            .where(self.table.c.name != LOCK_NAME)
            .order_by(self.table.c.dt_started, self.table.c.name)
            .limit(1)
        )
        with self.statement() as conn:
            return conn.execute(stmt).scalar()

    def load_executed(self) -> List[MigrationEntry]:
        """
        Load executed migrations in the order they finished

        Returns:
            List of MigrationEntry with ``executed_at`` set

        Raises:
            UnexpectedValueError: If any row holds a malformed finish time
        """
        stmt = (
            select(self.table.c.name, self.table.c.dt_finished)
            .where(self.table.c.name != LOCK_NAME)
            .order_by(self.table.c.dt_finished, self.table.c.name)
        )
        try:
            with self.statement() as conn:
                rows = conn.execute(stmt).all()
        except (ValueError, TypeError) as e:
            # Result processors reject unparseable stored values while fetching
            raise UnexpectedValueError(f"Invalid migration finish date/time: {e}") from e

        executed = [
            MigrationEntry.from_record(row.name, coerce_timestamp(row.dt_finished))
            for row in rows
        ]
        self.logger.debug(f"Loaded {len(executed)} executed migrations")
        return executed
