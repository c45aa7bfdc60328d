"""
Cross-process migration lock built on the ledger table.

The lock is a reserved ledger row. Inserting it fails on the primary key when
another manager already holds it. The lock never expires: a killed process
leaves the row behind and someone has to remove it by hand.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from .ledger import HistoryLedger
from ..config.logging_config import get_logger
from ..exceptions import MigrationLockError
from ..models import LedgerRecord, LOCK_NAME


class LockManager:
    """Acquires and releases the ledger sentinel row."""

    def __init__(self, ledger: HistoryLedger):
        self.ledger = ledger
        self.logger = get_logger(self.__class__.__name__, ledger.table_name)

    def acquire(self) -> None:
        """
        Take the lock and check for crash residue.

        Raises:
            MigrationLockError: If another run holds the lock, or a previous
                run left a migration started but unfinished
        """
        try:
            affected = self.ledger.insert_row(LOCK_NAME)
        except SQLAlchemyError as e:
            raise MigrationLockError("Failed to lock migrations (already running?)") from e
        if affected == 0:
            raise MigrationLockError(
                "Failed to lock migrations (already running?): no rows affected"
            )
        self.logger.info("Migration lock acquired")

        try:
            unfinished = self.ledger.find_unfinished()
        except Exception:
            self.release()
            raise

        if unfinished is not None:
            self.release()
            raise MigrationLockError(
                f"An unfinished migration was detected. Manual intervention required: {unfinished}"
            )

    def release(self) -> None:
        """Delete the sentinel row. Deleting a missing sentinel is not an error."""
        try:
            deleted = self.ledger.delete_row(LOCK_NAME)
        except SQLAlchemyError as e:
            # A failed migration may have left the transaction unusable
            self.logger.warning(f"Retrying lock release after rollback: {e}")
            deleted = self.ledger.delete_row(LOCK_NAME)

        if deleted:
            self.logger.info("Migration lock released")
        else:
            self.logger.debug("Migration lock was not held")

    def lock_record(self) -> Optional[LedgerRecord]:
        """Return the sentinel row if some run holds the lock."""
        return self.ledger.get_record(LOCK_NAME)

    def is_locked(self) -> bool:
        return self.lock_record() is not None
