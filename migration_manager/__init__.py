"""
Forward-only database migration manager.

Applies dated migrations exactly once, in order, while holding a lock row in
the migration ledger table so that several hosts can deploy at the same time.

Key components:
- Ledger table and lock row on a SQLAlchemy connection
- Registry of migration units, or a directory of migration files
- Scheduling of current and future migrations
- Sequential executor with crash detection
"""

from .exceptions import (
    MigrationError, MigrationLockError, MigrationIntegrityError,
    UnexpectedValueError, InvalidMigrationNameError, ConfigurationError
)
from .clock import SystemClock
from .models import MigrationEntry, LedgerRecord, parse_migration_name
from .core import HistoryLedger, LockManager
from .migrations import (
    Migration, MigrationRegistry, MigrationManager, MigrationExecutor, load_directory
)

__version__ = "1.0.0"
__all__ = [
    # Errors
    "MigrationError",
    "MigrationLockError",
    "MigrationIntegrityError",
    "UnexpectedValueError",
    "InvalidMigrationNameError",
    "ConfigurationError",

    # Time
    "SystemClock",

    # Models
    "MigrationEntry",
    "LedgerRecord",
    "parse_migration_name",

    # Engine
    "HistoryLedger",
    "LockManager",
    "Migration",
    "MigrationRegistry",
    "MigrationManager",
    "MigrationExecutor",
    "load_directory",
]
