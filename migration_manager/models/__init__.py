"""
Data models for the migration manager.
"""

from .entry import (
    MigrationEntry, LedgerRecord, parse_migration_name, migration_name,
    MIGRATION_SUFFIX, LOCK_NAME
)

__all__ = [
    'MigrationEntry',
    'LedgerRecord',
    'parse_migration_name',
    'migration_name',
    'MIGRATION_SUFFIX',
    'LOCK_NAME',
]
