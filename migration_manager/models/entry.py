"""
Migration identity models.

This module defines Pydantic models for migration entries and ledger rows,
and the parser that turns a migration identifier into a MigrationEntry.
"""

import re
from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from ..exceptions import InvalidMigrationNameError

MIGRATION_SUFFIX = ".py"
LOCK_NAME = "/lock"

# YYYY-MM-DD_HHmm_<UnitName>.py
MIGRATION_NAME_PATTERN = re.compile(
    r'^(?P<stamp>\d{4}-\d{2}-\d{2}_\d{4})_(?P<unit>[A-Za-z_][A-Za-z0-9_]*)'
    + re.escape(MIGRATION_SUFFIX) + r'$'
)


def migration_name(identifier: str) -> str:
    """Return the ledger name for an identifier, adding the file suffix if missing."""
    if identifier.endswith(MIGRATION_SUFFIX):
        return identifier
    return identifier + MIGRATION_SUFFIX


def parse_migration_name(name: str) -> Tuple[str, datetime]:
    """
    Parse a migration identifier.

    Args:
        name: Identifier such as ``2024-01-01_0930_CreateUsers.py``

    Returns:
        Tuple of (unit name, scheduled date at midnight)

    Raises:
        InvalidMigrationNameError: If the name does not match the format or
            carries an impossible date/time
    """
    match = MIGRATION_NAME_PATTERN.match(name)
    if not match:
        raise InvalidMigrationNameError(
            f"A migration uses an invalid filename format: {name} "
            f"(expected YYYY-MM-DD_HHmm_<Name>{MIGRATION_SUFFIX})"
        )

    try:
        stamp = datetime.strptime(match.group('stamp'), '%Y-%m-%d_%H%M')
    except ValueError as e:
        raise InvalidMigrationNameError(
            f"A migration uses an invalid filename format: {name} ({e})"
        ) from e

    return match.group('unit'), stamp.replace(hour=0, minute=0, second=0, microsecond=0)


class MigrationEntry(BaseModel):
    """
    Identity and timing of one migration unit.

    ``name`` is the ledger primary key; ``unit_name`` and ``scheduled_at``
    are always derived from it.
    """

    name: str = Field(..., description="Source identifier, ledger primary key")
    unit_name: str = Field(..., description="Logical unit name derived from name")
    scheduled_at: datetime = Field(..., description="Date before which the migration must not run")
    executed_at: Optional[datetime] = Field(None, description="Completion time, set after execution")

    @field_validator('scheduled_at')
    @classmethod
    def validate_scheduled_at(cls, v):
        """Scheduled time is always midnight."""
        if (v.hour, v.minute, v.second, v.microsecond) != (0, 0, 0, 0):
            raise ValueError('scheduled_at must be truncated to midnight')
        return v

    @classmethod
    def from_name(cls, name: str) -> 'MigrationEntry':
        """Build a not yet executed entry from a migration identifier."""
        unit_name, scheduled_at = parse_migration_name(name)
        return cls(name=name, unit_name=unit_name, scheduled_at=scheduled_at)

    @classmethod
    def from_record(cls, name: str, finished_at: datetime) -> 'MigrationEntry':
        """Build an executed entry from a ledger row."""
        entry = cls.from_name(name)
        entry.executed_at = finished_at
        return entry

    @property
    def sort_key(self) -> Tuple[datetime, str]:
        return self.scheduled_at, self.unit_name.lower()

    @property
    def is_executed(self) -> bool:
        return self.executed_at is not None

    def mark_executed(self, executed_at: datetime) -> 'MigrationEntry':
        """Return a copy of this entry marked as executed."""
        return self.model_copy(update={'executed_at': executed_at})

    def __str__(self) -> str:
        return self.name


class LedgerRecord(BaseModel):
    """A row of the migration ledger table."""

    name: str = Field(..., description="Migration name or the lock sentinel")
    started_at: datetime = Field(..., description="Time the row was inserted")
    finished_at: Optional[datetime] = Field(None, description="Completion time")
