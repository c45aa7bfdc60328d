"""
Exception hierarchy for the migration manager.

Every error raised by the engine derives from MigrationError. Errors raised
by a migration body are never wrapped and propagate as they are.
"""


class MigrationError(Exception):
    """Base exception for migration manager errors."""
    pass


class MigrationLockError(MigrationError):
    """Raised when the lock cannot be taken or an unfinished migration exists."""
    pass


class MigrationIntegrityError(MigrationError):
    """Raised when the discovered migrations are inconsistent."""
    pass


class UnexpectedValueError(MigrationError, ValueError):
    """Raised for malformed sources, malformed ledger values or unreadable locations."""
    pass


class InvalidMigrationNameError(MigrationIntegrityError, UnexpectedValueError):
    """Raised when a migration identifier does not follow YYYY-MM-DD_HHmm_<Name>.py"""
    pass


class ConfigurationError(MigrationError):
    """Raised when the manager configuration is invalid."""
    pass
