"""
Migration discovery, scheduling and execution.

- Registry of migration units and directory loading
- Scheduling into current, future and pending migrations
- Sequential, forward-only execution
"""

from .registry import Migration, MigrationRegistry, FunctionMigration, load_directory
from .scheduler import MigrationSchedule, discover, partition, select_pending, build_schedule
from .executor import MigrationExecutor
from .manager import MigrationManager

__all__ = [
    'Migration',
    'MigrationRegistry',
    'FunctionMigration',
    'load_directory',
    'MigrationSchedule',
    'discover',
    'partition',
    'select_pending',
    'build_schedule',
    'MigrationExecutor',
    'MigrationManager',
]
