#!/usr/bin/env python3
"""
Migration manager command line.

Usage:
    migration-manager status                    # Show executed, pending and future migrations
    migration-manager run                       # Apply pending migrations
    migration-manager unlock                    # Remove a stale lock row left by a killed run
    migration-manager --migrations app.db.migrations:registry run
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Union

from rich.console import Console
from rich.table import Table

from .config import load_config, get_engine, setup_migration_logging
from .core import HistoryLedger, LockManager
from .exceptions import MigrationError, MigrationLockError
from .migrations import MigrationManager, MigrationRegistry
from .models import MigrationEntry

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_LOCKED = 2

logger = logging.getLogger('migrations.cli')


def resolve_source(spec: str) -> Union[MigrationRegistry, Path]:
    """
    Turn the --migrations value into a migration source.

    ``package.module:attribute`` imports a registry; anything else is a
    directory of migration files.
    """
    path = Path(spec)
    if path.is_dir() or ':' not in spec:
        return path

    module_name, attribute = spec.split(':', 1)
    module = importlib.import_module(module_name)
    registry = getattr(module, attribute, None)
    if not isinstance(registry, MigrationRegistry):
        raise MigrationError(f"{spec} is not a MigrationRegistry")
    return registry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='migration-manager',
        description="Apply dated, forward-only database migrations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--config', '-c', help='YAML configuration file')
    parser.add_argument('--database-url', help='SQLAlchemy database URL')
    parser.add_argument('--table', help='Migration ledger table name')
    parser.add_argument('--migrations', help='Migrations directory or module:registry')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--version', action='version', version='%(prog)s 1.0.0')

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('status', help='Show migration status')
    subparsers.add_parser('run', help='Apply pending migrations')
    subparsers.add_parser('unlock', help='Force removal of the lock row')
    return parser


def render_entries(console: Console, title: str, entries: Sequence[MigrationEntry],
                   style: str) -> None:
    """Display a list of migrations using rich."""
    if not entries:
        console.print(f"[dim]No {title.lower()}[/dim]")
        return

    table = Table(title=f"[bold {style}]{title}[/bold {style}]", show_header=True,
                  header_style="bold magenta")
    table.add_column("Migration", style="bold yellow")
    table.add_column("Scheduled", style="cyan")
    table.add_column("Executed", style="green")
    for entry in entries:
        table.add_row(
            entry.name,
            entry.scheduled_at.date().isoformat(),
            entry.executed_at.isoformat(sep=' ') if entry.is_executed else '-',
        )
    console.print(table)


def show_lock_holder(console: Console, connection, table_name: str) -> None:
    record = LockManager(HistoryLedger(connection, table_name)).lock_record()
    if record is not None:
        console.print(f"[yellow]Lock row present since {record.started_at.isoformat(sep=' ')}. "
                      f"If no run is active, remove it with 'unlock'.[/yellow]")


def cmd_status(manager: MigrationManager, console: Console) -> int:
    render_entries(console, "Executed migrations", manager.executed_migrations(), "green")
    render_entries(console, "Pending migrations", manager.pending_migrations(), "blue")
    render_entries(console, "Future migrations", manager.future_migrations(), "cyan")
    return EXIT_OK


def cmd_run(manager: MigrationManager, console: Console) -> int:
    pending = manager.pending_migrations()
    if not pending:
        console.print("[green]Database is up to date[/green]")
        return EXIT_OK

    console.print(f"[bold]Applying {len(pending)} migrations[/bold]")
    try:
        applied = manager.execute_migrations()
    except Exception as e:
        logger.debug("Migration failure details", exc_info=True)
        remaining = manager.pending_migrations()
        failed = remaining[0].name if remaining else '?'
        console.print(f"[bold red]Migration {failed} failed: {e}[/bold red]")
        console.print("[red]The run was halted. Fix the database and clear the unfinished "
                      "ledger row before running again.[/red]")
        return EXIT_FAILURE

    for entry in applied:
        console.print(f"[green]Applied[/green] {entry.name}")
    return EXIT_OK


def cmd_unlock(connection, table_name: str, console: Console) -> int:
    ledger = HistoryLedger(connection, table_name)
    ledger.bootstrap()
    lock = LockManager(ledger)
    if not lock.is_locked():
        console.print("[dim]No lock row present[/dim]")
        return EXIT_OK
    lock.release()
    console.print("[green]Lock row removed[/green]")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Run the command line with arguments."""
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        config = load_config(args.config, {
            'database.url': args.database_url,
            'migrations.table': args.table,
            'migrations.path': args.migrations,
            'logging.level': 'DEBUG' if args.debug else None,
        })
    except MigrationError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        return EXIT_FAILURE

    setup_migration_logging(config.get_config())
    table_name = config.get('migrations.table')
    engine = get_engine(config.get_config())

    try:
        with engine.connect() as connection:
            if args.command == 'unlock':
                return cmd_unlock(connection, table_name, console)

            try:
                source = resolve_source(config.get('migrations.path'))
                manager = MigrationManager(connection, source, table_name)
            except MigrationLockError as e:
                console.print(f"[bold red]{e}[/bold red]")
                show_lock_holder(console, connection, table_name)
                return EXIT_LOCKED

            with manager:
                if args.command == 'status':
                    return cmd_status(manager, console)
                return cmd_run(manager, console)
    except (MigrationError, ImportError) as e:
        logger.debug("Command failure details", exc_info=True)
        console.print(f"[bold red]Error: {e}[/bold red]")
        return EXIT_FAILURE
    finally:
        engine.dispose()


if __name__ == '__main__':
    sys.exit(main())
