"""
Migration discovery and scheduling.

Discovery validates every registered migration and splits them into the ones
whose date has arrived and the ones scheduled for later. Pending migrations
are the current ones the ledger has not seen finish.
"""

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Tuple

from .registry import MigrationRegistry
from ..config.logging_config import get_logger
from ..exceptions import MigrationIntegrityError
from ..models import MigrationEntry

logger = get_logger('scheduler')


@dataclass
class MigrationSchedule:
    """Manager state, rebuilt on every construction."""
    current: List[MigrationEntry] = field(default_factory=list)
    future: List[MigrationEntry] = field(default_factory=list)
    executed: List[MigrationEntry] = field(default_factory=list)
    pending: List[MigrationEntry] = field(default_factory=list)


def cutoff_for(now: datetime) -> datetime:
    """Midnight at the start of tomorrow; anything scheduled before it may run."""
    return datetime.combine(now.date() + timedelta(days=1), time.min)


def discover(registry: MigrationRegistry) -> List[MigrationEntry]:
    """
    Validate registered migrations

    Args:
        registry: Source of migration units

    Returns:
        One entry per registered migration, in registration order

    Raises:
        MigrationIntegrityError: On a case-insensitive duplicate unit name or
            a unit that cannot be applied
    """
    entries = []
    seen: Dict[str, str] = {}

    for name in registry.names():
        entry = MigrationEntry.from_name(name)

        key = entry.unit_name.lower()
        if key in seen:
            raise MigrationIntegrityError(
                f"Duplicate migration name: {entry.unit_name} "
                f"(file: {name}, already declared in: {seen[key]})"
            )
        seen[key] = name

        registry.resolve(name)
        entries.append(entry)

    return entries


def partition(entries: Iterable[MigrationEntry],
              now: datetime) -> Tuple[List[MigrationEntry], List[MigrationEntry]]:
    """
    Split entries into (current, future), each sorted by scheduled date then
    case-insensitive unit name. Only the date decides; the time in the name
    does not.
    """
    cutoff = cutoff_for(now)
    current = sorted((e for e in entries if e.scheduled_at < cutoff), key=lambda e: e.sort_key)
    future = sorted((e for e in entries if e.scheduled_at >= cutoff), key=lambda e: e.sort_key)
    return current, future


def select_pending(current: List[MigrationEntry],
                   executed: List[MigrationEntry]) -> List[MigrationEntry]:
    """Current migrations without a finished ledger row, in current's order."""
    executed_names = {entry.name for entry in executed}
    return [entry for entry in current if entry.name not in executed_names]


def build_schedule(entries: List[MigrationEntry], executed: List[MigrationEntry],
                   now: datetime) -> MigrationSchedule:
    """Compute all four collections from discovered and executed entries."""
    current, future = partition(entries, now)
    pending = select_pending(current, executed)

    logger.info(
        f"Discovered {len(current) + len(future)} migrations: "
        f"{len(pending)} pending, {len(future)} scheduled for later, {len(executed)} executed"
    )
    return MigrationSchedule(
        current=current,
        future=future,
        executed=list(executed),
        pending=pending,
    )
