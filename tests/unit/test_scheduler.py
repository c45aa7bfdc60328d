"""Unit tests for discovery and scheduling."""

from datetime import datetime

import pytest

from migration_manager.exceptions import MigrationIntegrityError, InvalidMigrationNameError
from migration_manager.migrations import (
    MigrationRegistry, discover, partition, select_pending, build_schedule
)
from migration_manager.migrations.scheduler import cutoff_for
from migration_manager.models import MigrationEntry

NOW = datetime(2024, 1, 3, 10, 30)


def noop(connection):
    pass


def entries(*names):
    return [MigrationEntry.from_name(name + '.py') for name in names]


class TestDiscover:
    """Test validation of registered migrations."""

    def test_returns_entries(self, registry):
        registry.register('2024-01-02_0000_AddIndex', noop)
        registry.register('2024-01-01_0000_CreateUsers', noop)
        found = discover(registry)
        assert [e.unit_name for e in found] == ['AddIndex', 'CreateUsers']

    def test_case_insensitive_duplicate(self, registry):
        registry.register('2024-01-01_0000_CreateUsers', noop)
        registry.register('2024-02-01_0000_createusers', noop)

        with pytest.raises(MigrationIntegrityError) as exc_info:
            discover(registry)
        message = str(exc_info.value)
        assert '2024-02-01_0000_createusers.py' in message
        assert '2024-01-01_0000_CreateUsers.py' in message

    def test_unit_without_apply(self, registry):
        class Broken:
            pass
        registry.register('2024-01-01_0000_Broken', Broken)
        with pytest.raises(MigrationIntegrityError, match='Migration class not found'):
            discover(registry)

    def test_unit_that_cannot_be_built(self, registry):
        class NeedsArgs:
            def __init__(self, db):
                self.db = db

            def apply(self, connection):
                pass
        registry.register('2024-01-01_0000_NeedsArgs', NeedsArgs)
        with pytest.raises(MigrationIntegrityError, match='not constructible'):
            discover(registry)

    def test_invalid_name(self, registry):
        registry.register('20240101_CreateUsers', noop)
        with pytest.raises(InvalidMigrationNameError):
            discover(registry)


class TestPartition:
    """Test the current/future split."""

    def test_cutoff_is_midnight_tomorrow(self):
        assert cutoff_for(NOW) == datetime(2024, 1, 4)
        assert cutoff_for(datetime(2024, 12, 31, 23, 59)) == datetime(2025, 1, 1)

    def test_today_is_current_regardless_of_time(self):
        current, future = partition(entries('2024-01-03_2359_LateToday', '2024-01-04_0000_Tomorrow'), NOW)
        assert [e.unit_name for e in current] == ['LateToday']
        assert [e.unit_name for e in future] == ['Tomorrow']

    def test_sorted_by_date_then_name(self):
        current, future = partition(entries(
            '2024-01-02_0000_Zeta',
            '2024-01-01_2300_beta',
            '2024-01-01_0100_Alpha',
            '2024-03-01_0000_Later',
            '2024-02-01_0000_Sooner',
        ), NOW)
        assert [e.unit_name for e in current] == ['Alpha', 'beta', 'Zeta']
        assert [e.unit_name for e in future] == ['Sooner', 'Later']

    def test_time_of_day_does_not_order_within_a_day(self):
        current, _ = partition(entries('2024-01-01_0100_Beta', '2024-01-01_2300_Alpha'), NOW)
        assert [e.unit_name for e in current] == ['Alpha', 'Beta']


class TestSelectPending:
    """Test pending computation."""

    def test_excludes_executed_names(self):
        current = entries('2024-01-01_0000_A', '2024-01-02_0000_B', '2024-01-03_0000_C')
        executed = [MigrationEntry.from_record('2024-01-02_0000_B.py', NOW)]
        pending = select_pending(current, executed)
        assert [e.unit_name for e in pending] == ['A', 'C']

    def test_executed_names_not_in_current_are_ignored(self):
        current = entries('2024-01-01_0000_A')
        executed = [MigrationEntry.from_record('2023-01-01_0000_Removed.py', NOW)]
        assert select_pending(current, executed) == current


class TestBuildSchedule:
    """Test the full schedule."""

    def test_collections(self):
        found = entries('2024-01-01_0000_CreateUsers', '2024-01-02_0000_AddIndex', '2024-06-01_0000_Future')
        executed = [MigrationEntry.from_record('2024-01-01_0000_CreateUsers.py', NOW)]

        schedule = build_schedule(found, executed, NOW)

        assert [e.unit_name for e in schedule.current] == ['CreateUsers', 'AddIndex']
        assert [e.unit_name for e in schedule.future] == ['Future']
        assert [e.unit_name for e in schedule.pending] == ['AddIndex']
        assert [e.unit_name for e in schedule.executed] == ['CreateUsers']
        assert schedule.executed is not executed
