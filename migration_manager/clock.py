"""
Time sources for the migration ledger.

The ledger never asks the database for the current time; it uses a clock
object so start/finish timestamps can be controlled in tests.
"""

from datetime import datetime
from typing import Optional


class SystemClock:
    """Wall clock in local time, truncated to whole seconds."""

    def now(self) -> datetime:
        return datetime.now().replace(microsecond=0)


def default_clock(clock: Optional[object] = None):
    """Return the given clock or a SystemClock."""
    return clock if clock is not None else SystemClock()
