"""
Ledger storage and locking.
"""

from .ledger import HistoryLedger, build_ledger_table
from .lock import LockManager

__all__ = ['HistoryLedger', 'build_ledger_table', 'LockManager']
