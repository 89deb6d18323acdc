"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .hold import HoldStrategy
from .local_hold import LocalHold
from .row_lock_hold import RowLockHold

__all__ = ['HoldStrategy', 'LocalHold', 'RowLockHold']
