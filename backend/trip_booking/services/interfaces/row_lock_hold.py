"""
Row-lock hold strategy - the database is the lock manager.
"""

from contextlib import asynccontextmanager

from trip_booking.services.interfaces.hold import HoldStrategy


class RowLockHold(HoldStrategy):
    """
    No process-side lock. The locking read the unit issues right after
    acquiring (SELECT ... FOR UPDATE) takes the row lock, and the database
    releases it at COMMIT/ROLLBACK.

    Use when:
    - PostgreSQL (or any store with row-level locks)
    - Several service instances share one database
    """

    @asynccontextmanager
    async def acquire(self, key: str):
        yield
