"""
Exclusive hold strategy interface.
Allows swapping the per-entity locking mechanism without changing the
booking lifecycle.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager


class HoldStrategy(ABC):
    """
    Interface for acquiring exclusive access to one entity for the duration
    of one atomic unit.

    Implementations:
    - RowLockHold: the store's own row locks (SELECT ... FOR UPDATE)
    - LocalHold: per-key asyncio.Lock inside this process
    - RedisHold: per-key lease lock shared by every service instance

    Keys look like "trip:42" or "booking:7". The coordinator releases a
    hold only after the unit has committed or rolled back.
    """

    @abstractmethod
    def acquire(self, key: str) -> AsyncContextManager[None]:
        """
        Block until `key` is exclusively held by the caller.

        Args:
            key: Entity key, "<entity>:<id>"

        Returns:
            Async context manager; leaving it releases the hold.
        """
        pass
