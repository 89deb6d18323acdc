"""
Redis-backed exclusive holds for multi-instance deployments.
Implements HoldStrategy using redis.asyncio locks.

Lease:
  Each hold carries a lease (HOLD_LEASE_SECONDS). If the holder process
  dies mid-unit, its transaction is rolled back by the database and the
  lease lets the key become free again instead of wedging the entity.
  The lease is much longer than a unit's O(1) critical section.

  Acquisition itself has no timeout: a waiting operation is bounded by
  its caller's own timeout, like a row lock wait.
"""

from contextlib import asynccontextmanager

from redis.exceptions import LockError

from trip_booking.core.logging import get_logger
from trip_booking.services.interfaces.hold import HoldStrategy

logger = get_logger(__name__)

KEY_PREFIX = "hold:"


class RedisHold(HoldStrategy):
    """
    Distributed per-key lock.

    Use when:
    - Several service instances
    - A store without row locks, so the database cannot serialize holders
    """

    def __init__(self, client, lease_seconds: int = 30):
        self.redis = client
        self.lease_seconds = lease_seconds

    @asynccontextmanager
    async def acquire(self, key: str):
        lock = self.redis.lock(f"{KEY_PREFIX}{key}", timeout=self.lease_seconds)
        await lock.acquire()
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Lease ran out before the unit finished; the key is already free.
                logger.warning("hold_lease_lost", key=key, lease_seconds=self.lease_seconds)
