"""
Hold strategy factory.
Configures which exclusive hold mechanism the coordinator uses.
"""

from trip_booking.core.config import get_settings
from trip_booking.core.logging import get_logger
from trip_booking.services.interfaces.hold import HoldStrategy
from trip_booking.services.interfaces.local_hold import LocalHold
from trip_booking.services.interfaces.row_lock_hold import RowLockHold

logger = get_logger(__name__)


def get_hold_strategy() -> HoldStrategy:
    """
    Get configured hold strategy.

    Strategy selection via HOLD_STRATEGY:
    - row_lock: PostgreSQL row locks (default)
    - local: in-process asyncio locks
    - redis: Redis lease locks (requires REDIS_ENABLED)
    """
    settings = get_settings()
    strategy = settings.HOLD_STRATEGY

    if strategy == "redis":
        if not settings.REDIS_ENABLED:
            raise RuntimeError("HOLD_STRATEGY=redis requires REDIS_ENABLED=true")
        from trip_booking.infrastructure.redis_client import get_redis
        from trip_booking.services.redis_hold import RedisHold

        return RedisHold(get_redis(), lease_seconds=settings.HOLD_LEASE_SECONDS)
    if strategy == "local":
        return LocalHold()
    if strategy != "row_lock":
        logger.warning("unknown_hold_strategy", strategy=strategy, fallback="row_lock")
    return RowLockHold()
