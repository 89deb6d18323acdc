"""
Expiry sweep: the periodic pass that expires unpaid reservations.

Each tick lists PENDING_PAYMENT bookings whose expires_at has passed, then
expires them one by one, each in its own atomic unit. expire_booking
re-checks the state under the booking hold, so a booking a webhook resolved
between listing and locking is skipped. Overlapping sweeps, and sweeps
racing webhooks, are safe for the same reason.

One booking failing (storage error, lost hold) is logged and left for the
next tick; it never aborts the rest of the batch.
"""

import asyncio
from datetime import datetime
from typing import Optional

from sqlalchemy import select

from trip_booking.core.clock import utcnow
from trip_booking.core.logging import get_logger
from trip_booking.core.metrics import sweep_expired, sweep_failures
from trip_booking.models.booking import Booking, BookingState
from trip_booking.services import booking_service
from trip_booking.services.coordinator import TransactionCoordinator

logger = get_logger(__name__)


async def find_stale_pending(coordinator: TransactionCoordinator, now: datetime) -> list[int]:
    async with coordinator.read() as session:
        result = await session.execute(
            select(Booking.id)
            .where(
                Booking.state == BookingState.PENDING_PAYMENT.value,
                Booking.expires_at < now,
            )
            .order_by(Booking.expires_at.asc())
        )
        return list(result.scalars().all())


async def sweep_once(coordinator: TransactionCoordinator, now: Optional[datetime] = None) -> int:
    """Expire every stale pending booking. Returns how many were expired."""
    now = now or utcnow()
    stale = await find_stale_pending(coordinator, now)
    if not stale:
        return 0

    logger.info("sweep_found_stale", count=len(stale))
    expired = 0
    for booking_id in stale:
        try:
            if await booking_service.expire_booking(coordinator, booking_id):
                expired += 1
                sweep_expired.inc()
        except Exception as e:
            sweep_failures.inc()
            logger.error("sweep_expire_failed", booking_id=booking_id, error=str(e))

    logger.info("sweep_completed", found=len(stale), expired=expired)
    return expired


async def run_sweeper(
    coordinator: TransactionCoordinator,
    interval_seconds: float,
    stop: asyncio.Event,
) -> None:
    """Call sweep_once every interval until `stop` is set."""
    logger.info("sweeper_started", interval_seconds=interval_seconds)
    while not stop.is_set():
        try:
            await sweep_once(coordinator)
        except Exception as e:
            # Listing failed; try again next tick.
            logger.error("sweep_tick_failed", error=str(e))
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
        except asyncio.TimeoutError:
            pass
    logger.info("sweeper_stopped")
