"""
Trip seat inventory.

CONCURRENCY STRATEGY: Exclusive hold + conditional UPDATE
=========================================================

Problem:
  Two bookings try to take the last seat simultaneously.
  Both read available_seats=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  Every seat change runs inside an atomic unit that holds the trip:

  1. unit.hold("trip", id) + SELECT ... FOR UPDATE
  2. UPDATE trips SET available_seats = available_seats - N
     WHERE id = :trip_id AND available_seats >= N
  3. rows_affected == 0 means not enough seats -> reserve fails

  The hold serializes read-check-write on one trip; the WHERE clause makes
  the decrement itself conditional, and the CHECK constraints
  (0 <= available_seats <= max_capacity) are the final safety net.

  Release is capped at max_capacity so a double release can never push the
  counter above capacity.

The counter lives in the shared database, never in process memory: every
service instance decrements the same row.
"""

from sqlalchemy import case, select, update

from trip_booking.core.exceptions import NotFoundError, ValidationError
from trip_booking.core.logging import get_logger
from trip_booking.models.trip import Trip
from trip_booking.services.coordinator import Unit

logger = get_logger(__name__)


async def lock_trip(unit: Unit, trip_id: int) -> Trip:
    """Take the trip hold and read the row under it. Raises NotFoundError."""
    await unit.hold("trip", trip_id)
    result = await unit.session.execute(
        select(Trip)
        .where(Trip.id == trip_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    trip = result.scalar_one_or_none()
    if not trip:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip


async def reserve(unit: Unit, trip_id: int, seats: int) -> bool:
    """Decrement available_seats by `seats` only if enough are left."""
    if seats <= 0:
        raise ValidationError("Seat count must be positive")
    await unit.hold("trip", trip_id)
    result = await unit.session.execute(
        update(Trip)
        .where(Trip.id == trip_id, Trip.available_seats >= seats)
        .values(available_seats=Trip.available_seats - seats)
        .execution_options(synchronize_session=False)
    )
    reserved = result.rowcount > 0
    logger.debug("seats_reserve", trip_id=trip_id, seats=seats, reserved=reserved)
    return reserved


async def release(unit: Unit, trip_id: int, seats: int) -> None:
    """Increment available_seats by `seats`, capped at max_capacity."""
    if seats <= 0:
        raise ValidationError("Seat count must be positive")
    await unit.hold("trip", trip_id)
    restored = Trip.available_seats + seats
    result = await unit.session.execute(
        update(Trip)
        .where(Trip.id == trip_id)
        .values(
            available_seats=case(
                (restored > Trip.max_capacity, Trip.max_capacity),
                else_=restored,
            )
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"Trip {trip_id} not found")
    logger.debug("seats_released", trip_id=trip_id, seats=seats)


async def get_availability(session, trip_id: int) -> Trip:
    result = await session.execute(select(Trip).where(Trip.id == trip_id))
    trip = result.scalar_one_or_none()
    if not trip:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip
