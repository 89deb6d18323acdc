"""
Booking lifecycle: the state machine every booking moves through.

    PENDING_PAYMENT --confirm--> CONFIRMED
    PENDING_PAYMENT --expire---> EXPIRED      (terminal)
    PENDING_PAYMENT --cancel---> CANCELLED    (terminal)
    CONFIRMED       --cancel---> CANCELLED

Each transition is one atomic unit (see coordinator.py):
  1. take the exclusive hold(s): trip then booking for create, the booking
     (then its trip, when seats move) for everything else
  2. re-read and check the precondition against the persisted row
  3. apply booking field changes and seat changes
  4. commit - or roll everything back if any step raised

Seats are taken at create time and held while payment is pending:
  - confirm  -> no inventory change
  - expire   -> seats released
  - cancel   -> seats released only before the refund cutoff; after it the
                trip is imminent and the seats stay allocated

Refund policy (refundable_until_days_before, cancellation_fee_percent) is
read from the live trip row at cancellation time, not snapshotted at
creation. An edited policy therefore applies to existing bookings.
"""

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import joinedload

from trip_booking.core.clock import ONE_DAY, as_utc, utcnow
from trip_booking.core.config import get_settings
from trip_booking.core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    already_terminal,
    insufficient_seats,
    not_published,
)
from trip_booking.core.logging import get_logger
from trip_booking.core.metrics import booking_latency, record_transition
from trip_booking.models.booking import Booking, BookingState
from trip_booking.models.trip import Trip, TripStatus
from trip_booking.services import inventory_service
from trip_booking.services.coordinator import TransactionCoordinator, Unit

logger = get_logger(__name__)

CENTS = Decimal("0.01")


@dataclass
class CancellationResult:
    booking: Booking
    refund_amount: Decimal
    is_refundable: bool
    days_until_trip: int
    cutoff_days: int
    cancellation_fee_percent: int


def days_until(start_date: datetime, now: datetime) -> int:
    """Whole days from now until departure, floored (negative once departed)."""
    return math.floor((as_utc(start_date) - now) / ONE_DAY)


def compute_refund(
    price_at_booking: Decimal,
    days_until_trip: int,
    refundable_until_days_before: int,
    cancellation_fee_percent: int,
) -> tuple[Decimal, bool]:
    """
    Refund owed on cancellation and whether the cancellation is before cutoff.

    Strictly more than `refundable_until_days_before` days out: price minus the
    fee, rounded half-up to cents. Otherwise nothing.
    """
    is_refundable = days_until_trip > refundable_until_days_before
    if not is_refundable:
        return Decimal("0.00"), False
    fee = Decimal(cancellation_fee_percent or 0)
    refund = Decimal(str(price_at_booking)) * (Decimal(100) - fee) / Decimal(100)
    return refund.quantize(CENTS, rounding=ROUND_HALF_UP), True


async def lock_booking(unit: Unit, booking_id: int) -> Booking:
    """Take the booking hold and read the row under it. Raises NotFoundError."""
    await unit.hold("booking", booking_id)
    result = await unit.session.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


async def apply_confirm(unit: Unit, booking: Booking, payment_reference: str) -> None:
    booking.state = BookingState.CONFIRMED.value
    booking.payment_reference = payment_reference
    await unit.session.flush()
    record_transition("confirm", "applied")
    logger.info("booking_confirmed", booking_id=booking.id, payment_reference=payment_reference)


async def apply_expire(unit: Unit, booking: Booking, reason: str) -> None:
    booking.state = BookingState.EXPIRED.value
    await inventory_service.release(unit, booking.trip_id, booking.num_seats)
    await unit.session.flush()
    record_transition("expire", "applied")
    logger.info(
        "booking_expired",
        booking_id=booking.id,
        trip_id=booking.trip_id,
        seats_released=booking.num_seats,
        reason=reason,
    )


async def create_booking(
    coordinator: TransactionCoordinator,
    trip_id: int,
    user_id: str,
    num_seats: int = 1,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Reserve seats on a published trip and open a PENDING_PAYMENT booking.

    Raises NotFoundError, ConflictError (NOT_PUBLISHED, INSUFFICIENT_SEATS);
    none of them leave any change behind.
    """
    if not user_id:
        raise ValidationError("user_id is required")
    if num_seats is None or num_seats < 1:
        raise ValidationError("num_seats must be at least 1")

    now = now or utcnow()
    ttl = timedelta(minutes=get_settings().BOOKING_TTL_MINUTES)

    with booking_latency.labels(transition="create").time():
        try:
            async with coordinator.unit() as unit:
                trip = await inventory_service.lock_trip(unit, trip_id)

                if trip.status != TripStatus.PUBLISHED.value:
                    raise not_published(trip_id)

                if not await inventory_service.reserve(unit, trip.id, num_seats):
                    logger.warning(
                        "booking_failed_no_seats",
                        trip_id=trip_id,
                        requested=num_seats,
                        available=trip.available_seats,
                    )
                    raise insufficient_seats(num_seats, trip.available_seats)

                booking = Booking(
                    trip_id=trip.id,
                    user_id=user_id,
                    num_seats=num_seats,
                    state=BookingState.PENDING_PAYMENT.value,
                    price_at_booking=Decimal(str(trip.price)) * num_seats,
                    idempotency_key=str(uuid.uuid4()),
                    expires_at=now + ttl,
                )
                unit.session.add(booking)
                await unit.session.flush()
                await unit.session.refresh(booking)
        except ConflictError:
            record_transition("create", "rejected")
            raise

    record_transition("create", "applied")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        trip_id=trip_id,
        seats=num_seats,
        expires_at=booking.expires_at.isoformat(),
    )
    return booking


async def confirm_booking(
    coordinator: TransactionCoordinator,
    booking_id: int,
    payment_reference: str,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Mark a pending booking paid.

    A confirmation at or after expires_at is turned into the expire
    transition instead: the returned booking is then EXPIRED.
    """
    now = now or utcnow()
    with booking_latency.labels(transition="confirm").time():
        async with coordinator.unit() as unit:
            booking = await lock_booking(unit, booking_id)
            if booking.state != BookingState.PENDING_PAYMENT.value:
                record_transition("confirm", "rejected")
                raise ConflictError(
                    f"Cannot confirm booking {booking_id} in state {booking.state}",
                    code="INVALID_STATE",
                )
            if now >= as_utc(booking.expires_at):
                await apply_expire(unit, booking, reason="late_confirmation")
            else:
                await apply_confirm(unit, booking, payment_reference)
    return booking


async def expire_booking(
    coordinator: TransactionCoordinator,
    booking_id: int,
) -> bool:
    """Expire a pending booking. Returns False when it was already resolved."""
    with booking_latency.labels(transition="expire").time():
        async with coordinator.unit() as unit:
            booking = await lock_booking(unit, booking_id)
            if booking.state != BookingState.PENDING_PAYMENT.value:
                record_transition("expire", "noop")
                logger.debug("booking_expire_already_handled", booking_id=booking_id, state=booking.state)
                return False
            await apply_expire(unit, booking, reason="expired")
    return True


async def cancel_booking(
    coordinator: TransactionCoordinator,
    booking_id: int,
    now: Optional[datetime] = None,
) -> CancellationResult:
    """
    Cancel a pending or confirmed booking and compute its refund.

    Raises NotFoundError, or ConflictError(ALREADY_TERMINAL) for EXPIRED and
    CANCELLED bookings.
    """
    now = now or utcnow()
    with booking_latency.labels(transition="cancel").time():
        async with coordinator.unit() as unit:
            booking = await lock_booking(unit, booking_id)
            if booking.is_terminal:
                record_transition("cancel", "rejected")
                raise already_terminal(booking_id, booking.state)

            trip = await unit.session.get(Trip, booking.trip_id)
            days = days_until(trip.start_date, now)
            refund, is_refundable = compute_refund(
                booking.price_at_booking,
                days,
                trip.refundable_until_days_before,
                trip.cancellation_fee_percent,
            )

            booking.state = BookingState.CANCELLED.value
            booking.cancelled_at = now
            booking.refund_amount = refund
            if is_refundable:
                await inventory_service.release(unit, booking.trip_id, booking.num_seats)
            await unit.session.flush()

            result = CancellationResult(
                booking=booking,
                refund_amount=refund,
                is_refundable=is_refundable,
                days_until_trip=days,
                cutoff_days=trip.refundable_until_days_before,
                cancellation_fee_percent=trip.cancellation_fee_percent,
            )

    record_transition("cancel", "applied")
    logger.info(
        "booking_cancelled",
        booking_id=booking_id,
        trip_id=booking.trip_id,
        refund_amount=str(refund),
        days_until_trip=days,
        seats_restored=booking.num_seats if is_refundable else 0,
    )
    return result


async def get_booking(coordinator: TransactionCoordinator, booking_id: int) -> Booking:
    """Booking with its trip loaded (start date and refund policy)."""
    async with coordinator.read() as session:
        result = await session.execute(
            select(Booking).options(joinedload(Booking.trip)).where(Booking.id == booking_id)
        )
        booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking
