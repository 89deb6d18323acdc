"""
Tests for seat reserve/release and the capacity invariant under concurrency.
"""

import asyncio
import random

import pytest

from trip_booking.core.exceptions import NotFoundError, ValidationError
from trip_booking.services import inventory_service
from conftest import seats_of


async def _reserve(coordinator, trip_id, seats):
    async with coordinator.unit() as unit:
        return await inventory_service.reserve(unit, trip_id, seats)


async def _release(coordinator, trip_id, seats):
    async with coordinator.unit() as unit:
        await inventory_service.release(unit, trip_id, seats)


@pytest.mark.asyncio
async def test_reserve_decrements(coordinator, trip):
    assert await _reserve(coordinator, trip.id, 3) is True
    assert await seats_of(coordinator, trip.id) == 7


@pytest.mark.asyncio
async def test_reserve_more_than_available_fails_without_change(coordinator, trip):
    assert await _reserve(coordinator, trip.id, 11) is False
    assert await seats_of(coordinator, trip.id) == 10


@pytest.mark.asyncio
async def test_reserve_then_release_restores_count(coordinator, trip):
    await _reserve(coordinator, trip.id, 4)
    await _release(coordinator, trip.id, 4)
    assert await seats_of(coordinator, trip.id) == 10


@pytest.mark.asyncio
async def test_release_is_capped_at_capacity(coordinator, make_trip):
    trip = await make_trip(max_capacity=5, available_seats=4)
    await _release(coordinator, trip.id, 3)
    assert await seats_of(coordinator, trip.id) == 5

    # A second (double) release must not push past capacity either.
    await _release(coordinator, trip.id, 3)
    assert await seats_of(coordinator, trip.id) == 5


@pytest.mark.asyncio
async def test_non_positive_seat_counts_rejected(coordinator, trip):
    with pytest.raises(ValidationError):
        await _reserve(coordinator, trip.id, 0)
    with pytest.raises(ValidationError):
        await _release(coordinator, trip.id, -1)


@pytest.mark.asyncio
async def test_release_unknown_trip(coordinator):
    with pytest.raises(NotFoundError):
        await _release(coordinator, 999, 1)


@pytest.mark.asyncio
async def test_lock_trip_unknown(coordinator):
    with pytest.raises(NotFoundError):
        async with coordinator.unit() as unit:
            await inventory_service.lock_trip(unit, 12345)


@pytest.mark.asyncio
async def test_capacity_invariant_under_concurrent_interleavings(coordinator, make_trip):
    """Many concurrent reserve/release pairs never leave 0..max_capacity."""
    trip = await make_trip(max_capacity=6)
    rng = random.Random(7)
    observed = []

    async def worker():
        seats = rng.randint(1, 4)
        reserved = await _reserve(coordinator, trip.id, seats)
        observed.append(await seats_of(coordinator, trip.id))
        await asyncio.sleep(0)
        if reserved:
            await _release(coordinator, trip.id, seats)
        observed.append(await seats_of(coordinator, trip.id))

    await asyncio.gather(*(worker() for _ in range(25)))

    assert all(0 <= seats <= 6 for seats in observed)
    assert await seats_of(coordinator, trip.id) == 6
