"""
Tests for atomic units and exclusive hold strategies.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from redis.exceptions import LockNotOwnedError

from trip_booking.core.config import get_settings
from trip_booking.core.exceptions import ConflictError, InternalError
from trip_booking.models import Booking
from trip_booking.services import inventory_service
from trip_booking.services.interfaces import LocalHold, RowLockHold
from trip_booking.services.redis_hold import RedisHold
from trip_booking.services.strategy_factory import get_hold_strategy
from conftest import NOW, seats_of


@pytest.mark.asyncio
async def test_unit_rolls_back_every_write_on_failure(coordinator, trip):
    with pytest.raises(ConflictError):
        async with coordinator.unit() as unit:
            assert await inventory_service.reserve(unit, trip.id, 4)
            raise ConflictError("precondition failed after the seat change")

    assert await seats_of(coordinator, trip.id) == 10


@pytest.mark.asyncio
async def test_storage_failure_becomes_internal_error(coordinator, trip):
    with pytest.raises(InternalError):
        async with coordinator.unit() as unit:
            await inventory_service.reserve(unit, trip.id, 2)
            unit.session.add(Booking(
                trip_id=trip.id,
                user_id="u-1",
                num_seats=0,  # violates check_booking_num_seats_positive
                state="PENDING_PAYMENT",
                price_at_booking=Decimal("0"),
                idempotency_key="k-1",
                expires_at=NOW + timedelta(minutes=15),
            ))
            await unit.session.flush()

    assert await seats_of(coordinator, trip.id) == 10


@pytest.mark.asyncio
async def test_holds_are_reentrant_within_a_unit(coordinator, trip):
    async with coordinator.unit() as unit:
        await inventory_service.lock_trip(unit, trip.id)
        assert await inventory_service.reserve(unit, trip.id, 1)
        await inventory_service.release(unit, trip.id, 1)
        assert unit.held_keys == frozenset({f"trip:{trip.id}"})


@pytest.mark.asyncio
async def test_holds_released_after_unit(coordinator, trip):
    async with coordinator.unit() as unit:
        await unit.hold("trip", trip.id)
        assert coordinator.holds.is_held(f"trip:{trip.id}")
    assert not coordinator.holds.is_held(f"trip:{trip.id}")


@pytest.mark.asyncio
async def test_local_hold_serializes_same_key():
    holds = LocalHold()
    events = []

    async def critical(name):
        async with holds.acquire("booking:1"):
            events.append(f"{name}-in")
            await asyncio.sleep(0.01)
            events.append(f"{name}-out")

    await asyncio.gather(critical("a"), critical("b"))
    assert events in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])


@pytest.mark.asyncio
async def test_local_hold_different_keys_do_not_block():
    holds = LocalHold()
    async with holds.acquire("trip:1"):
        await asyncio.wait_for(_enter(holds, "trip:2"), timeout=1)


async def _enter(holds, key):
    async with holds.acquire(key):
        return True


class FakeLock:
    def __init__(self, calls, name, lost=False):
        self.calls = calls
        self.name = name
        self.lost = lost

    async def acquire(self):
        self.calls.append(("acquire", self.name))
        return True

    async def release(self):
        self.calls.append(("release", self.name))
        if self.lost:
            raise LockNotOwnedError("lease expired")


class FakeRedis:
    def __init__(self, lost=False):
        self.calls = []
        self.timeouts = []
        self.lost = lost

    def lock(self, name, timeout=None):
        self.timeouts.append(timeout)
        return FakeLock(self.calls, name, self.lost)


@pytest.mark.asyncio
async def test_redis_hold_acquires_and_releases_with_lease():
    client = FakeRedis()
    holds = RedisHold(client, lease_seconds=12)
    async with holds.acquire("trip:3"):
        assert client.calls == [("acquire", "hold:trip:3")]
    assert client.calls[-1] == ("release", "hold:trip:3")
    assert client.timeouts == [12]


@pytest.mark.asyncio
async def test_redis_hold_lost_lease_does_not_fail_the_unit():
    holds = RedisHold(FakeRedis(lost=True))
    async with holds.acquire("booking:9"):
        pass


def test_strategy_factory_selection(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "HOLD_STRATEGY", "local")
    assert isinstance(get_hold_strategy(), LocalHold)
    monkeypatch.setattr(settings, "HOLD_STRATEGY", "row_lock")
    assert isinstance(get_hold_strategy(), RowLockHold)
    monkeypatch.setattr(settings, "HOLD_STRATEGY", "something-else")
    assert isinstance(get_hold_strategy(), RowLockHold)


def test_strategy_factory_redis_requires_redis_enabled(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "HOLD_STRATEGY", "redis")
    monkeypatch.setattr(settings, "REDIS_ENABLED", False)
    with pytest.raises(RuntimeError):
        get_hold_strategy()
