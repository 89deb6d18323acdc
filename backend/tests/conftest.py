"""
Pytest fixtures for test database, coordinator, client, and trips.

Each test gets its own SQLite file (via aiosqlite) and a coordinator using
in-process holds, so the suite needs no PostgreSQL or Redis.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from trip_booking.main import app
from trip_booking.db.base import Base
from trip_booking.db.session import make_session_factory
from trip_booking.models import Booking, Trip, TripStatus
from trip_booking.services.coordinator import TransactionCoordinator, get_coordinator
from trip_booking.services.interfaces.local_hold import LocalHold

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh database file, dispose afterwards."""
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}",
        poolclass=NullPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def coordinator(engine: AsyncEngine) -> TransactionCoordinator:
    return TransactionCoordinator(make_session_factory(engine), LocalHold())


@pytest_asyncio.fixture(scope="function")
async def client(coordinator: TransactionCoordinator) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the coordinator dependency with the test one."""
    app.dependency_overrides[get_coordinator] = lambda: coordinator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_trip(coordinator: TransactionCoordinator):
    """Factory inserting a trip; defaults to a published 10-seat trip 30 days out."""

    async def _make_trip(start_date: datetime = None, **overrides) -> Trip:
        start_date = start_date or NOW + timedelta(days=30)
        capacity = overrides.pop("max_capacity", 10)
        values = dict(
            title="Dolomites Hut-to-Hut",
            destination="Cortina d'Ampezzo",
            start_date=start_date,
            end_date=start_date + timedelta(days=5),
            price=Decimal("100.00"),
            max_capacity=capacity,
            available_seats=capacity,
            status=TripStatus.PUBLISHED.value,
            refundable_until_days_before=7,
            cancellation_fee_percent=10,
        )
        values.update(overrides)
        trip = Trip(**values)
        async with coordinator.unit() as unit:
            unit.session.add(trip)
        return trip

    return _make_trip


@pytest_asyncio.fixture
async def trip(make_trip) -> Trip:
    return await make_trip()


async def seats_of(coordinator: TransactionCoordinator, trip_id: int) -> int:
    async with coordinator.read() as session:
        trip = await session.get(Trip, trip_id)
        return trip.available_seats


async def reload_booking(coordinator: TransactionCoordinator, booking_id: int) -> Booking:
    async with coordinator.read() as session:
        return await session.get(Booking, booking_id)
