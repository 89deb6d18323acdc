"""
Transaction coordinator: runs one atomic unit of work.

UNIT OF WORK
============

    async with coordinator.unit() as unit:
        await unit.hold("trip", trip_id)
        ... reads and writes through unit.session ...

  - All writes inside the block commit together when it exits normally.
  - Any exception (a ConflictError raised for an unmet precondition
    included) rolls back every write made in the block, then propagates.
  - SQLAlchemyError is re-raised as InternalError so callers see one
    error taxonomy regardless of the driver.

Holds:
  unit.hold(entity, id) takes an exclusive hold through the configured
  HoldStrategy. Holds are reentrant within a unit (reserve after a locking
  trip read does not deadlock on itself) and are released only after the
  transaction has committed or rolled back, so no other unit can observe
  the entity between our last write and our commit.

  Lock order is trip before booking when a unit needs both from scratch.
  A unit that starts from a booking and then releases seats takes the trip
  hold second; this is safe because no unit ever waits on an existing
  booking while holding a trip.
"""

import time
from contextlib import AsyncExitStack, asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trip_booking.core.exceptions import InternalError
from trip_booking.core.logging import get_logger
from trip_booking.core.metrics import record_hold_wait
from trip_booking.db.session import get_session_factory
from trip_booking.services.interfaces.hold import HoldStrategy
from trip_booking.services.strategy_factory import get_hold_strategy

logger = get_logger(__name__)


class Unit:
    """One open atomic unit: a session inside a transaction plus its holds."""

    def __init__(self, session: AsyncSession, holds: HoldStrategy, stack: AsyncExitStack):
        self.session = session
        self._holds = holds
        self._stack = stack
        self._held: set[str] = set()

    async def hold(self, entity: str, entity_id) -> None:
        key = f"{entity}:{entity_id}"
        if key in self._held:
            return
        started = time.perf_counter()
        await self._stack.enter_async_context(self._holds.acquire(key))
        record_hold_wait(entity, time.perf_counter() - started)
        self._held.add(key)

    @property
    def held_keys(self) -> frozenset:
        return frozenset(self._held)


class TransactionCoordinator:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], holds: HoldStrategy):
        self.session_factory = session_factory
        self.holds = holds

    @asynccontextmanager
    async def unit(self) -> AsyncIterator[Unit]:
        # Exit order: commit/rollback, then holds released, then session closed.
        async with AsyncExitStack() as stack:
            session = await stack.enter_async_context(self.session_factory())
            holds_stack = await stack.enter_async_context(AsyncExitStack())
            unit = Unit(session, self.holds, holds_stack)
            try:
                async with session.begin():
                    yield unit
            except SQLAlchemyError as e:
                logger.error("unit_rolled_back", error=str(e), holds=sorted(unit.held_keys))
                raise InternalError("Storage failure, the operation was rolled back") from e

    @asynccontextmanager
    async def read(self) -> AsyncIterator[AsyncSession]:
        """Plain read session with no holds, for listing and lookups."""
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error("read_failed", error=str(e))
            raise InternalError("Storage failure while reading") from e


@lru_cache()
def get_coordinator() -> TransactionCoordinator:
    """FastAPI dependency; tests override it with a coordinator on their own engine."""
    return TransactionCoordinator(get_session_factory(), get_hold_strategy())
