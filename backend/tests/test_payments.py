"""
Tests for payment webhook reconciliation: idempotency, ordering, and the
always-acknowledge policy.
"""

from contextlib import asynccontextmanager
from datetime import timedelta

import pytest

from trip_booking.core.exceptions import InternalError
from trip_booking.models import BookingState
from trip_booking.schemas.payment import PaymentWebhook, WebhookAck
from trip_booking.services.booking_service import create_booking, expire_booking
from trip_booking.services.coordinator import TransactionCoordinator
from trip_booking.services.webhook_service import reconcile
from conftest import NOW, reload_booking, seats_of


def webhook_for(booking, status="success", **overrides):
    payload = dict(
        booking_id=booking.id,
        status=status,
        idempotency_key=booking.idempotency_key,
        payment_reference="pay_abc",
    )
    payload.update(overrides)
    return PaymentWebhook(**payload)


@pytest.mark.asyncio
async def test_success_confirms_booking(coordinator, trip):
    booking = await create_booking(coordinator, trip.id, "user-1", 2, now=NOW)

    ack = await reconcile(coordinator, webhook_for(booking), now=NOW + timedelta(minutes=1))

    assert ack == WebhookAck(booking_state=BookingState.CONFIRMED.value)
    stored = await reload_booking(coordinator, booking.id)
    assert stored.state == BookingState.CONFIRMED.value
    assert stored.payment_reference == "pay_abc"
    assert await seats_of(coordinator, trip.id) == 8


@pytest.mark.asyncio
async def test_payment_reference_defaults_to_idempotency_key(coordinator, trip):
    booking = await create_booking(coordinator, trip.id, "user-1", 1, now=NOW)
    await reconcile(coordinator, webhook_for(booking, payment_reference=None), now=NOW)

    stored = await reload_booking(coordinator, booking.id)
    assert stored.payment_reference == booking.idempotency_key


@pytest.mark.asyncio
async def test_duplicate_delivery_is_noop(coordinator, trip):
    booking = await create_booking(coordinator, trip.id, "user-1", 1, now=NOW)
    event = webhook_for(booking)

    first = await reconcile(coordinator, event, now=NOW)
    second = await reconcile(coordinator, event, now=NOW)

    assert first.received and second.received
    assert first.duplicate is None
    assert second.duplicate is True
    assert (await reload_booking(coordinator, booking.id)).state == BookingState.CONFIRMED.value
    assert await seats_of(coordinator, trip.id) == 9


@pytest.mark.asyncio
async def test_failed_payment_expires_and_releases(coordinator, trip):
    booking = await create_booking(coordinator, trip.id, "user-1", 3, now=NOW)

    ack = await reconcile(coordinator, webhook_for(booking, status="failed"), now=NOW)

    assert ack.booking_state == BookingState.EXPIRED.value
    assert await seats_of(coordinator, trip.id) == 10


@pytest.mark.asyncio
async def test_late_success_expires(coordinator, trip):
    booking = await create_booking(coordinator, trip.id, "user-1", 2, now=NOW)

    ack = await reconcile(coordinator, webhook_for(booking), now=NOW + timedelta(minutes=16))

    assert ack.expired is True
    assert (await reload_booking(coordinator, booking.id)).state == BookingState.EXPIRED.value
    assert await seats_of(coordinator, trip.id) == 10


@pytest.mark.asyncio
async def test_out_of_order_success_after_failure(coordinator, trip):
    booking = await create_booking(coordinator, trip.id, "user-1", 1, now=NOW)

    await reconcile(coordinator, webhook_for(booking, status="failed"), now=NOW)
    ack = await reconcile(coordinator, webhook_for(booking, status="success"), now=NOW)

    assert ack.duplicate is True
    assert (await reload_booking(coordinator, booking.id)).state == BookingState.EXPIRED.value
    assert await seats_of(coordinator, trip.id) == 10


@pytest.mark.asyncio
async def test_success_after_sweep_expired_it(coordinator, trip):
    booking = await create_booking(coordinator, trip.id, "user-1", 1, now=NOW)
    await expire_booking(coordinator, booking.id)

    ack = await reconcile(coordinator, webhook_for(booking), now=NOW)
    assert ack.duplicate is True
    assert ack.booking_state == BookingState.EXPIRED.value


@pytest.mark.asyncio
async def test_unknown_status_is_acknowledged_without_change(coordinator, trip):
    booking = await create_booking(coordinator, trip.id, "user-1", 1, now=NOW)

    ack = await reconcile(coordinator, webhook_for(booking, status="refunded"), now=NOW)

    assert ack == WebhookAck()
    assert (await reload_booking(coordinator, booking.id)).state == BookingState.PENDING_PAYMENT.value


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["booking_id", "status", "idempotency_key"])
async def test_missing_fields_are_acknowledged(coordinator, trip, missing):
    booking = await create_booking(coordinator, trip.id, "user-1", 1, now=NOW)

    ack = await reconcile(coordinator, webhook_for(booking, **{missing: None}), now=NOW)

    assert ack == WebhookAck()
    assert (await reload_booking(coordinator, booking.id)).state == BookingState.PENDING_PAYMENT.value


@pytest.mark.asyncio
async def test_unknown_booking_is_acknowledged(coordinator):
    event = PaymentWebhook(booking_id=4242, status="success", idempotency_key="nope")
    assert await reconcile(coordinator, event, now=NOW) == WebhookAck()


class BrokenCoordinator(TransactionCoordinator):
    @asynccontextmanager
    async def unit(self):
        raise InternalError("database unavailable")
        yield


@pytest.mark.asyncio
async def test_internal_failure_is_swallowed(coordinator, trip):
    booking = await create_booking(coordinator, trip.id, "user-1", 1, now=NOW)
    broken = BrokenCoordinator(coordinator.session_factory, coordinator.holds)

    ack = await reconcile(broken, webhook_for(booking), now=NOW)

    assert ack.received is True
    assert (await reload_booking(coordinator, booking.id)).state == BookingState.PENDING_PAYMENT.value
