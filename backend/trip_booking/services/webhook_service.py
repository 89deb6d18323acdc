"""
Payment webhook reconciliation.

The payment provider delivers outcome events at least once: duplicated,
possibly out of order, sometimes with fields missing. Each delivery is
handled under the booking's exclusive hold:

  1. required fields missing / booking unknown  -> ack, nothing changes
  2. booking no longer PENDING_PAYMENT          -> ack as duplicate
  3. now >= expires_at                          -> expire (expiry beats a late success)
  4. outcome == "success"                       -> confirm
  5. outcome == "failed"                        -> expire, seats released
  6. any other outcome                          -> ack, nothing changes

ACKNOWLEDGEMENT POLICY
======================
Every delivery gets a positive acknowledgement, including ones whose
processing failed internally. A negative answer would only make the
provider redeliver the same event, unboundedly, while the booking still
sits in PENDING_PAYMENT. Failures are logged instead, and the expiry sweep
is the safety net: a booking whose confirmation was lost is expired once
its hold time runs out, releasing its seats.
"""

from datetime import datetime
from typing import Optional

from trip_booking.core.clock import as_utc, utcnow
from trip_booking.core.exceptions import NotFoundError
from trip_booking.core.logging import get_logger
from trip_booking.core.metrics import record_webhook
from trip_booking.models.booking import BookingState
from trip_booking.schemas.payment import PaymentOutcome, PaymentWebhook, WebhookAck
from trip_booking.services.booking_service import apply_confirm, apply_expire, lock_booking
from trip_booking.services.coordinator import TransactionCoordinator

logger = get_logger(__name__)


async def reconcile(
    coordinator: TransactionCoordinator,
    event: PaymentWebhook,
    now: Optional[datetime] = None,
) -> WebhookAck:
    """Apply one payment outcome event. Never raises."""
    if event.booking_id is None or not event.status or not event.idempotency_key:
        logger.info("webhook_missing_fields", booking_id=event.booking_id, status=event.status)
        record_webhook("ignored")
        return WebhookAck()

    now = now or utcnow()
    try:
        return await _reconcile(coordinator, event, now)
    except NotFoundError:
        logger.info("webhook_unknown_booking", booking_id=event.booking_id)
        record_webhook("ignored")
        return WebhookAck()
    except Exception as e:
        logger.exception("webhook_processing_error", booking_id=event.booking_id, error=str(e))
        record_webhook("error")
        return WebhookAck()


async def _reconcile(
    coordinator: TransactionCoordinator,
    event: PaymentWebhook,
    now: datetime,
) -> WebhookAck:
    booking_id = event.booking_id
    async with coordinator.unit() as unit:
        booking = await lock_booking(unit, booking_id)

        if booking.state != BookingState.PENDING_PAYMENT.value:
            logger.info("webhook_duplicate", booking_id=booking_id, state=booking.state)
            record_webhook("duplicate")
            return WebhookAck(duplicate=True, booking_state=booking.state)

        if now >= as_utc(booking.expires_at):
            await apply_expire(unit, booking, reason="late_webhook")
            logger.info("webhook_too_late", booking_id=booking_id, status=event.status)
            record_webhook("late")
            return WebhookAck(expired=True, booking_state=BookingState.EXPIRED.value)

        if event.status == PaymentOutcome.SUCCESS.value:
            await apply_confirm(unit, booking, event.payment_reference or event.idempotency_key)
            record_webhook("confirmed")
            return WebhookAck(booking_state=BookingState.CONFIRMED.value)

        if event.status == PaymentOutcome.FAILED.value:
            await apply_expire(unit, booking, reason="payment_failed")
            record_webhook("expired")
            return WebhookAck(booking_state=BookingState.EXPIRED.value)

    logger.info("webhook_unknown_status", booking_id=booking_id, status=event.status)
    record_webhook("ignored")
    return WebhookAck()
