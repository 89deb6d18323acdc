"""
Payment provider webhook.

Always answers 200 with {"received": true}; see services/webhook_service.py
for why internal failures are not reported back to the provider.
"""

from fastapi import APIRouter, Depends, Request

from trip_booking.core.logging import get_logger
from trip_booking.schemas.payment import PaymentWebhook, WebhookAck
from trip_booking.services.coordinator import TransactionCoordinator, get_coordinator
from trip_booking.services.webhook_service import reconcile
from trip_booking.core.metrics import record_webhook

logger = get_logger(__name__)
router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/webhook", response_model=WebhookAck, response_model_exclude_none=True)
async def payment_webhook(
    request: Request,
    coordinator: TransactionCoordinator = Depends(get_coordinator),
):
    # Parsed by hand: a malformed body must still be acknowledged, not 422'd.
    try:
        event = PaymentWebhook.model_validate(await request.json())
    except ValueError as e:
        logger.warning("webhook_malformed_payload", error=str(e))
        record_webhook("ignored")
        return WebhookAck()
    return await reconcile(coordinator, event)
