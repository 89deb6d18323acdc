"""
Pydantic schemas for the payment provider webhook.

Every field is optional: a delivery with fields missing is acknowledged
rather than rejected, so the provider does not redeliver it forever.
"""

import enum
from typing import Optional

from pydantic import BaseModel


class PaymentOutcome(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class PaymentWebhook(BaseModel):
    booking_id: Optional[int] = None
    status: Optional[str] = None
    idempotency_key: Optional[str] = None
    payment_reference: Optional[str] = None


class WebhookAck(BaseModel):
    received: bool = True
    duplicate: Optional[bool] = None
    expired: Optional[bool] = None
    booking_state: Optional[str] = None
