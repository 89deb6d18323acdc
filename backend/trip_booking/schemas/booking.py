"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=255)
    num_seats: int = Field(default=1, gt=0)


class BookingResponse(BaseModel):
    id: int
    trip_id: int
    user_id: str
    num_seats: int
    state: str
    price_at_booking: Decimal
    idempotency_key: str
    expires_at: datetime
    payment_reference: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingCreatedResponse(BaseModel):
    booking: BookingResponse
    payment_url: str


class BookingDetailResponse(BookingResponse):
    trip_start_date: datetime
    refundable_until_days_before: int
    cancellation_fee_percent: int


class RefundResponse(BaseModel):
    amount: Decimal
    is_refundable: bool
    days_until_trip: int
    cutoff_days: int
    cancellation_fee_percent: int


class BookingCancelResponse(BaseModel):
    booking: BookingResponse
    refund: RefundResponse
