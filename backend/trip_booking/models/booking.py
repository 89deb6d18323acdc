"""
Booking model: one reservation against a trip, with its own price snapshot.

Key design decisions:
- idempotency_key is UNIQUE; it identifies the booking attempt to the
  payment provider and deduplicates webhook deliveries
- Bookings are never deleted; EXPIRED and CANCELLED rows are kept as history
- price_at_booking is fixed at creation and never recomputed
- Composite (state, expires_at) index serves the expiry sweep query
"""

import enum

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from trip_booking.db.base import Base, TimestampMixin


class BookingState(str, enum.Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


TERMINAL_STATES = frozenset({BookingState.EXPIRED.value, BookingState.CANCELLED.value})


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    num_seats = Column(Integer, nullable=False)
    state = Column(String(20), nullable=False, default=BookingState.PENDING_PAYMENT.value)
    price_at_booking = Column(Numeric(10, 2), nullable=False)
    idempotency_key = Column(String(255), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    payment_reference = Column(String(255), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    refund_amount = Column(Numeric(10, 2), nullable=True)

    trip = relationship("Trip", back_populates="bookings", lazy="noload")

    __table_args__ = (
        CheckConstraint("num_seats > 0", name="check_booking_num_seats_positive"),
        CheckConstraint("price_at_booking >= 0", name="check_booking_price_non_negative"),
        CheckConstraint(
            "state IN ('PENDING_PAYMENT', 'CONFIRMED', 'EXPIRED', 'CANCELLED')",
            name="check_booking_state",
        ),
        Index("ix_bookings_state_expires_at", "state", "expires_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, trip={self.trip_id}, state={self.state})>"
