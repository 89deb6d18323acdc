"""
Trip model with seat inventory tracking and an embedded refund policy.

Key design decisions:
- `available_seats` is denormalized (avoids aggregating bookings on every read)
  and is only ever changed through the conditional UPDATEs in
  services/inventory_service.py
- CHECK constraints keep 0 <= available_seats <= max_capacity at the DB level
- Refund policy lives on the trip row; cancellation reads it live
"""

import enum

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Index, CheckConstraint
from sqlalchemy.orm import relationship

from trip_booking.db.base import Base, TimestampMixin


class TripStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class Trip(Base, TimestampMixin):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    max_capacity = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=TripStatus.DRAFT.value)

    # Refund policy
    refundable_until_days_before = Column(Integer, nullable=False, default=7)
    cancellation_fee_percent = Column(Integer, nullable=False, default=10)

    bookings = relationship("Booking", back_populates="trip", lazy="noload")

    __table_args__ = (
        CheckConstraint("max_capacity > 0", name="check_trip_capacity_positive"),
        CheckConstraint("available_seats >= 0", name="check_trip_available_non_negative"),
        CheckConstraint("available_seats <= max_capacity", name="check_trip_available_lte_capacity"),
        CheckConstraint("price >= 0", name="check_trip_price_non_negative"),
        CheckConstraint(
            "cancellation_fee_percent >= 0 AND cancellation_fee_percent <= 100",
            name="check_trip_fee_percent_range",
        ),
        CheckConstraint("end_date > start_date", name="check_trip_valid_dates"),
        CheckConstraint("status IN ('DRAFT', 'PUBLISHED')", name="check_trip_status"),
        Index("ix_trips_status", "status"),
        Index("ix_trips_start_date", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, title={self.title}, available={self.available_seats}/{self.max_capacity})>"
