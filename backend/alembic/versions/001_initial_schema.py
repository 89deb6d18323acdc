"""Initial schema: trips and bookings with inventory and lifecycle constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Trips table
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        sa.Column("available_seats", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("refundable_until_days_before", sa.Integer(), nullable=False, server_default=sa.text("7")),
        sa.Column("cancellation_fee_percent", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # The seat counter can never leave 0..max_capacity, whatever the application does.
        sa.CheckConstraint("max_capacity > 0", name="check_trip_capacity_positive"),
        sa.CheckConstraint("available_seats >= 0", name="check_trip_available_non_negative"),
        sa.CheckConstraint("available_seats <= max_capacity", name="check_trip_available_lte_capacity"),
        sa.CheckConstraint("price >= 0", name="check_trip_price_non_negative"),
        sa.CheckConstraint(
            "cancellation_fee_percent >= 0 AND cancellation_fee_percent <= 100",
            name="check_trip_fee_percent_range",
        ),
        sa.CheckConstraint("end_date > start_date", name="check_trip_valid_dates"),
        sa.CheckConstraint("status IN ('DRAFT', 'PUBLISHED')", name="check_trip_status"),
    )
    op.create_index("ix_trips_id", "trips", ["id"])
    op.create_index("ix_trips_status", "trips", ["status"])
    op.create_index("ix_trips_start_date", "trips", ["start_date"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.Integer(), sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("num_seats", sa.Integer(), nullable=False),
        sa.Column("state", sa.String(20), nullable=False, server_default=sa.text("'PENDING_PAYMENT'")),
        sa.Column("price_at_booking", sa.Numeric(10, 2), nullable=False),
        sa.Column("idempotency_key", sa.String(255), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # Webhook deduplication relies on this being globally unique.
        sa.UniqueConstraint("idempotency_key", name="uq_bookings_idempotency_key"),
        sa.CheckConstraint("num_seats > 0", name="check_booking_num_seats_positive"),
        sa.CheckConstraint("price_at_booking >= 0", name="check_booking_price_non_negative"),
        sa.CheckConstraint(
            "state IN ('PENDING_PAYMENT', 'CONFIRMED', 'EXPIRED', 'CANCELLED')",
            name="check_booking_state",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_trip_id", "bookings", ["trip_id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    # The expiry sweep runs every minute:
    # WHERE state = 'PENDING_PAYMENT' AND expires_at < now()
    op.create_index("ix_bookings_state_expires_at", "bookings", ["state", "expires_at"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("trips")
