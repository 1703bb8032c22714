"""Initial schema: users, trips, bookings with seat-inventory constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_type", sa.String(20), nullable=False, server_default=sa.text("'passenger'")),
        sa.Column("rating", sa.Numeric(3, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_ratings", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("user_type IN ('driver', 'passenger')", name="check_user_type"),
        sa.CheckConstraint("total_ratings >= 0", name="check_total_ratings_non_negative"),
    )
    op.create_index("ix_users_id", "users", ["id"])

    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("from_location", sa.String(255), nullable=False),
        sa.Column("to_location", sa.String(255), nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("available_seats", sa.Integer(), nullable=False),
        sa.Column("price_per_seat", sa.Numeric(10, 2), nullable=False),
        sa.Column("car_model", sa.String(255), nullable=True),
        sa.Column("car_plate", sa.String(50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("gender_preference", sa.String(20), nullable=False, server_default=sa.text("'any'")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        sa.CheckConstraint("available_seats <= total_seats", name="check_available_lte_total"),
        sa.CheckConstraint("total_seats BETWEEN 1 AND 6", name="check_total_seats_range"),
        sa.CheckConstraint("price_per_seat >= 0", name="check_price_non_negative"),
        sa.CheckConstraint("from_location <> to_location", name="check_distinct_locations"),
        sa.CheckConstraint(
            "gender_preference IN ('any', 'male_only', 'female_only')",
            name="check_gender_preference",
        ),
    )
    op.create_index("ix_trips_id", "trips", ["id"])
    op.create_index("ix_trips_driver_id", "trips", ["driver_id"])
    # Search always filters on departure_time > now and sorts by it
    op.create_index("ix_trips_departure_time", "trips", ["departure_time"])
    # Covers WHERE available_seats > 0 ORDER BY departure_time
    op.create_index("ix_trips_available_departure", "trips", ["available_seats", "departure_time"])
    # "My trips": WHERE driver_id = ? ORDER BY created_at DESC
    op.create_index("ix_trips_driver_created", "trips", ["driver_id", "created_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "trip_id", sa.Integer(), sa.ForeignKey("trips.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("passenger_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seats_booked", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("seats_booked > 0", name="check_seats_booked_positive"),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_trip_id", "bookings", ["trip_id"])
    op.create_index("ix_bookings_passenger_id", "bookings", ["passenger_id"])
    # Active-booking sums for the seat invariant and delete checks
    op.create_index("ix_bookings_trip_status", "bookings", ["trip_id", "status"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("trips")
    op.drop_table("users")
