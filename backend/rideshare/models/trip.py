"""
Trip model with seat inventory tracking.

Key design decisions:
- `available_seats` is denormalized; it always equals total_seats minus the
  seats held by pending/confirmed bookings
- `version` column enables optimistic locking for concurrent reservations
- Composite index on (available_seats, departure_time) serves search
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, Text, Enum,
    ForeignKey, Index, CheckConstraint,
)
from sqlalchemy.orm import relationship

from rideshare.db.base import Base, TimestampMixin
from rideshare.models.enums import GenderPreference
from rideshare.models.user import enum_values


class Trip(Base, TimestampMixin):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    from_location = Column(String(255), nullable=False)
    to_location = Column(String(255), nullable=False)
    departure_time = Column(DateTime(timezone=True), nullable=False)
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    price_per_seat = Column(Numeric(10, 2), nullable=False)
    car_model = Column(String(255), nullable=True)
    car_plate = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    gender_preference = Column(
        Enum(GenderPreference, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=GenderPreference.ANY,
    )

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    driver = relationship("User", back_populates="trips", lazy="raise")
    bookings = relationship(
        "Booking",
        back_populates="trip",
        lazy="raise",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="check_available_lte_total"),
        CheckConstraint("total_seats BETWEEN 1 AND 6", name="check_total_seats_range"),
        CheckConstraint("price_per_seat >= 0", name="check_price_non_negative"),
        CheckConstraint("from_location <> to_location", name="check_distinct_locations"),
        CheckConstraint(
            "gender_preference IN ('any', 'male_only', 'female_only')",
            name="check_gender_preference",
        ),
        Index("ix_trips_departure_time", "departure_time"),
        Index("ix_trips_available_departure", "available_seats", "departure_time"),
        Index("ix_trips_driver_created", "driver_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Trip(id={self.id}, {self.from_location}->{self.to_location}, "
            f"available={self.available_seats}/{self.total_seats})>"
        )
