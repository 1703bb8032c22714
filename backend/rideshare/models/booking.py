"""
Booking model representing a passenger's reservation on a trip.

Key design decisions:
- Cancellation is a status change; rows are kept as history
- A passenger may hold several bookings on the same trip
- Bookings go away only with their trip (ON DELETE CASCADE), and a trip can
  only be deleted once none of its bookings are active
"""

from sqlalchemy import Column, Integer, ForeignKey, Enum, Index, CheckConstraint
from sqlalchemy.orm import relationship

from rideshare.db.base import Base, TimestampMixin
from rideshare.models.enums import BookingStatus
from rideshare.models.user import enum_values


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(
        Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True
    )
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    seats_booked = Column(Integer, nullable=False, default=1)
    status = Column(
        Enum(BookingStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=BookingStatus.PENDING,
    )

    trip = relationship("Trip", back_populates="bookings", lazy="raise")
    passenger = relationship("User", back_populates="bookings", lazy="raise")

    __table_args__ = (
        CheckConstraint("seats_booked > 0", name="check_seats_booked_positive"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"
        ),
        Index("ix_bookings_trip_status", "trip_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, trip={self.trip_id}, passenger={self.passenger_id}, status={self.status})>"
