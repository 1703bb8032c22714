"""
User profile. Identity (name, email, credentials) lives with the identity
provider; this row holds what the marketplace needs.
"""

from sqlalchemy import Column, Integer, String, Numeric, Enum, CheckConstraint
from sqlalchemy.orm import relationship

from rideshare.db.base import Base, TimestampMixin
from rideshare.models.enums import UserType, Gender


def enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_type = Column(
        Enum(UserType, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=UserType.PASSENGER,
    )
    # Read-only display fields; aggregation happens elsewhere
    rating = Column(Numeric(3, 2), nullable=False, default=0)
    total_ratings = Column(Integer, nullable=False, default=0)
    phone_number = Column(String(32), nullable=True)
    gender = Column(
        Enum(Gender, native_enum=False, length=10, values_callable=enum_values),
        nullable=True,
    )

    trips = relationship("Trip", back_populates="driver", lazy="raise")
    bookings = relationship("Booking", back_populates="passenger", lazy="raise")

    __table_args__ = (
        CheckConstraint("user_type IN ('driver', 'passenger')", name="check_user_type"),
        CheckConstraint("total_ratings >= 0", name="check_total_ratings_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, type={self.user_type})>"
