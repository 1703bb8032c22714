"""
Declarative base and shared column mixins.
"""

from sqlalchemy import Column, DateTime, func
from sqlalchemy.orm import DeclarativeBase

from rideshare.core.clock import utcnow


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    # Set client-side so rows created within the same second still order correctly
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
