"""
Pydantic schemas for user profiles and the calling actor.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from rideshare.models.enums import UserType, Gender


class Actor(BaseModel):
    """The authenticated caller, passed explicitly into every engine operation."""

    id: int
    user_type: UserType
    gender: Optional[Gender] = None

    model_config = ConfigDict(frozen=True, from_attributes=True)

    @property
    def is_driver(self) -> bool:
        return self.user_type is UserType.DRIVER


class UserCreate(BaseModel):
    user_type: UserType = UserType.PASSENGER
    phone_number: Optional[str] = Field(None, max_length=32, pattern=r"^\+?[0-9 ]{6,32}$")
    gender: Optional[Gender] = None

    model_config = ConfigDict(extra="forbid")


class UserResponse(BaseModel):
    id: int
    user_type: UserType
    rating: Decimal
    total_ratings: int
    phone_number: Optional[str]
    gender: Optional[Gender]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublicUserResponse(BaseModel):
    id: int
    user_type: UserType
    rating: Decimal
    total_ratings: int

    model_config = ConfigDict(from_attributes=True)
