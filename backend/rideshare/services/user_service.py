"""
User profile lookups.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.core.exceptions import NotFoundError
from rideshare.core.logging import get_logger
from rideshare.models.user import User
from rideshare.schemas.user import Actor, UserCreate

logger = get_logger(__name__)


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def create_user(db: AsyncSession, user_data: UserCreate) -> User:
    """Create the marketplace profile for an identity that just registered."""
    user = User(
        user_type=user_data.user_type,
        phone_number=user_data.phone_number,
        gender=user_data.gender,
        rating=0,
        total_ratings=0,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, user_type=user.user_type.value)
    return user


def to_actor(user: User) -> Actor:
    return Actor.model_validate(user)
