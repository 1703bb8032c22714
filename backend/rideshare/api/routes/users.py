"""
User profile endpoints. Sign-in belongs to the identity provider, which
issues bearer tokens whose subject is the profile id created here.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.deps import get_current_user_id
from rideshare.db.session import get_db
from rideshare.schemas.user import UserCreate, UserResponse, PublicUserResponse
from rideshare.services.user_service import create_user, get_user

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_profile(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """
    Create the marketplace profile for a new sign-up: role, phone number and
    gender. Rating starts at zero.
    """
    return await create_user(db, user_data)


@router.get("/me", response_model=UserResponse)
async def read_me(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_user(db, user_id)


@router.get("/{user_id}", response_model=PublicUserResponse)
async def read_user(user_id: int, db: AsyncSession = Depends(get_db)):
    """Public profile: role and rating, shown next to a driver's trips."""
    return await get_user(db, user_id)
