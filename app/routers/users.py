import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.deps import get_current_user
from app.core.security import hash_password, verify_password
from app.models.user import User
from app.schemas.user import UserPasswordChange, UserProfileUpdate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

# Profile fields that must stay unique across accounts, with their 409 message
_UNIQUE_FIELDS = {
    "username": "Username already taken",
    "email": "Email already in use",
}


@router.get("/me", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    payload: UserProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items()
        if getattr(user, field) != value
    }

    for field, detail in _UNIQUE_FIELDS.items():
        if field not in changes:
            continue
        column = getattr(User, field)
        clash = await db.execute(select(User.id).where(column == changes[field], User.id != user.id))
        if clash.first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    for field, value in changes.items():
        setattr(user, field, value)
    await db.flush()
    await db.refresh(user)
    if changes:
        logger.info("User %s updated %s", user.id, ", ".join(sorted(changes)))
    return user


@router.post("/me/change-password", status_code=204)
async def change_password(
    payload: UserPasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not verify_password(payload.current_password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    if payload.new_password == payload.current_password:
        raise HTTPException(status_code=400, detail="New password must differ from the current one")

    user.hashed_password = hash_password(payload.new_password)
    await db.flush()
    logger.info("User %s changed password", user.id)
