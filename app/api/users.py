"""Profile API endpoints"""

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.database import get_db
from app.models.profile import Profile
from app.models.user import User
from app.schemas.profile import ProfileResponse, ProfileResult, ProfileUpdate
from app.api.auth import get_current_active_user, is_admin

router = APIRouter()
logger = structlog.get_logger()


def profile_failure(status_code: int, error: str) -> JSONResponse:
    result = ProfileResult(success=False, error=error)
    return JSONResponse(status_code=status_code, content=result.model_dump(exclude_none=True))


async def verify_profile_access(uid: UUID, current_user: User, db: AsyncSession) -> bool:
    """A user reads and writes only their own profile; admins may read any"""
    return current_user.id == uid or await is_admin(current_user, db)


@router.get("/{uid}", response_model=ProfileResult)
async def get_user_data(
    uid: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Read a profile"""
    if not await verify_profile_access(uid, current_user, db):
        return profile_failure(403, "Access denied to this profile")

    try:
        result = await db.execute(select(Profile).where(Profile.uid == uid))
        profile = result.scalar_one_or_none()
    except SQLAlchemyError:
        logger.exception("Error fetching user data", uid=str(uid))
        return profile_failure(503, "Failed to fetch user data")

    if profile is None:
        return profile_failure(404, "User data not found")

    return ProfileResult(success=True, data=ProfileResponse.model_validate(profile))


@router.patch("/{uid}", response_model=ProfileResult)
async def update_user_profile(
    uid: UUID,
    profile_data: ProfileUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Update the caller's own profile; role is not writable here"""
    if current_user.id != uid:
        return profile_failure(403, "Access denied to this profile")

    try:
        result = await db.execute(select(Profile).where(Profile.uid == uid))
        profile = result.scalar_one_or_none()
        if profile is None:
            return profile_failure(404, "User data not found")

        for field, value in profile_data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(profile, field, value)
        if profile_data.display_name:
            current_user.display_name = profile_data.display_name

        await db.commit()
        await db.refresh(profile)
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Error updating user profile", uid=str(uid))
        return profile_failure(503, "Failed to update profile")

    logger.info("User profile updated", uid=str(uid))
    return ProfileResult(success=True, data=ProfileResponse.model_validate(profile))
