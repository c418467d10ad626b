"""User API routes."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from verbio.core.logging import get_logger
from verbio.infrastructure.api.dependencies import AuthenticatedUser
from verbio.infrastructure.api.schemas import (
    ErrorResponse,
    ProfileResponse,
    SafeUserResponse,
)
from verbio.infrastructure.persistence.database import get_db_session
from verbio.infrastructure.persistence.repositories import UserRepository

logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "/profile",
    response_model=ProfileResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
)
async def get_profile(
    current_user: AuthenticatedUser,
    session: AsyncSession = Depends(get_db_session),
) -> ProfileResponse:
    """Return the authenticated user's profile."""
    user = await UserRepository(session).get_by_id(current_user.user_id)
    if user is None:
        logger.info("Profile requested for missing user", user_id=current_user.user_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return ProfileResponse(user=SafeUserResponse.model_validate(user))
