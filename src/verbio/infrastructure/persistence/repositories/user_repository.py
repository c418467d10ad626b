"""User repository for database operations."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from verbio.infrastructure.persistence.models import UserModel


class UserRepository:
    """Repository for user database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        """Create a new user.

        Args:
            user: User model to create.

        Returns:
            Created user model.
        """
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: str) -> UserModel | None:
        """Get a user by ID.

        Args:
            user_id: User ID (UUID string).

        Returns:
            User model if found, None otherwise.
        """
        result = await self.session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_apple_user_id(self, apple_user_id: str) -> UserModel | None:
        """Get a user by their Apple subject identifier."""
        result = await self.session.execute(
            select(UserModel).where(UserModel.apple_user_id == apple_user_id)
        )
        return result.scalar_one_or_none()

    async def fill_missing_names(
        self,
        user: UserModel,
        first_name: str | None,
        last_name: str | None,
    ) -> bool:
        """Store names Apple shared, without overwriting ones already known.

        Returns:
            True if the user was changed.
        """
        changed = False
        if first_name and not user.first_name:
            user.first_name = first_name
            changed = True
        if last_name and not user.last_name:
            user.last_name = last_name
            changed = True
        if changed:
            user.updated_at = datetime.now(timezone.utc)
            await self.session.flush()
        return changed
