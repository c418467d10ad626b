"""Repository for refresh token operations.

Every write here is a single conditional UPDATE or DELETE, so correctness
under concurrent requests rests on the database: two requests consuming
the same row race on ``revoked_at IS NULL`` and exactly one wins.
"""

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from verbio.infrastructure.persistence.models import RefreshTokenModel, RevocationReason


class RefreshTokenRepository:
    """Repository for refresh token database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session.
        """
        self._session = session

    async def create(self, model: RefreshTokenModel) -> RefreshTokenModel:
        """Store a new refresh token.

        Args:
            model: The RefreshTokenModel to store.

        Returns:
            The stored model with updated fields.
        """
        self._session.add(model)
        await self._session.flush()
        return model

    async def get_by_hash(self, token_hash: str) -> RefreshTokenModel | None:
        """Look up a refresh token by its hash.

        Args:
            token_hash: SHA-256 hex digest of the presented token.

        Returns:
            The RefreshTokenModel if found, None otherwise.
        """
        stmt = (
            select(RefreshTokenModel)
            .where(RefreshTokenModel.token_hash == token_hash)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def consume(self, token_id: str, now: datetime) -> bool:
        """Mark an active token as consumed by rotation.

        Compare-and-set on ``revoked_at IS NULL``.

        Args:
            token_id: The token's UUID.
            now: Consumption time.

        Returns:
            True if this call consumed the token, False if it was already
            consumed or revoked.
        """
        stmt = (
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.id == token_id,
                RefreshTokenModel.revoked_at.is_(None),
            )
            .values(revoked_at=now, revoked_reason=RevocationReason.ROTATED)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def revoke(self, token_id: str, reason: str, now: datetime) -> bool:
        """Revoke one refresh token by ID. Already-revoked tokens are left as is.

        Returns:
            True if a token was revoked by this call.
        """
        stmt = (
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.id == token_id,
                RefreshTokenModel.revoked_at.is_(None),
            )
            .values(revoked_at=now, revoked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def revoke_family(self, family: str, reason: str, now: datetime) -> int:
        """Revoke every still-active token of a family.

        Tokens already consumed or revoked keep their original timestamp and
        reason.

        Returns:
            Number of tokens revoked.
        """
        stmt = (
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.family == family,
                RefreshTokenModel.revoked_at.is_(None),
            )
            .values(revoked_at=now, revoked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def revoke_all_for_user(self, user_id: str, reason: str, now: datetime) -> int:
        """Revoke all active refresh tokens of a user, across families.

        Returns:
            Number of tokens revoked.
        """
        stmt = (
            update(RefreshTokenModel)
            .where(
                RefreshTokenModel.user_id == user_id,
                RefreshTokenModel.revoked_at.is_(None),
            )
            .values(revoked_at=now, revoked_reason=reason)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def list_family(self, family: str) -> list[RefreshTokenModel]:
        """All tokens of a family, oldest first."""
        stmt = (
            select(RefreshTokenModel)
            .where(RefreshTokenModel.family == family)
            .order_by(RefreshTokenModel.created_at)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def purge_expired(self, before: datetime) -> int:
        """Delete tokens that expired before ``before``.

        ``before`` is never later than now, so active tokens are never
        touched; an expired row is dead whether it was revoked or not.

        Returns:
            Number of rows deleted.
        """
        stmt = (
            delete(RefreshTokenModel)
            .where(RefreshTokenModel.expires_at < before)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount
