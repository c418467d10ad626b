"""Session lifecycle: login, refresh-token rotation, logout, and cleanup.

Rotation follows the single-use scheme with family revocation:

1. Unknown token: ``NOT_FOUND``, nothing changes.
2. Token already revoked (consumed or logged out): ``REUSED``. The whole
   family is revoked, since a replayed token means the chain leaked.
3. Token expired: ``EXPIRED``, nothing changes.
4. Otherwise the token is consumed with a compare-and-set and a new token
   is issued in the same family. Losing the compare-and-set to a concurrent
   request yields ``NOT_FOUND``.

Each public method is one unit of work on the request's session. Storage
errors roll the session back and surface as ``InternalFailure``, so a
failed write never leaves a token half-rotated.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from verbio.core.config import get_settings
from verbio.core.exceptions import InternalFailure
from verbio.core.logging import get_logger
from verbio.domain.entities import (
    AppleIdentity,
    ProfileHint,
    RotationOutcome,
    RotationResult,
    SubscriptionTier,
    TokenPair,
    resolve_signup_email,
)
from verbio.domain.services import classify_refresh_token
from verbio.infrastructure.auth import JWTService, hash_refresh_token, jwt_service
from verbio.infrastructure.persistence.models import (
    RefreshTokenModel,
    RevocationReason,
    UserModel,
)
from verbio.infrastructure.persistence.repositories import (
    RefreshTokenRepository,
    UserRepository,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class LoginResult:
    """A signed-in user and their first token pair."""

    user: UserModel
    tokens: TokenPair
    created: bool


class SessionService:
    """Orchestrates the refresh store and token issuer for one request."""

    def __init__(self, session: AsyncSession, tokens: JWTService | None = None) -> None:
        """Initialize the service.

        Args:
            session: Request-scoped SQLAlchemy async session.
            tokens: Token issuer. Defaults to the module-level JWT service.
        """
        self._session = session
        self._jwt = tokens or jwt_service
        self._users = UserRepository(session)
        self._refresh_tokens = RefreshTokenRepository(session)

    async def _fail(self, operation: str, error: Exception) -> InternalFailure:
        await self._session.rollback()
        logger.error(
            "Session store failure",
            operation=operation,
            error=str(error),
            exc_type=type(error).__name__,
        )
        return InternalFailure(f"{operation} failed")

    async def _issue(self, user: UserModel, family: str, now: datetime) -> TokenPair:
        plaintext, token_hash = self._jwt.create_refresh_token()
        await self._refresh_tokens.create(
            RefreshTokenModel(
                token_hash=token_hash,
                family=family,
                user_id=user.id,
                expires_at=self._jwt.refresh_token_expires_at(now),
            )
        )
        access_token = self._jwt.create_access_token(
            user_id=user.id,
            email=user.email,
            tier=user.subscription_tier,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=plaintext,
            expires_in=self._jwt.get_expires_in(),
        )

    async def login(
        self,
        identity: AppleIdentity,
        profile: ProfileHint | None = None,
    ) -> LoginResult:
        """Sign in a verified Apple identity and start a new token family.

        Creates the user on first sign-in. On later sign-ins, names are only
        filled in where none is stored yet.

        Raises:
            InternalFailure: If storage or signing fails.
        """
        profile = profile or ProfileHint()
        now = self._jwt.now()
        try:
            user = await self._users.get_by_apple_user_id(identity.subject)
            created = user is None
            if user is None:
                user = await self._users.create(
                    UserModel(
                        apple_user_id=identity.subject,
                        email=resolve_signup_email(
                            identity.subject, profile.email, identity.email
                        ),
                        first_name=profile.first_name,
                        last_name=profile.last_name,
                        subscription_tier=SubscriptionTier.FREE.value,
                    )
                )
            else:
                await self._users.fill_missing_names(
                    user, profile.first_name, profile.last_name
                )

            family = self._jwt.new_token_family()
            tokens = await self._issue(user, family, now)
            await self._session.commit()
        except SQLAlchemyError as e:
            raise await self._fail("login", e) from e
        except InternalFailure:
            await self._session.rollback()
            raise

        logger.info("User signed in", user_id=user.id, created=created, family=family)
        return LoginResult(user=user, tokens=tokens, created=created)

    async def rotate(self, presented_token: str) -> RotationResult:
        """Exchange a refresh token for a new access and refresh token.

        Never raises for the protocol outcomes; inspect ``result.outcome``
        or call ``result.raise_for_outcome()``.

        Raises:
            InternalFailure: If storage or signing fails. Nothing is consumed.
        """
        now = self._jwt.now()
        try:
            record = await self._refresh_tokens.get_by_hash(
                hash_refresh_token(presented_token)
            )
            outcome = classify_refresh_token(record, now)

            if record is None:
                logger.info("Refresh rejected", outcome=outcome.value)
                return RotationResult(outcome)

            if outcome is RotationOutcome.EXPIRED:
                logger.info(
                    "Refresh rejected",
                    outcome=outcome.value,
                    user_id=record.user_id,
                    family=record.family,
                )
                return RotationResult(outcome, user_id=record.user_id, family=record.family)

            if outcome is RotationOutcome.REUSED:
                revoked = await self._refresh_tokens.revoke_family(
                    record.family, RevocationReason.REUSE_DETECTED, now
                )
                await self._session.commit()
                logger.warning(
                    "refresh_token_reuse_detected",
                    user_id=record.user_id,
                    family=record.family,
                    previous_revocation=record.revoked_reason,
                    tokens_revoked=revoked,
                )
                return RotationResult(outcome, user_id=record.user_id, family=record.family)

            # Rollback expires ORM state; keep plain values for the result.
            user_id, family = record.user_id, record.family
            user = await self._users.get_by_id(user_id)
            if user is None or not await self._refresh_tokens.consume(record.id, now):
                await self._session.rollback()
                logger.info(
                    "Refresh rejected",
                    outcome=RotationOutcome.NOT_FOUND.value,
                    reason="user_missing" if user is None else "already_consumed",
                    family=family,
                )
                return RotationResult(RotationOutcome.NOT_FOUND, user_id=user_id, family=family)

            tokens = await self._issue(user, family, now)
            await self._session.commit()
        except SQLAlchemyError as e:
            raise await self._fail("rotate", e) from e
        except InternalFailure:
            await self._session.rollback()
            raise

        logger.info("Refresh token rotated", user_id=user_id, family=family)
        return RotationResult(
            RotationOutcome.ROTATED,
            tokens=tokens,
            user_id=user_id,
            family=family,
        )

    async def logout(
        self,
        user_id: str,
        refresh_token: str | None = None,
        all_devices: bool = False,
    ) -> int:
        """Revoke a session chain, or every session of the user.

        Idempotent: unknown, foreign, or already-revoked tokens are no-ops.

        Args:
            user_id: The authenticated user.
            refresh_token: Plaintext token identifying the chain to end.
            all_devices: Revoke every active token of the user instead.

        Returns:
            Number of tokens revoked by this call.

        Raises:
            InternalFailure: If storage fails.
        """
        now = self._jwt.now()
        try:
            if all_devices:
                revoked = await self._refresh_tokens.revoke_all_for_user(
                    user_id, RevocationReason.LOGOUT_ALL, now
                )
            elif refresh_token:
                record = await self._refresh_tokens.get_by_hash(
                    hash_refresh_token(refresh_token)
                )
                if record is None or record.user_id != user_id:
                    revoked = 0
                else:
                    revoked = await self._refresh_tokens.revoke_family(
                        record.family, RevocationReason.LOGOUT, now
                    )
            else:
                revoked = 0
            await self._session.commit()
        except SQLAlchemyError as e:
            raise await self._fail("logout", e) from e

        logger.info(
            "User logged out",
            user_id=user_id,
            all_devices=all_devices,
            tokens_revoked=revoked,
        )
        return revoked

    async def purge_expired(self, older_than_days: int | None = None) -> int:
        """Delete refresh tokens that expired more than ``older_than_days`` ago.

        Raises:
            InternalFailure: If storage fails.
        """
        if older_than_days is None:
            older_than_days = get_settings().refresh_token_purge_after_days
        before = self._jwt.now() - timedelta(days=older_than_days)
        try:
            purged = await self._refresh_tokens.purge_expired(before)
            await self._session.commit()
        except SQLAlchemyError as e:
            raise await self._fail("purge", e) from e

        logger.info("Expired refresh tokens purged", purged=purged, before=before.isoformat())
        return purged
