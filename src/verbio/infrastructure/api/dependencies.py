"""FastAPI dependencies for authentication and authorization.

Provides dependencies for extracting and validating access tokens from
requests, and for wiring the session service to the request's database
session.
"""

from dataclasses import dataclass
from typing import Annotated, Callable

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from verbio.application.services import SessionService
from verbio.core.exceptions import InvalidAccessToken
from verbio.core.logging import get_logger
from verbio.domain.entities import SubscriptionTier
from verbio.infrastructure.auth import (
    AppleIdentityVerifier,
    InvalidTokenError,
    JWTService,
    TokenExpiredError,
    apple_verifier,
    jwt_service,
)
from verbio.infrastructure.persistence.database import get_db_session

logger = get_logger(__name__)


@dataclass
class CurrentUser:
    """Represents the current authenticated user context.

    Extracted from a valid access token without a database lookup.
    """

    user_id: str
    email: str
    tier: str


def get_jwt_service() -> JWTService:
    """Token issuer used by the request. Overridden in tests."""
    return jwt_service


def get_apple_verifier() -> AppleIdentityVerifier:
    """Apple identity verifier used by the request. Overridden in tests."""
    return apple_verifier


async def get_session_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    tokens: Annotated[JWTService, Depends(get_jwt_service)],
) -> SessionService:
    """Session service bound to the request's database session."""
    return SessionService(session, tokens)


async def get_current_user(
    tokens: Annotated[JWTService, Depends(get_jwt_service)],
    authorization: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """Extract and validate the current user from the Authorization header.

    Args:
        tokens: Token issuer used to verify the access token.
        authorization: The Authorization header value (e.g., "Bearer <token>").

    Returns:
        CurrentUser: The authenticated user's context.

    Raises:
        InvalidAccessToken: If the token is missing, invalid, or expired.
            Rendered as the generic 401 response.
    """
    if authorization is None:
        logger.info("Authentication failed: missing Authorization header")
        raise InvalidAccessToken("Missing Authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.info("Authentication failed: invalid Authorization header format")
        raise InvalidAccessToken("Invalid Authorization header format")

    try:
        payload = tokens.validate_access_token(parts[1])
        return CurrentUser(
            user_id=payload["sub"],
            email=payload["email"],
            tier=payload["tier"],
        )
    except TokenExpiredError as e:
        logger.info("Authentication failed: token expired")
        raise InvalidAccessToken("Token has expired") from e
    except InvalidTokenError as e:
        logger.info("Authentication failed: invalid token", error=str(e))
        raise InvalidAccessToken("Invalid token") from e
    except KeyError as e:
        logger.warning("Authentication failed: missing claim in token", missing_claim=str(e))
        raise InvalidAccessToken("Missing claim") from e


# Type alias for dependency injection
AuthenticatedUser = Annotated[CurrentUser, Depends(get_current_user)]


def require_tier(*tiers: SubscriptionTier | str) -> Callable[..., CurrentUser]:
    """Build a dependency that admits only the given subscription tiers.

    Example:
        @router.post("/translate/batch")
        async def batch(user: CurrentUser = Depends(require_tier("PRO", "ENTERPRISE"))):
            ...

    Raises:
        HTTPException: 403 if the bearer's tier is not allowed.
    """
    allowed = {SubscriptionTier(tier).value for tier in tiers}

    async def check_tier(current_user: AuthenticatedUser) -> CurrentUser:
        if current_user.tier not in allowed:
            logger.info(
                "Tier access denied",
                user_id=current_user.user_id,
                tier=current_user.tier,
                allowed=sorted(allowed),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Subscription tier does not allow this action",
            )
        return current_user

    return check_tier
