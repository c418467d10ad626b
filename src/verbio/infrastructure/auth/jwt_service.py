"""JWT token service.

Issues ES256-signed access tokens and opaque refresh tokens. Access tokens
are stateless and verified with the public key only; refresh tokens are
random values whose SHA-256 digest is the only thing ever stored.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import jwt

from verbio.core.config import get_settings
from verbio.core.exceptions import InternalFailure


class JWTError(Exception):
    """Base exception for JWT-related errors."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid."""

    pass


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hash_refresh_token(token: str) -> str:
    """Hash a refresh token using SHA-256.

    Args:
        token: The plaintext refresh token.

    Returns:
        SHA-256 hex digest of the token.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class JWTService:
    """Service for creating and validating tokens.

    Access tokens are short-lived ES256 JWTs. Refresh tokens are opaque
    random strings, returned in plaintext once and stored as a hash.
    """

    ALGORITHM = "ES256"
    REFRESH_TOKEN_BYTES = 48
    FAMILY_BYTES = 16

    def __init__(
        self,
        private_key: str | None = None,
        public_key: str | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the JWT service.

        Args:
            private_key: PEM private key. Defaults to the configured key.
            public_key: PEM public key. Defaults to the configured key.
            clock: Callable returning the current aware UTC time.
        """
        self._private_key = private_key
        self._public_key = public_key
        self._clock = clock or utc_now

    @property
    def private_key(self) -> str:
        key = self._private_key or get_settings().jwt_private_key
        if not key:
            raise InternalFailure("JWT private key is not configured")
        return key

    @property
    def public_key(self) -> str:
        key = self._public_key or get_settings().jwt_public_key
        if not key:
            raise InternalFailure("JWT public key is not configured")
        return key

    def now(self) -> datetime:
        """Current time in whole seconds, as JWT timestamps are."""
        return self._clock().replace(microsecond=0)

    def create_access_token(
        self,
        user_id: str,
        email: str,
        tier: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create an access token.

        Args:
            user_id: The user's unique identifier.
            email: The user's email address.
            tier: The user's subscription tier.
            expires_delta: Custom expiration time. Defaults to config value.

        Returns:
            Encoded JWT access token.
        """
        settings = get_settings()
        if expires_delta is None:
            expires_delta = timedelta(seconds=settings.access_token_expire_seconds)

        now = self.now()
        payload = {
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
            "sub": user_id,
            "iat": now,
            "exp": now + expires_delta,
            "email": email,
            "tier": tier,
            "type": "access",
        }

        try:
            return jwt.encode(
                payload,
                self.private_key,
                algorithm=self.ALGORITHM,
                headers={"typ": "JWT"},
            )
        except (jwt.InvalidKeyError, ValueError, TypeError) as e:
            raise InternalFailure("Unable to sign access token") from e

    def create_refresh_token(self) -> tuple[str, str]:
        """Create an opaque refresh token.

        Returns:
            Tuple of (plaintext token, SHA-256 hash for storage).
        """
        token = secrets.token_urlsafe(self.REFRESH_TOKEN_BYTES)
        return token, hash_refresh_token(token)

    def new_token_family(self) -> str:
        """Generate the family identifier shared by one login's token chain."""
        return secrets.token_hex(self.FAMILY_BYTES)

    def refresh_token_expires_at(self, now: datetime | None = None) -> datetime:
        """Expiry of a refresh token issued at ``now``."""
        if now is None:
            now = self.now()
        return now + timedelta(days=get_settings().refresh_token_expire_days)

    def decode_token(self, token: str) -> dict[str, Any]:
        """Decode and validate a JWT token.

        Signature, issuer, and audience are checked by PyJWT. Expiry is
        checked against this service's clock: a token is expired once
        ``exp <= now``.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the token is invalid.
        """
        settings = get_settings()
        try:
            payload = jwt.decode(
                token,
                self.public_key,
                algorithms=[self.ALGORITHM],
                issuer=settings.jwt_issuer,
                audience=settings.jwt_audience,
                options={
                    "verify_exp": False,
                    "require": ["exp", "iat", "sub"],
                },
            )
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError("Invalid token") from e
        except (jwt.InvalidKeyError, ValueError, TypeError) as e:
            raise InternalFailure("Unable to load verification key") from e

        exp = payload["exp"]
        if not isinstance(exp, (int, float)):
            raise InvalidTokenError("Invalid expiration claim")
        if exp <= self._clock().timestamp():
            raise TokenExpiredError("Token has expired")
        return payload

    def validate_access_token(self, token: str) -> dict[str, Any]:
        """Validate that a token is an access token and decode it.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the token is invalid or not an access token.
        """
        payload = self.decode_token(token)
        if payload.get("type") != "access":
            raise InvalidTokenError("Not an access token")
        return payload

    def get_expires_in(self, expires_delta: timedelta | None = None) -> int:
        """Access token lifetime in seconds."""
        if expires_delta is None:
            return get_settings().access_token_expire_seconds
        return int(expires_delta.total_seconds())


# Default JWT service instance
jwt_service = JWTService()
