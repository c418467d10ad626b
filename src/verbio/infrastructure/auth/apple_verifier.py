"""Sign in with Apple identity token verification.

Apple signs identity tokens with RS256 keys published as a JSON Web Key
Set. The key set is fetched with httpx and cached; a token carrying an
unknown ``kid`` triggers one refetch, since Apple rotates its keys.
"""

import time
from typing import Any

import httpx
import jwt

from verbio.core.config import get_settings
from verbio.core.exceptions import InternalFailure, InvalidCredential
from verbio.core.logging import get_logger
from verbio.domain.entities import AppleIdentity

logger = get_logger(__name__)


def _claim_flag(value: Any) -> bool:
    # Apple sends these as either booleans or the strings "true"/"false".
    return value is True or value == "true"


class AppleIdentityVerifier:
    """Verifies Apple identity tokens and extracts the stable subject."""

    ISSUER = "https://appleid.apple.com"
    ALGORITHMS = ["RS256"]

    def __init__(
        self,
        keys_url: str | None = None,
        audiences: list[str] | None = None,
        cache_seconds: int | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the verifier.

        Args:
            keys_url: Apple JWKS endpoint. Defaults to config value.
            audiences: Accepted ``aud`` values. Defaults to the configured
                bundle id and services id.
            cache_seconds: How long a fetched key set is reused.
            timeout: HTTP timeout for the key fetch, in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self._keys_url = keys_url
        self._audiences = audiences
        self._cache_seconds = cache_seconds
        self._timeout = timeout
        self._transport = transport
        self._key_set: jwt.PyJWKSet | None = None
        self._fetched_at = 0.0

    @property
    def keys_url(self) -> str:
        return self._keys_url or get_settings().apple_keys_url

    @property
    def audiences(self) -> list[str]:
        if self._audiences is not None:
            return self._audiences
        return get_settings().apple_audiences

    @property
    def cache_seconds(self) -> int:
        if self._cache_seconds is not None:
            return self._cache_seconds
        return get_settings().apple_keys_cache_seconds

    async def _fetch_key_set(self) -> jwt.PyJWKSet:
        timeout = self._timeout or get_settings().apple_http_timeout_seconds
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.get(self.keys_url)
                response.raise_for_status()
                key_set = jwt.PyJWKSet.from_dict(response.json())
        except (httpx.HTTPError, ValueError, jwt.PyJWKSetError) as e:
            logger.error("Failed to fetch Apple public keys", url=self.keys_url, error=str(e))
            raise InternalFailure("Apple public keys are unavailable") from e

        self._key_set = key_set
        self._fetched_at = time.monotonic()
        logger.debug("Fetched Apple public keys", key_count=len(key_set.keys))
        return key_set

    async def _key_set_for(self, force: bool = False) -> jwt.PyJWKSet:
        expired = time.monotonic() - self._fetched_at >= self.cache_seconds
        if force or self._key_set is None or expired:
            return await self._fetch_key_set()
        return self._key_set

    @staticmethod
    def _find_key(key_set: jwt.PyJWKSet, kid: str) -> jwt.PyJWK | None:
        for key in key_set.keys:
            if key.key_id == kid:
                return key
        return None

    async def get_signing_key(self, kid: str) -> jwt.PyJWK:
        """Return Apple's public key for ``kid``.

        Raises:
            InvalidCredential: If no published key matches.
            InternalFailure: If the key set cannot be fetched.
        """
        was_cached = self._key_set is not None
        key = self._find_key(await self._key_set_for(), kid)
        if key is None and was_cached:
            key = self._find_key(await self._key_set_for(force=True), kid)
        if key is None:
            logger.info("Apple identity token rejected", reason="unknown_kid")
            raise InvalidCredential("Invalid Apple identity token")
        return key

    async def verify(self, identity_token: str) -> AppleIdentity:
        """Verify an Apple identity token.

        Args:
            identity_token: The JWT the client received from Apple.

        Returns:
            AppleIdentity with the subject and optional email claims.

        Raises:
            InvalidCredential: On any signature, issuer, audience, expiry,
                or shape failure. The cause is only logged.
            InternalFailure: If Apple's keys cannot be fetched.
        """
        audiences = self.audiences
        if not audiences:
            logger.error("Apple sign-in is not configured: no accepted audience")
            raise InvalidCredential("Invalid Apple identity token")

        try:
            header = jwt.get_unverified_header(identity_token)
        except jwt.InvalidTokenError as e:
            logger.info("Apple identity token rejected", reason="malformed")
            raise InvalidCredential("Invalid Apple identity token") from e

        kid = header.get("kid")
        if not kid:
            logger.info("Apple identity token rejected", reason="missing_kid")
            raise InvalidCredential("Invalid Apple identity token")

        signing_key = await self.get_signing_key(kid)

        try:
            claims = jwt.decode(
                identity_token,
                signing_key.key,
                algorithms=self.ALGORITHMS,
                audience=audiences,
                issuer=self.ISSUER,
                options={"require": ["iss", "sub", "aud", "exp", "iat"]},
            )
        except jwt.InvalidTokenError as e:
            logger.info("Apple identity token rejected", reason=type(e).__name__)
            raise InvalidCredential("Invalid Apple identity token") from e

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            logger.info("Apple identity token rejected", reason="missing_subject")
            raise InvalidCredential("Invalid Apple identity token")

        return AppleIdentity(
            subject=subject,
            email=claims.get("email"),
            email_verified=_claim_flag(claims.get("email_verified")),
            is_private_email=_claim_flag(claims.get("is_private_email")),
        )


# Default verifier instance
apple_verifier = AppleIdentityVerifier()
