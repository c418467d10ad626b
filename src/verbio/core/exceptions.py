"""Authentication error taxonomy.

Every client-visible authentication failure collapses to one generic
"unauthorized" response; these classes exist so the server can log and
test the exact cause.
"""


class AuthError(Exception):
    """Base class for authentication and session errors."""

    pass


class InvalidCredential(AuthError):
    """An identity assertion failed verification."""

    pass


class InvalidAccessToken(AuthError):
    """A bearer access token is missing, malformed, or expired."""

    pass


class InvalidRefreshToken(AuthError):
    """A refresh token is unknown, malformed, or was consumed concurrently."""

    pass


class RefreshTokenExpired(AuthError):
    """A refresh token passed its expiry without being rotated."""

    pass


class RefreshTokenRevoked(AuthError):
    """A revoked refresh token was presented again (reuse detected)."""

    pass


class InternalFailure(AuthError):
    """Storage, key material, or the identity provider is unavailable."""

    pass
