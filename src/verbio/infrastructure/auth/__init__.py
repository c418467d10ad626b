"""Authentication infrastructure components.

This module provides the Apple identity verifier and the JWT service.
"""

from verbio.infrastructure.auth.apple_verifier import (
    AppleIdentityVerifier,
    apple_verifier,
)
from verbio.infrastructure.auth.jwt_service import (
    InvalidTokenError,
    JWTError,
    JWTService,
    TokenExpiredError,
    hash_refresh_token,
    jwt_service,
)

__all__ = [
    "AppleIdentityVerifier",
    "InvalidTokenError",
    "JWTError",
    "JWTService",
    "TokenExpiredError",
    "apple_verifier",
    "hash_refresh_token",
    "jwt_service",
]
