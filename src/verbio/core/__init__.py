"""Core Verbio utilities.

This module exports core utilities for use throughout the application.
"""

from verbio.core.config import Settings, get_settings
from verbio.core.exceptions import (
    AuthError,
    InternalFailure,
    InvalidAccessToken,
    InvalidCredential,
    InvalidRefreshToken,
    RefreshTokenExpired,
    RefreshTokenRevoked,
)
from verbio.core.logging import (
    bind_correlation_id,
    clear_context,
    configure_logging,
    get_logger,
)

__all__ = [
    "AuthError",
    "InternalFailure",
    "InvalidAccessToken",
    "InvalidCredential",
    "InvalidRefreshToken",
    "RefreshTokenExpired",
    "RefreshTokenRevoked",
    "Settings",
    "bind_correlation_id",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_settings",
]
