"""Pydantic schemas for API requests and responses."""

from verbio.infrastructure.api.schemas.auth_schemas import (
    AppleAuthRequest,
    AuthResponse,
    ErrorResponse,
    LogoutRequest,
    LogoutResponse,
    ProfileResponse,
    RefreshRequest,
    SafeUserResponse,
    TokenRefreshResponse,
    ValidationErrorDetail,
    ValidationErrorResponse,
)

__all__ = [
    "AppleAuthRequest",
    "AuthResponse",
    "ErrorResponse",
    "LogoutRequest",
    "LogoutResponse",
    "ProfileResponse",
    "RefreshRequest",
    "SafeUserResponse",
    "TokenRefreshResponse",
    "ValidationErrorDetail",
    "ValidationErrorResponse",
]
