"""Persistence repositories for database operations."""

from verbio.infrastructure.persistence.repositories.refresh_token_repository import (
    RefreshTokenRepository,
)
from verbio.infrastructure.persistence.repositories.user_repository import (
    UserRepository,
)

__all__ = [
    "RefreshTokenRepository",
    "UserRepository",
]
