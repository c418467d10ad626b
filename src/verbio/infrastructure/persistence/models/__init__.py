"""SQLAlchemy models for Verbio.

All models inherit from the Base class defined in database.py.
"""

from verbio.infrastructure.persistence.models.refresh_token import (
    RefreshTokenModel,
    RevocationReason,
)
from verbio.infrastructure.persistence.models.user import UserModel

__all__ = [
    "RefreshTokenModel",
    "RevocationReason",
    "UserModel",
]
