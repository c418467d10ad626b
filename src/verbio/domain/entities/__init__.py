"""Domain entities for Verbio.

Entities are pure Python dataclasses that represent core business concepts.
They have no dependencies on infrastructure or external frameworks.
"""

from verbio.domain.entities.session import (
    AppleIdentity,
    ProfileHint,
    RotationOutcome,
    RotationResult,
    TokenPair,
)
from verbio.domain.entities.user import SubscriptionTier, resolve_signup_email

__all__ = [
    "AppleIdentity",
    "ProfileHint",
    "RotationOutcome",
    "RotationResult",
    "SubscriptionTier",
    "TokenPair",
    "resolve_signup_email",
]
