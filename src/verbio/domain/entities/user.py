"""User-level domain rules.

A user is created on the first successful Sign in with Apple and is keyed
by the stable Apple subject identifier, which never changes afterwards.
"""

from enum import Enum

APPLE_RELAY_DOMAIN = "privaterelay.appleid.com"


class SubscriptionTier(str, Enum):
    """Subscription tiers carried in access tokens."""

    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


def resolve_signup_email(
    subject: str,
    requested_email: str | None,
    asserted_email: str | None,
) -> str:
    """Pick the email for a new user.

    Apple only shares the email on the first authorization, and the user may
    hide it, so fall back to a relay-style address derived from the subject.
    """
    return requested_email or asserted_email or f"{subject}@{APPLE_RELAY_DOMAIN}"
