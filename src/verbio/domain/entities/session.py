"""Session value objects: identities, token pairs, and rotation results."""

from dataclasses import dataclass
from enum import Enum

from verbio.core.exceptions import (
    InvalidRefreshToken,
    RefreshTokenExpired,
    RefreshTokenRevoked,
)


@dataclass(frozen=True)
class AppleIdentity:
    """Claims extracted from a verified Apple identity token."""

    subject: str
    email: str | None = None
    email_verified: bool = False
    is_private_email: bool = False


@dataclass(frozen=True)
class ProfileHint:
    """Optional profile fields the client sends alongside the assertion."""

    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None


@dataclass(frozen=True)
class TokenPair:
    """Access token, plaintext refresh token, and access-token lifetime.

    The plaintext refresh token leaves the server exactly once, in this
    object; only its hash is stored.
    """

    access_token: str
    refresh_token: str
    expires_in: int


class RotationOutcome(str, Enum):
    """Result tags of presenting a refresh token."""

    ROTATED = "rotated"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    REUSED = "reused"


_OUTCOME_ERRORS: dict[RotationOutcome, type[Exception]] = {
    RotationOutcome.NOT_FOUND: InvalidRefreshToken,
    RotationOutcome.EXPIRED: RefreshTokenExpired,
    RotationOutcome.REUSED: RefreshTokenRevoked,
}


@dataclass(frozen=True)
class RotationResult:
    """Tagged result of a rotation attempt.

    ``tokens`` is set only when ``outcome`` is ``ROTATED``. ``user_id`` and
    ``family`` are set whenever a stored token was found.
    """

    outcome: RotationOutcome
    tokens: TokenPair | None = None
    user_id: str | None = None
    family: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is RotationOutcome.ROTATED

    def raise_for_outcome(self) -> TokenPair:
        """Return the new tokens, or raise the error matching the outcome."""
        if self.ok and self.tokens is not None:
            return self.tokens
        error = _OUTCOME_ERRORS.get(self.outcome, InvalidRefreshToken)
        raise error(f"Refresh token rejected: {self.outcome.value}")
