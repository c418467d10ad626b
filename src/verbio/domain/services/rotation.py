"""Refresh token rotation state machine.

A stored refresh token is ``Active`` until it is either consumed by a
successful rotation or revoked (reuse detection, logout). Both end states
are recorded the same way, by setting ``revoked_at``, which is why a
revoked token presented again is treated as reuse: a legitimate client
never holds a consumed token.

This module is pure: it decides, the session service acts.
"""

from datetime import datetime, timezone
from typing import Protocol

from verbio.domain.entities.session import RotationOutcome


class StoredRefreshToken(Protocol):
    """The fields of a stored refresh token the state machine reads."""

    expires_at: datetime
    revoked_at: datetime | None


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def classify_refresh_token(
    record: StoredRefreshToken | None,
    now: datetime,
) -> RotationOutcome:
    """Decide what presenting a refresh token leads to.

    Order matters: a revoked token is reported as reuse even when it has
    also expired, since a replayed token is the security signal.

    Args:
        record: The stored token matching the presented value's hash, if any.
        now: Current time (aware).

    Returns:
        ``ROTATED`` when the token may be exchanged, otherwise the failure tag.
    """
    if record is None:
        return RotationOutcome.NOT_FOUND
    if record.revoked_at is not None:
        return RotationOutcome.REUSED
    if as_utc(record.expires_at) <= now:
        return RotationOutcome.EXPIRED
    return RotationOutcome.ROTATED
