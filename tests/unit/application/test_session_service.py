"""Unit tests for SessionService: login, rotation, logout, and purge."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from structlog.testing import capture_logs

from verbio.application.services import SessionService
from verbio.core.exceptions import InternalFailure, RefreshTokenExpired, RefreshTokenRevoked
from verbio.domain.entities import AppleIdentity, ProfileHint, RotationOutcome
from verbio.infrastructure.auth import JWTService, hash_refresh_token
from verbio.infrastructure.persistence.models import (
    RefreshTokenModel,
    RevocationReason,
    UserModel,
)
from verbio.infrastructure.persistence.repositories import RefreshTokenRepository

START = datetime(2024, 1, 15, 8, 0, 0, tzinfo=timezone.utc)


class Clock:
    """Settable clock shared by the service under test."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> Clock:
    return Clock(START)


@pytest.fixture
def service(db_session, clock) -> SessionService:
    return SessionService(db_session, JWTService(clock=clock))


IDENTITY = AppleIdentity(subject="001234.apple.subject", email="apple@example.com")


async def family_rows(session_factory, family: str) -> list[RefreshTokenModel]:
    async with session_factory() as session:
        return await RefreshTokenRepository(session).list_family(family)


@pytest.mark.asyncio
async def test_login_creates_user_and_token_family(service, db_session):
    result = await service.login(IDENTITY, ProfileHint(first_name="Ada", last_name="L"))

    assert result.created is True
    assert result.user.apple_user_id == IDENTITY.subject
    assert result.user.email == "apple@example.com"
    assert result.user.first_name == "Ada"
    assert result.user.subscription_tier == "FREE"
    assert result.tokens.expires_in == 900

    stored = await RefreshTokenRepository(db_session).get_by_hash(
        hash_refresh_token(result.tokens.refresh_token)
    )
    assert stored is not None
    assert stored.user_id == result.user.id
    assert stored.revoked_at is None


@pytest.mark.asyncio
async def test_login_uses_relay_email_when_none_shared(service):
    result = await service.login(AppleIdentity(subject="001.hidden"))
    assert result.user.email == "001.hidden@privaterelay.appleid.com"


@pytest.mark.asyncio
async def test_second_login_reuses_user_and_keeps_names(service, db_session):
    first = await service.login(IDENTITY, ProfileHint(first_name="Ada"))
    second = await service.login(IDENTITY, ProfileHint(first_name="Other", last_name="Lovelace"))

    assert second.created is False
    assert second.user.id == first.user.id
    assert second.user.first_name == "Ada"
    assert second.user.last_name == "Lovelace"

    count = await db_session.scalar(select(func.count()).select_from(UserModel))
    assert count == 1


@pytest.mark.asyncio
async def test_each_login_starts_a_new_family(service, db_session):
    first = await service.login(IDENTITY)
    second = await service.login(IDENTITY)

    repo = RefreshTokenRepository(db_session)
    a = await repo.get_by_hash(hash_refresh_token(first.tokens.refresh_token))
    b = await repo.get_by_hash(hash_refresh_token(second.tokens.refresh_token))
    assert a.family != b.family


@pytest.mark.asyncio
async def test_rotation_succeeds_once_then_reuse_revokes_family(service, session_factory):
    login = await service.login(IDENTITY)
    original = login.tokens.refresh_token

    rotated = await service.rotate(original)
    assert rotated.outcome is RotationOutcome.ROTATED
    assert rotated.tokens.refresh_token != original

    with capture_logs() as logs:
        replay = await service.rotate(original)

    assert replay.outcome is RotationOutcome.REUSED
    with pytest.raises(RefreshTokenRevoked):
        replay.raise_for_outcome()

    # The newest token of the family is dead too.
    newest = await service.rotate(rotated.tokens.refresh_token)
    assert newest.outcome is RotationOutcome.REUSED

    rows = await family_rows(session_factory, rotated.family)
    assert len(rows) == 2
    assert all(row.revoked_at is not None for row in rows)

    warnings = [entry for entry in logs if entry["event"] == "refresh_token_reuse_detected"]
    assert len(warnings) == 1
    assert warnings[0]["log_level"] == "warning"
    assert warnings[0]["user_id"] == login.user.id
    assert warnings[0]["family"] == rotated.family
    logged = " ".join(str(value) for value in warnings[0].values())
    assert original not in logged
    assert hash_refresh_token(original) not in logged


@pytest.mark.asyncio
async def test_unknown_token_is_not_found(service):
    result = await service.rotate("never-issued")
    assert result.outcome is RotationOutcome.NOT_FOUND
    assert result.user_id is None


@pytest.mark.asyncio
async def test_expired_token_fails_without_revoking_family(service, clock, session_factory):
    login = await service.login(IDENTITY)
    rotated = await service.rotate(login.tokens.refresh_token)

    clock.advance(days=31)
    result = await service.rotate(rotated.tokens.refresh_token)

    assert result.outcome is RotationOutcome.EXPIRED
    with pytest.raises(RefreshTokenExpired):
        result.raise_for_outcome()

    rows = {row.token_hash: row for row in await family_rows(session_factory, rotated.family)}
    assert rows[hash_refresh_token(login.tokens.refresh_token)].revoked_reason == (
        RevocationReason.ROTATED
    )
    assert rows[hash_refresh_token(rotated.tokens.refresh_token)].revoked_at is None


@pytest.mark.asyncio
async def test_family_is_stable_across_rotation_chain(service, session_factory):
    login = await service.login(IDENTITY)
    presented = [login.tokens.refresh_token]
    families = set()

    for _ in range(5):
        result = await service.rotate(presented[-1])
        assert result.ok
        families.add(result.family)
        presented.append(result.tokens.refresh_token)

    assert len(families) == 1
    family = families.pop()

    # Replaying any consumed token kills the still-active newest one.
    replay = await service.rotate(presented[2])
    assert replay.outcome is RotationOutcome.REUSED
    assert (await service.rotate(presented[-1])).outcome is RotationOutcome.REUSED

    rows = await family_rows(session_factory, family)
    assert len(rows) == 6
    reasons = [row.revoked_reason for row in rows]
    assert reasons.count(RevocationReason.ROTATED) == 5
    assert reasons.count(RevocationReason.REUSE_DETECTED) == 1


@pytest.mark.asyncio
async def test_losing_the_consume_race_is_not_found(service, session_factory):
    """A request that read the token as active after another consumed it."""
    login = await service.login(IDENTITY)
    first = await service.rotate(login.tokens.refresh_token)
    assert first.ok

    async with session_factory() as session:
        repo = RefreshTokenRepository(session)
        current = await repo.get_by_hash(hash_refresh_token(login.tokens.refresh_token))
        stale = SimpleNamespace(
            id=current.id,
            user_id=current.user_id,
            family=current.family,
            expires_at=current.expires_at,
            revoked_at=None,
            revoked_reason=None,
        )

    with patch.object(
        RefreshTokenRepository, "get_by_hash", AsyncMock(return_value=stale)
    ):
        result = await service.rotate(login.tokens.refresh_token)

    assert result.outcome is RotationOutcome.NOT_FOUND
    rows = await family_rows(session_factory, first.family)
    assert len(rows) == 2
    assert sum(row.revoked_at is None for row in rows) == 1


@pytest.mark.asyncio
async def test_storage_failure_rolls_back_without_consuming(service):
    login = await service.login(IDENTITY)

    with patch.object(
        RefreshTokenRepository,
        "create",
        AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("disk I/O error"))),
    ):
        with pytest.raises(InternalFailure):
            await service.rotate(login.tokens.refresh_token)

    # Nothing was consumed, so the same token still rotates.
    retry = await service.rotate(login.tokens.refresh_token)
    assert retry.ok


@pytest.mark.asyncio
async def test_logout_all_devices_kills_every_session(service):
    phone = await service.login(IDENTITY)
    tablet = await service.login(IDENTITY)
    rotated = await service.rotate(tablet.tokens.refresh_token)

    revoked = await service.logout(phone.user.id, all_devices=True)

    assert revoked == 2
    for token in (phone.tokens.refresh_token, rotated.tokens.refresh_token):
        assert not (await service.rotate(token)).ok


@pytest.mark.asyncio
async def test_logout_with_token_ends_only_that_chain(service):
    phone = await service.login(IDENTITY)
    tablet = await service.login(IDENTITY)

    revoked = await service.logout(phone.user.id, refresh_token=phone.tokens.refresh_token)

    assert revoked == 1
    assert not (await service.rotate(phone.tokens.refresh_token)).ok
    assert (await service.rotate(tablet.tokens.refresh_token)).ok


@pytest.mark.asyncio
async def test_logout_is_idempotent(service):
    login = await service.login(IDENTITY)
    token = login.tokens.refresh_token

    assert await service.logout(login.user.id, refresh_token=token) == 1
    assert await service.logout(login.user.id, refresh_token=token) == 0
    assert await service.logout(login.user.id) == 0
    assert await service.logout(login.user.id, refresh_token="unknown") == 0


@pytest.mark.asyncio
async def test_logout_ignores_another_users_token(service):
    mine = await service.login(IDENTITY)
    theirs = await service.login(AppleIdentity(subject="someone.else"))

    revoked = await service.logout(mine.user.id, refresh_token=theirs.tokens.refresh_token)

    assert revoked == 0
    assert (await service.rotate(theirs.tokens.refresh_token)).ok


@pytest.mark.asyncio
async def test_purge_expired_keeps_recent_and_active_tokens(service, clock, db_session):
    old = await service.login(IDENTITY)

    clock.advance(days=45)
    recent = await service.login(IDENTITY)

    clock.advance(days=31)
    # old expired 46 days ago, recent expired 1 day ago
    purged = await service.purge_expired(older_than_days=30)

    assert purged == 1
    repo = RefreshTokenRepository(db_session)
    assert await repo.get_by_hash(hash_refresh_token(old.tokens.refresh_token)) is None
    assert await repo.get_by_hash(hash_refresh_token(recent.tokens.refresh_token)) is not None
