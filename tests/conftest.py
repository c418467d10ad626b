"""Pytest configuration for all tests.

Signing keys and settings are set up through the environment before any
``verbio`` module reads its configuration.
"""

import json
import os
import time
from typing import AsyncGenerator, Callable

import httpx
import jwt
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from jwt.algorithms import RSAAlgorithm


def _generate_es256_pems() -> tuple[str, str]:
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")
    return private_pem, public_pem


APPLE_BUNDLE_ID = "com.verbio.ios"
APPLE_KEYS_URL = "https://appleid.test/auth/keys"
APPLE_ISSUER = "https://appleid.apple.com"
APPLE_KID = "test-apple-kid"

TEST_PRIVATE_KEY, TEST_PUBLIC_KEY = _generate_es256_pems()

os.environ.update(
    {
        "VERBIO_ENVIRONMENT": "testing",
        "VERBIO_DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "VERBIO_JWT_PRIVATE_KEY": TEST_PRIVATE_KEY,
        "VERBIO_JWT_PUBLIC_KEY": TEST_PUBLIC_KEY,
        "VERBIO_APPLE_BUNDLE_ID": APPLE_BUNDLE_ID,
        "VERBIO_APPLE_KEYS_URL": APPLE_KEYS_URL,
        "VERBIO_LOG_FORMAT": "console",
    }
)

from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from verbio.core.config import get_settings  # noqa: E402

get_settings.cache_clear()

from verbio.infrastructure.auth import AppleIdentityVerifier  # noqa: E402
from verbio.infrastructure.persistence import models  # noqa: E402,F401
from verbio.infrastructure.persistence.database import Base  # noqa: E402


class AppleKeysEndpoint:
    """Stand-in for Apple's JWKS endpoint, served through httpx.MockTransport."""

    def __init__(self, jwks: dict) -> None:
        self.jwks = jwks
        self.calls = 0
        self.fail = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.fail:
            return httpx.Response(503, json={"error": "unavailable"})
        return httpx.Response(200, json=self.jwks)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_jwk(private_key: rsa.RSAPrivateKey, kid: str) -> dict:
    """Public JWK of an RSA key, shaped like Apple's published keys."""
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


@pytest.fixture(scope="session")
def apple_signing_key() -> rsa.RSAPrivateKey:
    """RSA key standing in for Apple's identity token signing key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def apple_keys(apple_signing_key) -> AppleKeysEndpoint:
    """Mock JWKS endpoint publishing the test signing key."""
    return AppleKeysEndpoint({"keys": [make_jwk(apple_signing_key, APPLE_KID)]})


@pytest.fixture
def apple_verifier(apple_keys: AppleKeysEndpoint) -> AppleIdentityVerifier:
    """Verifier wired to the mock JWKS endpoint."""
    return AppleIdentityVerifier(
        keys_url=APPLE_KEYS_URL,
        audiences=[APPLE_BUNDLE_ID],
        cache_seconds=3600,
        timeout=5.0,
        transport=apple_keys.transport,
    )


@pytest.fixture
def make_apple_jwk() -> Callable[[rsa.RSAPrivateKey, str], dict]:
    """Build a published JWK for an extra signing key."""
    return make_jwk


@pytest.fixture
def make_apple_token(apple_signing_key) -> Callable[..., str]:
    """Factory for Apple identity tokens.

    Keyword arguments override claims; ``key`` and ``kid`` override the
    signing key and header, ``lifetime`` sets ``exp`` relative to now.
    """

    def _make(
        subject: str = "001234.abcdef.apple",
        *,
        key=None,
        kid: str | None = APPLE_KID,
        lifetime: int = 600,
        **claims,
    ) -> str:
        now = int(time.time())
        payload = {
            "iss": APPLE_ISSUER,
            "aud": APPLE_BUNDLE_ID,
            "sub": subject,
            "iat": now - 5,
            "exp": now + lifetime,
        }
        payload.update(claims)
        headers = {"kid": kid} if kid else {}
        return jwt.encode(
            payload,
            key or apple_signing_key,
            algorithm="RS256",
            headers=headers,
        )

    return _make


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables created.

    ``StaticPool`` keeps one connection, so every session sees the same
    database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(
    session_factory, apple_verifier
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create a test client with overridden database and Apple dependencies.

    Each request gets its own session, as in production.
    """
    from verbio.infrastructure.api.app import app
    from verbio.infrastructure.api.dependencies import get_apple_verifier
    from verbio.infrastructure.persistence.database import get_db_session

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_apple_verifier] = lambda: apple_verifier

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides = {}
