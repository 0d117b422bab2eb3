"""Shared test fixtures for the notes API."""

from collections.abc import AsyncIterator

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from noteauth.auth.keys import KeyCache
from noteauth.auth.verifier import TokenVerifier
from noteauth.core.app import create_app
from noteauth.core.services import AuthServices, build_services
from noteauth.db.base import BaseEntity
from noteauth.db.engine import get_session
from tests.support import (
    AUDIENCE,
    CLIENT_ID,
    IDP_DISCOVERY_URL,
    IDP_JWKS_URL,
    IDP_LOGOUT_URL,
    IDP_URL,
    TENANT_ISSUER,
    TENANT_JWKS_URL,
    FakeProvider,
    TokenFactory,
    generate_rsa_key,
    json_response,
    make_settings,
    public_jwk,
)


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """One RSA key per test session; generation is slow."""
    return generate_rsa_key()


@pytest.fixture
def jwks_document(rsa_key: rsa.RSAPrivateKey) -> dict:
    return {"keys": [public_jwk(rsa_key)]}


@pytest.fixture
def tokens(rsa_key: rsa.RSAPrivateKey) -> TokenFactory:
    """Tokens for the JWKS tenant (bearer auth on protected routes)."""
    return TokenFactory(rsa_key, issuer=TENANT_ISSUER, audience=AUDIENCE)


@pytest.fixture
def idp_tokens(rsa_key: rsa.RSAPrivateKey) -> TokenFactory:
    """Tokens as the hosted-login provider issues them to this client."""
    return TokenFactory(rsa_key, issuer=IDP_URL, audience=CLIENT_ID)


@pytest.fixture
def provider(jwks_document: dict) -> FakeProvider:
    """Fake tenant and provider serving keys and metadata."""
    fake = FakeProvider()
    fake.add("GET", TENANT_JWKS_URL, json_response(jwks_document))
    fake.add("GET", IDP_JWKS_URL, json_response(jwks_document))
    fake.add(
        "GET",
        IDP_DISCOVERY_URL,
        json_response({"issuer": IDP_URL, "end_session_endpoint": IDP_LOGOUT_URL}),
    )
    return fake


@pytest.fixture
async def http_client(provider: FakeProvider) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(provider)) as client:
        yield client


@pytest.fixture
def key_cache(http_client: httpx.AsyncClient) -> KeyCache:
    return KeyCache(TENANT_JWKS_URL, http_client)


@pytest.fixture
def verifier(key_cache: KeyCache) -> TokenVerifier:
    return TokenVerifier(key_cache, issuer=TENANT_ISSUER, audience=AUDIENCE)


@pytest.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    """Create an in-memory SQLite async session for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def services(http_client: httpx.AsyncClient) -> AuthServices:
    return build_services(make_settings(), http_client=http_client)


@pytest.fixture
async def client(
    services: AuthServices, db_session: AsyncSession
) -> AsyncIterator[AsyncClient]:
    """Create an httpx test client with DB session override."""
    app = create_app(make_settings(), services)

    async def _override_session() -> AsyncIterator[AsyncSession]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_session] = _override_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
