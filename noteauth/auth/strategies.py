"""Interchangeable bearer-token authentication strategies."""

from typing import Protocol

from noteauth.auth.identity import identity_from_claims
from noteauth.auth.provider import IdpClient
from noteauth.auth.types import Authentication
from noteauth.auth.verifier import TokenVerifier


class AuthStrategy(Protocol):
    """Turns a raw bearer token into an Authentication or raises."""

    name: str

    async def authenticate(self, token: str) -> Authentication: ...


class JwksStrategy:
    """Verifies tokens locally against a remote JWKS (Auth0-style tenant)."""

    name = "jwks"

    def __init__(self, verifier: TokenVerifier) -> None:
        self._verifier = verifier

    async def authenticate(self, token: str) -> Authentication:
        claims = await self._verifier.verify(token)
        return Authentication(identity=identity_from_claims(claims))


class SessionStrategy:
    """Validates hosted-login access tokens and keeps the raw token for downstream calls."""

    name = "session"

    def __init__(self, idp: IdpClient) -> None:
        self._idp = idp

    async def authenticate(self, token: str) -> Authentication:
        claims = await self._idp.validate_access_token(token)
        return Authentication(identity=identity_from_claims(claims), access_token=token)
