"""Token minting and a fake provider shared by the test suite."""

import inspect
import json
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import jwt
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from noteauth.core.settings import (
    AppSettings,
    AuthSettings,
    DatabaseSettings,
    IdpSettings,
    JwtSettings,
    OAuthSettings,
)

TENANT_DOMAIN = "tenant.example.com"
TENANT_ISSUER = f"https://{TENANT_DOMAIN}/"
TENANT_JWKS_URL = f"https://{TENANT_DOMAIN}/.well-known/jwks.json"
AUDIENCE = "notes-api"
KID = "test-key-1"

IDP_URL = "https://idp.example.com"
IDP_JWKS_URL = f"{IDP_URL}/keys"
IDP_TOKEN_URL = f"{IDP_URL}/oauth/token"
IDP_DISCOVERY_URL = f"{IDP_URL}/.well-known/openid-configuration"
IDP_LOGOUT_URL = f"{IDP_URL}/oauth/logout"
CLIENT_ID = "notes-client"
CLIENT_SECRET = "s3cret"
REDIRECT_URI = "http://localhost:3000/auth/callback"

OAUTH_AUTHORIZE_URL = "https://oauth.example.com/authorize"
OAUTH_TOKEN_URL = "https://oauth.example.com/token"
OAUTH_USERINFO_URL = "https://oauth.example.com/userinfo"
OAUTH_CALLBACK_URL = "http://localhost:3000/auth/oauth/callback"

Responder = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


def generate_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def public_jwk(private_key: rsa.RSAPrivateKey, kid: str = KID) -> dict[str, Any]:
    """Public half of an RSA key as a JWKS entry."""
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update(kid=kid, use="sig", alg="RS256")
    return jwk


class TokenFactory:
    """Mints RS256 tokens; claims set to None are left out."""

    def __init__(
        self,
        private_key: rsa.RSAPrivateKey,
        *,
        issuer: str = TENANT_ISSUER,
        audience: str = AUDIENCE,
        kid: str = KID,
    ) -> None:
        self.private_key = private_key
        self.issuer = issuer
        self.audience = audience
        self.kid = kid

    def mint(self, headers: dict[str, Any] | None = None, **claims: Any) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "sub": "user-123",
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": now + 300,
        }
        payload.update(claims)
        payload = {k: v for k, v in payload.items() if v is not None}
        return jwt.encode(
            payload,
            self.private_key,
            algorithm="RS256",
            headers={"kid": self.kid, **(headers or {})},
        )


def json_response(
    body: Any, status: int = 200, headers: dict[str, str] | None = None
) -> Responder:
    def _respond(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body, headers=headers)

    return _respond


class FakeProvider:
    """httpx.MockTransport handler that routes on method and URL without query."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, url: str, responder: Responder) -> None:
        self.routes[(method, url)] = responder

    def hits(self, url: str) -> int:
        return sum(1 for r in self.requests if _route_url(r) == url)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, _route_url(request)))
        if responder is None:
            return httpx.Response(404, json={"error": "not_found"})
        result = responder(request)
        if inspect.isawaitable(result):
            result = await result
        return result


def _route_url(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


def make_settings(**auth_overrides: Any) -> AppSettings:
    """Fully configured settings pointing at the fake provider."""
    return AppSettings(
        auth=AuthSettings(log_json=False, **auth_overrides),
        idp=IdpSettings(
            env_url=IDP_URL,
            client_id=CLIENT_ID,
            client_secret=CLIENT_SECRET,
            redirect_uri=REDIRECT_URI,
        ),
        jwt=JwtSettings(domain=TENANT_DOMAIN, audience=AUDIENCE),
        oauth=OAuthSettings(
            provider="mcp",
            authorize_url=OAUTH_AUTHORIZE_URL,
            token_url=OAUTH_TOKEN_URL,
            userinfo_url=OAUTH_USERINFO_URL,
            callback_url=OAUTH_CALLBACK_URL,
            client_id="mcp-client",
            client_secret="mcp-secret",
        ),
        database=DatabaseSettings(url="sqlite+aiosqlite://"),
    )
