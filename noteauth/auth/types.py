"""Type definitions for authorization requests, tokens, keys and identities."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuthorizationRequest(BaseModel):
    """A login redirect plus the per-request values the caller must round-trip."""

    url: str
    state: str
    nonce: str
    organization_id: str | None = None
    connection_id: str | None = None


class TokenBundle(BaseModel):
    """Tokens returned by the provider's token endpoint; never stored server-side."""

    access_token: str
    refresh_token: str | None = None
    id_token: str | None = None
    expires_in: int | None = None
    token_type: str = "Bearer"


class SigningKey(BaseModel):
    """A public verification key resolved from the provider's key set."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    key_id: str
    algorithm: str
    key: Any
    fetched_at: float
    expires_at: float


class VerifiedClaims(BaseModel):
    """Decoded JWT payload whose signature and time window have been checked."""

    model_config = ConfigDict(extra="allow", frozen=True)

    sub: str
    iss: str
    aud: str | list[str] | None = None
    exp: int | float
    nbf: int | float | None = None
    iat: int | float | None = None
    scope: str | list[str] | None = None

    def as_dict(self) -> dict[str, Any]:
        """All claims, registered and provider-specific, as a plain dict."""
        return self.model_dump(exclude_none=True)


class Identity(BaseModel):
    """Canonical, request-scoped view of the authenticated subject.

    ``scopes`` is ``None`` when the credential carried no scope information
    at all, which the scope guard treats differently from an empty grant.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    email: str | None = None
    name: str | None = None
    username: str | None = None
    organization_id: str | None = None
    scopes: frozenset[str] | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class ExchangeResult(BaseModel):
    """Outcome of a successful authorization-code exchange."""

    tokens: TokenBundle
    identity: Identity


class Authentication(BaseModel):
    """What an auth strategy attaches to an in-flight request."""

    identity: Identity
    access_token: str | None = None
