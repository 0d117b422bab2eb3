"""Normalization of provider claims and OAuth profiles into an Identity."""

from collections.abc import Iterable, Mapping
from typing import Any

from noteauth.auth.types import Identity, VerifiedClaims
from noteauth.core.errors import AuthenticationError

REGISTERED_CLAIMS = frozenset(
    {"sub", "iss", "aud", "exp", "nbf", "iat", "jti", "azp", "scope", "nonce"}
)
PROMOTED_CLAIMS = frozenset(
    {"email", "name", "preferred_username", "username", "org_id", "organization_id"}
)
PROFILE_ID_KEYS = ("id", "sub", "user_id")
USERNAME_KEYS = ("username", "login", "email")


def normalize_scopes(value: Any) -> frozenset[str] | None:
    """Turn a ``scope`` claim into a set; ``None`` means no scope information."""
    if isinstance(value, str):
        scopes = frozenset(value.split())
    elif isinstance(value, Iterable) and not isinstance(value, (bytes, Mapping)):
        scopes = frozenset(s for item in value if isinstance(item, str) for s in item.split())
    else:
        return None
    return scopes or None


def _first_str(claims: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = claims.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def identity_from_claims(claims: VerifiedClaims | Mapping[str, Any]) -> Identity:
    """Build an Identity from verified token claims."""
    data = claims.as_dict() if isinstance(claims, VerifiedClaims) else dict(claims)
    subject = data.get("sub")
    if not isinstance(subject, str) or not subject:
        raise AuthenticationError("Token verification failure")

    extra = {
        key: value
        for key, value in data.items()
        if key not in REGISTERED_CLAIMS and key not in PROMOTED_CLAIMS
    }
    return Identity(
        id=subject,
        email=_first_str(data, "email"),
        name=_first_str(data, "name"),
        username=_first_str(data, "preferred_username", "username"),
        organization_id=_first_str(data, "org_id", "organization_id"),
        scopes=normalize_scopes(data.get("scope")),
        extra=extra,
    )


def provider_id_from_profile(profile: Mapping[str, Any]) -> str:
    """Pick the provider-side account id out of a userinfo profile."""
    for key in PROFILE_ID_KEYS:
        value = profile.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
            return str(value)
    raise AuthenticationError("Provider profile has no account identifier")


def default_username(provider: str, provider_id: str, profile: Mapping[str, Any]) -> str:
    """Username for a new OAuth-linked account: username, login, email, then fallback."""
    return _first_str(profile, *USERNAME_KEYS) or f"{provider}_{provider_id}"
