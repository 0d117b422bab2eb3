"""Explicit construction of the auth components from settings."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx

from noteauth.auth.authorize import StateStore
from noteauth.auth.keys import KeyCache
from noteauth.auth.oauth_profile import OAuthProfileClient
from noteauth.auth.provider import IdpClient, LogoutUrlProvider
from noteauth.auth.strategies import AuthStrategy, JwksStrategy, SessionStrategy
from noteauth.auth.verifier import TokenVerifier
from noteauth.core.errors import ConfigurationError
from noteauth.core.logging import get_logger
from noteauth.core.settings import AppSettings, JwtSettings

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class AuthServices:
    """Components shared by all requests.

    A component whose configuration is incomplete is ``None`` and its
    ConfigurationError is kept, to be raised by any request that needs it.
    """

    http_client: httpx.AsyncClient
    state_store: StateStore
    logout: LogoutUrlProvider
    require_state: bool = True
    strategy: AuthStrategy | None = None
    idp: IdpClient | None = None
    oauth: OAuthProfileClient | None = None
    errors: dict[str, ConfigurationError] = field(default_factory=dict)

    def require_strategy(self) -> AuthStrategy:
        if self.strategy is None:
            raise self._error("strategy")
        return self.strategy

    def require_idp(self) -> IdpClient:
        if self.idp is None:
            raise self._error("idp")
        return self.idp

    def require_oauth(self) -> OAuthProfileClient:
        if self.oauth is None:
            raise self._error("oauth")
        return self.oauth

    def _error(self, component: str) -> ConfigurationError:
        return self.errors.get(component) or ConfigurationError()


def _attempt(
    component: str, factory: Callable[[], T], errors: dict[str, ConfigurationError]
) -> T | None:
    try:
        return factory()
    except ConfigurationError as exc:
        logger.warning("auth_component_unconfigured", component=component, reason=exc.message)
        errors[component] = exc
        return None


def build_jwks_verifier(settings: JwtSettings, http_client: httpx.AsyncClient) -> TokenVerifier:
    """Remote-JWKS verifier for the configured tenant."""
    if not settings.domain and not (settings.issuer and settings.jwks_url):
        raise ConfigurationError("JWT_DOMAIN is not configured")
    cache = KeyCache(
        settings.resolved_jwks_url,
        http_client,
        ttl=settings.jwks_ttl,
        min_refresh_interval=settings.jwks_min_refresh_interval,
        fetch_timeout=settings.key_fetch_timeout,
    )
    return TokenVerifier(
        cache,
        issuer=settings.resolved_issuer,
        audience=settings.audience,
        algorithms=settings.algorithms,
        leeway=settings.leeway,
    )


def build_services(
    settings: AppSettings, http_client: httpx.AsyncClient | None = None
) -> AuthServices:
    """Construct every auth component once, validating configuration up front."""
    http = http_client or httpx.AsyncClient(timeout=settings.idp.http_timeout)
    errors: dict[str, ConfigurationError] = {}
    state_store = StateStore(settings.auth.state_ttl)

    idp = _attempt(
        "idp", lambda: IdpClient(settings.idp, http, state_store=state_store), errors
    )
    oauth = _attempt(
        "oauth",
        lambda: OAuthProfileClient(settings.oauth, http, state_store=state_store),
        errors,
    )

    strategy: AuthStrategy | None
    if settings.auth.strategy == "session":
        strategy = SessionStrategy(idp) if idp is not None else None
        if idp is None:
            errors["strategy"] = errors["idp"]
    else:
        verifier = _attempt(
            "strategy", lambda: build_jwks_verifier(settings.jwt, http), errors
        )
        strategy = JwksStrategy(verifier) if verifier is not None else None

    logger.info(
        "auth_services_built",
        strategy=settings.auth.strategy,
        unconfigured=sorted(errors),
    )
    return AuthServices(
        http_client=http,
        state_store=state_store,
        logout=LogoutUrlProvider(idp, settings.idp.post_logout_redirect_uri),
        require_state=settings.auth.require_state,
        strategy=strategy,
        idp=idp,
        oauth=oauth,
        errors=errors,
    )
