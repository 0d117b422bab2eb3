"""Secondary OAuth2 provider whose users are resolved into local accounts."""

from typing import Any

import httpx

from noteauth.auth.authorize import AuthorizationUrlBuilder, StateStore
from noteauth.auth.provider import parse_token_response, post_token_request
from noteauth.auth.types import AuthorizationRequest, TokenBundle
from noteauth.core.errors import ConfigurationError, ProviderError, ValidationError
from noteauth.core.logging import get_logger
from noteauth.core.settings import OAuthSettings

logger = get_logger(__name__)

_REQUIRED_SETTINGS = ("authorize_url", "token_url", "client_id", "client_secret", "callback_url")


class OAuthProfileClient:
    """Code exchange plus userinfo lookup for a plain OAuth2 provider."""

    def __init__(
        self,
        settings: OAuthSettings,
        http_client: httpx.AsyncClient,
        *,
        state_store: StateStore | None = None,
    ) -> None:
        missing = [f"OAUTH_{name.upper()}" for name in _REQUIRED_SETTINGS if not getattr(settings, name)]
        if missing:
            raise ConfigurationError("Missing OAuth settings: " + ", ".join(missing))
        self._settings = settings
        self._http = http_client
        self._authorize = AuthorizationUrlBuilder(
            settings.authorize_url,
            client_id=settings.client_id,
            redirect_uri=settings.callback_url,
            scopes=settings.scopes,
            state_store=state_store,
        )

    @property
    def provider(self) -> str:
        return self._settings.provider

    def authorization_request(self) -> AuthorizationRequest:
        return self._authorize.build()

    async def exchange_code(self, code: str) -> TokenBundle:
        """Trade a code for tokens at the provider's token endpoint."""
        if not code:
            raise ValidationError("Authorization code is required")
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._settings.callback_url,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
        }
        response = await post_token_request(self._http, self._settings.token_url, form)
        return parse_token_response(response)

    async def fetch_profile(self, access_token: str) -> dict[str, Any]:
        """Load the userinfo profile; empty when no userinfo URL is configured."""
        if not self._settings.userinfo_url:
            return {}
        try:
            response = await self._http.get(
                self._settings.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            profile = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("oauth_profile_fetch_failed", error=type(exc).__name__)
            raise ProviderError("Unable to load provider profile") from exc
        if not isinstance(profile, dict):
            raise ProviderError("Unexpected provider profile")
        return profile
