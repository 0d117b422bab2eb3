"""Tests for the secondary OAuth provider client."""

import httpx
import pytest

from noteauth.auth.oauth_profile import OAuthProfileClient
from noteauth.core.errors import ConfigurationError, ProviderError
from noteauth.core.settings import OAuthSettings
from tests.support import (
    OAUTH_AUTHORIZE_URL,
    OAUTH_TOKEN_URL,
    OAUTH_USERINFO_URL,
    FakeProvider,
    json_response,
    make_settings,
)


@pytest.fixture
def oauth(http_client: httpx.AsyncClient) -> OAuthProfileClient:
    return OAuthProfileClient(make_settings().oauth, http_client)


class TestOAuthProfileClient:
    """Tests for OAuthProfileClient."""

    def test_requires_endpoints_and_credentials(self, http_client: httpx.AsyncClient) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            OAuthProfileClient(OAuthSettings(authorize_url=OAUTH_AUTHORIZE_URL), http_client)
        assert "OAUTH_TOKEN_URL" in exc_info.value.message
        assert "OAUTH_AUTHORIZE_URL" not in exc_info.value.message

    def test_authorization_request(self, oauth: OAuthProfileClient) -> None:
        request = oauth.authorization_request()
        assert request.url.startswith(OAUTH_AUTHORIZE_URL + "?")
        assert "client_id=mcp-client" in request.url

    @pytest.mark.asyncio
    async def test_exchange_code(self, oauth: OAuthProfileClient, provider: FakeProvider) -> None:
        provider.add("POST", OAUTH_TOKEN_URL, json_response({"access_token": "mcp-token"}))
        tokens = await oauth.exchange_code("code-1")
        assert tokens.access_token == "mcp-token"
        assert tokens.token_type == "Bearer"

    @pytest.mark.asyncio
    async def test_fetch_profile_sends_bearer(
        self, oauth: OAuthProfileClient, provider: FakeProvider
    ) -> None:
        provider.add("GET", OAUTH_USERINFO_URL, json_response({"id": "42", "login": "octo"}))
        profile = await oauth.fetch_profile("mcp-token")
        assert profile == {"id": "42", "login": "octo"}
        assert provider.requests[-1].headers["Authorization"] == "Bearer mcp-token"

    @pytest.mark.asyncio
    async def test_fetch_profile_failure(
        self, oauth: OAuthProfileClient, provider: FakeProvider
    ) -> None:
        provider.add("GET", OAUTH_USERINFO_URL, json_response({}, status=401))
        with pytest.raises(ProviderError):
            await oauth.fetch_profile("mcp-token")

    @pytest.mark.asyncio
    async def test_fetch_profile_without_userinfo_url(
        self, http_client: httpx.AsyncClient, provider: FakeProvider
    ) -> None:
        settings = make_settings().oauth.model_copy(update={"userinfo_url": ""})
        client = OAuthProfileClient(settings, http_client)
        assert await client.fetch_profile("mcp-token") == {}
        assert provider.requests == []
