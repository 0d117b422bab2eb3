"""Integration test: hosted login, callback, then notes access with a bearer token."""

from urllib.parse import parse_qs, urlparse

import pytest
from httpx import AsyncClient

from tests.support import IDP_TOKEN_URL, FakeProvider, TokenFactory, json_response

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_BAD_REQUEST = 400

pytestmark = pytest.mark.integration


class TestHostedLoginFlow:
    """Login, callback and failure relay through the HTTP surface."""

    @pytest.mark.asyncio
    async def test_login_then_callback(
        self, client: AsyncClient, provider: FakeProvider, idp_tokens: TokenFactory
    ) -> None:
        login = await client.get("/auth/login", params={"organization_id": "org_1"})
        assert login.status_code == HTTP_OK
        body = login.json()
        query = parse_qs(urlparse(body["authorizationUrl"]).query)
        assert query["organization_id"] == ["org_1"]
        assert body["state"]

        nonce = query["nonce"][0]
        id_token = idp_tokens.mint(sub="user_stub_01", org_id="org_1", nonce=nonce)
        provider.add(
            "POST",
            IDP_TOKEN_URL,
            json_response({"access_token": "opaque-access", "id_token": id_token}),
        )

        callback = await client.get(
            "/auth/callback", params={"code": "valid123", "state": body["state"]}
        )
        assert callback.status_code == HTTP_OK
        tokens = callback.json()
        assert tokens["tokenType"] == "Bearer"
        assert tokens["user"]["id"] == "user_stub_01"
        assert tokens["user"]["organizationId"] == "org_1"

    @pytest.mark.asyncio
    async def test_denied_login(self, client: AsyncClient) -> None:
        resp = await client.get("/auth/callback", params={"error": "access_denied"})
        assert resp.status_code == HTTP_BAD_REQUEST
        body = resp.json()
        assert body["error"] == "access_denied"
        assert "errorDescription" in body


class TestBearerAccess:
    """A tenant token carrying notes scopes reaches the notes store."""

    @pytest.mark.asyncio
    async def test_profile_and_notes(self, client: AsyncClient, tokens: TokenFactory) -> None:
        token = tokens.mint(sub="user-77", scope="notes:read notes:write")
        headers = {"Authorization": f"Bearer {token}"}

        profile = await client.get("/auth/profile", headers=headers)
        assert profile.json()["id"] == "user-77"

        created = await client.post("/notes", json={"title": "hello"}, headers=headers)
        assert created.status_code == HTTP_CREATED

        listed = await client.get("/notes", headers=headers)
        assert [n["title"] for n in listed.json()] == ["hello"]
