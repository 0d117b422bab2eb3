"""Client for the primary OIDC identity provider."""

from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict

from noteauth.auth.authorize import AuthorizationUrlBuilder, StateStore
from noteauth.auth.identity import identity_from_claims
from noteauth.auth.keys import KeyCache
from noteauth.auth.types import (
    AuthorizationRequest,
    ExchangeResult,
    Identity,
    TokenBundle,
    VerifiedClaims,
)
from noteauth.auth.verifier import TokenVerifier
from noteauth.core.errors import (
    AuthenticationError,
    ConfigurationError,
    ProviderError,
    ValidationError,
)
from noteauth.core.logging import get_logger
from noteauth.core.settings import IdpSettings

logger = get_logger(__name__)

HTTP_SERVER_ERROR = 500
HTTP_CLIENT_ERROR = 400
CONNECT_RETRY_TIMEOUT = 3.0
INVALID_CODE = "Invalid or expired authorization code"

_REQUIRED_SETTINGS = ("env_url", "client_id", "client_secret")


class DiscoveryDocument(BaseModel):
    """Subset of ``.well-known/openid-configuration`` this client relies on."""

    model_config = ConfigDict(extra="ignore")

    issuer: str
    authorization_endpoint: str | None = None
    token_endpoint: str | None = None
    jwks_uri: str | None = None
    end_session_endpoint: str | None = None


def oauth_error_code(response: httpx.Response) -> str:
    """Extract the RFC 6749 ``error`` field from a token-endpoint reply."""
    try:
        body = response.json()
    except ValueError:
        return "unknown_error"
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return "unknown_error"


async def post_token_request(
    http: httpx.AsyncClient, url: str, form: dict[str, str]
) -> httpx.Response:
    """POST to a token endpoint once, retrying only if the connection never opened.

    Authorization codes are single-use, so any failure after the request may
    have reached the provider is final.
    """
    try:
        return await http.post(url, data=form, headers={"Accept": "application/json"})
    except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
        logger.warning("token_endpoint_connect_retry", error=type(exc).__name__)
    except httpx.TimeoutException as exc:
        raise ProviderError("Identity provider timed out") from exc
    except httpx.HTTPError as exc:
        raise ProviderError() from exc

    try:
        return await http.post(
            url,
            data=form,
            headers={"Accept": "application/json"},
            timeout=CONNECT_RETRY_TIMEOUT,
        )
    except httpx.TimeoutException as exc:
        raise ProviderError("Identity provider timed out") from exc
    except httpx.HTTPError as exc:
        raise ProviderError() from exc


def parse_token_response(response: httpx.Response) -> TokenBundle:
    """Map a token-endpoint reply to a TokenBundle or a typed failure."""
    if response.status_code >= HTTP_SERVER_ERROR:
        logger.warning("token_endpoint_server_error", status=response.status_code)
        raise ProviderError()
    if response.status_code >= HTTP_CLIENT_ERROR:
        logger.info(
            "code_exchange_rejected",
            status=response.status_code,
            error=oauth_error_code(response),
        )
        raise AuthenticationError(INVALID_CODE, status_code=HTTP_CLIENT_ERROR)
    try:
        return TokenBundle.model_validate(response.json())
    except ValueError as exc:
        raise ProviderError("Unexpected token response") from exc


class IdpClient:
    """Hosted-login client: authorize redirect, code exchange, token checks, logout.

    Constructed once at startup; construction fails with ConfigurationError
    when the environment URL or client credentials are missing.
    """

    def __init__(
        self,
        settings: IdpSettings,
        http_client: httpx.AsyncClient,
        *,
        key_cache: KeyCache | None = None,
        state_store: StateStore | None = None,
    ) -> None:
        missing = [f"IDP_{name.upper()}" for name in _REQUIRED_SETTINGS if not getattr(settings, name)]
        if missing:
            raise ConfigurationError(
                "Missing identity provider settings: " + ", ".join(missing)
            )
        base = settings.base_url
        self._settings = settings
        self._http = http_client
        self._keys = key_cache or KeyCache(f"{base}{settings.jwks_path}", http_client)
        self._id_tokens = TokenVerifier(
            self._keys,
            issuer=settings.resolved_issuer,
            audience=settings.client_id,
            leeway=settings.leeway,
        )
        self._access_tokens = TokenVerifier(
            self._keys,
            issuer=settings.resolved_issuer,
            audience=settings.resolved_audience,
            leeway=settings.leeway,
        )
        self._authorize = AuthorizationUrlBuilder(
            f"{base}{settings.authorize_path}",
            client_id=settings.client_id,
            redirect_uri=settings.redirect_uri,
            scopes=settings.scopes,
            state_store=state_store,
        )
        self._discovery: DiscoveryDocument | None = None

    @property
    def post_logout_redirect_uri(self) -> str:
        return self._settings.post_logout_redirect_uri

    def authorization_request(
        self,
        organization_id: str | None = None,
        connection_id: str | None = None,
    ) -> AuthorizationRequest:
        """Build the hosted-login redirect for this client."""
        return self._authorize.build(organization_id, connection_id)

    async def exchange_code(self, code: str, *, nonce: str | None = None) -> ExchangeResult:
        """Trade an authorization code for tokens and the caller's identity."""
        if not code:
            raise ValidationError("Authorization code is required")
        if not self._settings.redirect_uri:
            raise ConfigurationError("Redirect URI is not configured")

        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._settings.redirect_uri,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
        }
        url = f"{self._settings.base_url}{self._settings.token_path}"
        response = await post_token_request(self._http, url, form)
        tokens = parse_token_response(response)
        identity = await self._identity_for(tokens, nonce)
        logger.info("code_exchanged", user_id=identity.id)
        return ExchangeResult(tokens=tokens, identity=identity)

    async def validate_access_token(self, token: str) -> VerifiedClaims:
        """Verify an access token issued by this provider."""
        return await self._access_tokens.verify(token)

    async def discover(self) -> DiscoveryDocument:
        """Fetch and cache the provider's OIDC discovery document."""
        if self._discovery is not None:
            return self._discovery
        url = f"{self._settings.base_url}{self._settings.discovery_path}"
        try:
            response = await self._http.get(url)
            response.raise_for_status()
            document = DiscoveryDocument.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError("Unable to load provider metadata") from exc
        self._discovery = document
        return document

    async def logout_url(self) -> str:
        """Provider end-session URL; raises ProviderError if unavailable."""
        document = await self.discover()
        if not document.end_session_endpoint:
            raise ProviderError("Provider does not advertise a logout endpoint")
        params = {
            "post_logout_redirect_uri": self._settings.post_logout_redirect_uri,
            "client_id": self._settings.client_id,
        }
        return f"{document.end_session_endpoint}?{urlencode(params)}"

    async def _identity_for(self, tokens: TokenBundle, nonce: str | None) -> Identity:
        try:
            if tokens.id_token:
                claims = await self._id_tokens.verify(tokens.id_token)
            else:
                claims = await self._access_tokens.verify(tokens.access_token)
        except AuthenticationError as exc:
            raise AuthenticationError(
                "Unable to verify provider tokens", status_code=HTTP_CLIENT_ERROR
            ) from exc

        data: dict[str, Any] = claims.as_dict()
        if nonce is not None and tokens.id_token and data.get("nonce") != nonce:
            logger.warning("id_token_nonce_mismatch")
            raise AuthenticationError(
                "Unable to verify provider tokens", status_code=HTTP_CLIENT_ERROR
            )
        return identity_from_claims(data)


class LogoutUrlProvider:
    """Resolves where to send a user on logout; never fails."""

    def __init__(self, idp: IdpClient | None, fallback_url: str) -> None:
        self._idp = idp
        self._fallback_url = fallback_url

    async def get(self) -> str:
        if self._idp is None:
            logger.warning("logout_url_fallback", reason="provider_unconfigured")
            return self._fallback_url
        try:
            return await self._idp.logout_url()
        except Exception:
            logger.warning("logout_url_fallback", reason="provider_failure", exc_info=True)
            return self._fallback_url
