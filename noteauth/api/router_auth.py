"""Login, callback, refresh, profile and logout endpoints."""

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse

from noteauth.api.cancellation import run_until_disconnected
from noteauth.api.deps import CurrentIdentity, Services
from noteauth.api.schemas import (
    CallbackResponse,
    CallbackUser,
    LoginResponse,
    LogoutResponse,
    OAuthCallbackResponse,
    OAuthUser,
    ProfileResponse,
    RefreshRequest,
)
from noteauth.auth.identity import provider_id_from_profile
from noteauth.core.errors import (
    AuthenticationError,
    RefreshNotSupportedError,
    ValidationError,
)
from noteauth.core.logging import get_logger
from noteauth.core.services import AuthServices
from noteauth.db.engine import get_session
from noteauth.db.repo_user import find_or_create_from_oauth

router = APIRouter(prefix="/auth", tags=["auth"])

logger = get_logger(__name__)

HTTP_BAD_REQUEST = 400

DbSession = Annotated[AsyncSession, Depends(get_session)]
OptionalQuery = Annotated[str | None, Query()]


def _provider_error_response(error: str, description: str | None) -> JSONResponse:
    logger.info("provider_returned_error", error=error)
    return JSONResponse(
        {"error": error, "errorDescription": description or "Authentication failed"},
        status_code=HTTP_BAD_REQUEST,
    )


def _redeem_state(services: AuthServices, state: str | None) -> str | None:
    """Consume the login state echoed back by the provider; returns its nonce."""
    if state:
        nonce = services.state_store.consume(state)
        if nonce is None:
            raise AuthenticationError(
                "Invalid or expired login state", status_code=HTTP_BAD_REQUEST
            )
        return nonce
    if services.require_state:
        raise AuthenticationError("Missing login state", status_code=HTTP_BAD_REQUEST)
    return None


@router.get("/login")
async def login(
    services: Services,
    organization_id: OptionalQuery = None,
    connection_id: OptionalQuery = None,
) -> LoginResponse:
    """GET /auth/login -- start hosted login."""
    auth_request = services.require_idp().authorization_request(
        organization_id, connection_id
    )
    return LoginResponse(authorization_url=auth_request.url, state=auth_request.state)


@router.get("/callback", response_model=None)
async def callback(
    request: Request,
    services: Services,
    code: OptionalQuery = None,
    state: OptionalQuery = None,
    error: OptionalQuery = None,
    error_description: OptionalQuery = None,
) -> CallbackResponse | JSONResponse:
    """GET /auth/callback -- exchange the authorization code for tokens."""
    if error:
        return _provider_error_response(error, error_description)
    if not code:
        raise ValidationError("Authorization code is required")

    idp = services.require_idp()
    nonce = _redeem_state(services, state)
    result = await run_until_disconnected(request, idp.exchange_code(code, nonce=nonce))

    tokens, identity = result.tokens, result.identity
    return CallbackResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        id_token=tokens.id_token,
        expires_in=tokens.expires_in,
        user=CallbackUser(
            id=identity.id,
            email=identity.email,
            name=identity.name,
            organization_id=identity.organization_id,
        ),
    )


@router.post("/refresh")
async def refresh(
    payload: Annotated[RefreshRequest | None, Body()] = None,
) -> JSONResponse:
    """POST /auth/refresh -- not supported; clients must log in again."""
    if payload is None or not payload.refresh_token:
        raise ValidationError("Refresh token is required")
    raise RefreshNotSupportedError()


@router.get("/profile")
async def profile(identity: CurrentIdentity) -> ProfileResponse:
    """GET /auth/profile -- the verified caller."""
    return ProfileResponse(
        id=identity.id,
        email=identity.email,
        name=identity.name,
        username=identity.username,
        organization_id=identity.organization_id,
    )


@router.post("/logout")
async def logout(request: Request, services: Services) -> LogoutResponse:
    """POST /auth/logout -- where to send the user to end the provider session."""
    url = await run_until_disconnected(request, services.logout.get())
    return LogoutResponse(logout_url=url)


@router.get("/oauth/login")
async def oauth_login(services: Services) -> LoginResponse:
    """GET /auth/oauth/login -- start login with the secondary OAuth provider."""
    auth_request = services.require_oauth().authorization_request()
    return LoginResponse(authorization_url=auth_request.url, state=auth_request.state)


@router.get("/oauth/callback", response_model=None)
async def oauth_callback(
    request: Request,
    services: Services,
    db: DbSession,
    code: OptionalQuery = None,
    state: OptionalQuery = None,
    error: OptionalQuery = None,
    error_description: OptionalQuery = None,
) -> OAuthCallbackResponse | JSONResponse:
    """GET /auth/oauth/callback -- resolve the provider account to a local user."""
    if error:
        return _provider_error_response(error, error_description)
    if not code:
        raise ValidationError("Authorization code is required")

    client = services.require_oauth()
    _redeem_state(services, state)
    tokens = await run_until_disconnected(request, client.exchange_code(code))
    profile = await run_until_disconnected(
        request, client.fetch_profile(tokens.access_token)
    )
    try:
        provider_id = provider_id_from_profile(profile)
    except AuthenticationError as exc:
        raise AuthenticationError(exc.message, status_code=HTTP_BAD_REQUEST) from exc

    user = await find_or_create_from_oauth(db, client.provider, provider_id, profile)
    return OAuthCallbackResponse(
        user=OAuthUser(
            id=user.id,
            username=user.username,
            email=user.email,
            provider=user.provider,
        )
    )
