"""FastAPI dependencies: bearer parsing, authentication and scope guarding."""

from collections.abc import Callable, Coroutine, Iterable
from typing import Annotated, Any

from fastapi import Depends, Request

from noteauth.auth.scopes import check_scopes
from noteauth.auth.types import Authentication, Identity
from noteauth.core.errors import AuthenticationError
from noteauth.core.logging import bind_user_context
from noteauth.core.services import AuthServices

NO_HEADER = "No Authorization header included in request"
BAD_STRUCTURE = "Invalid Authorization header structure"
BAD_SCHEME = "Invalid authorization header (only Bearer tokens are supported)"


def get_services(request: Request) -> AuthServices:
    return request.app.state.services


Services = Annotated[AuthServices, Depends(get_services)]


def extract_bearer_token(header: str | None) -> str:
    """Pull the token out of an ``Authorization: Bearer <token>`` header value."""
    if not header:
        raise AuthenticationError(NO_HEADER)
    parts = header.split()
    if len(parts) != 2:
        raise AuthenticationError(BAD_STRUCTURE)
    scheme, token = parts
    if scheme != "Bearer":
        raise AuthenticationError(BAD_SCHEME)
    return token


async def authenticate(request: Request, services: Services) -> Authentication:
    """Verify the bearer token and attach the result to the request.

    Downstream handlers read ``request.state.identity`` and, for strategies
    that keep it, ``request.state.access_token``.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    strategy = services.require_strategy()
    auth = await strategy.authenticate(token)
    request.state.identity = auth.identity
    request.state.access_token = auth.access_token
    bind_user_context(auth.identity.id, auth.identity.organization_id)
    return auth


async def current_identity(
    auth: Annotated[Authentication, Depends(authenticate)],
) -> Identity:
    return auth.identity


CurrentIdentity = Annotated[Identity, Depends(current_identity)]


def require_scope(
    required: str | Iterable[str],
) -> Callable[..., Coroutine[Any, Any, Identity]]:
    """Dependency factory: authenticate, then demand the given scope(s)."""
    needed = frozenset([required]) if isinstance(required, str) else frozenset(required)

    async def _guard(identity: CurrentIdentity) -> Identity:
        check_scopes(identity, needed)
        return identity

    return _guard
