"""Scope checks applied to authenticated identities."""

from collections.abc import Iterable

from noteauth.auth.types import Identity
from noteauth.core.errors import AuthorizationError
from noteauth.core.logging import get_logger

logger = get_logger(__name__)


def _as_set(required: str | Iterable[str] | None) -> frozenset[str]:
    if required is None:
        return frozenset()
    if isinstance(required, str):
        return frozenset(required.split())
    return frozenset(required)


def check_scopes(identity: Identity, required: str | Iterable[str] | None) -> None:
    """Admit the identity only if it holds every required scope.

    An identity whose credential carried no scope claim is rejected even when
    nothing is required.
    """
    needed = _as_set(required)
    label = " ".join(sorted(needed)) or "scope"
    if identity.scopes is None:
        logger.info("scope_claim_missing", required=label)
        raise AuthorizationError(f"Missing required scope: {label}")
    missing = needed - identity.scopes
    if missing:
        logger.info("scope_denied", missing=sorted(missing))
        raise AuthorizationError(f"Missing required scope: {' '.join(sorted(missing))}")
