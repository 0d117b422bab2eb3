"""Authorization redirect construction and login-state bookkeeping."""

import secrets
import time
from collections.abc import Callable
from urllib.parse import urlencode

from noteauth.auth.types import AuthorizationRequest
from noteauth.core.errors import ConfigurationError
from noteauth.core.logging import get_logger

logger = get_logger(__name__)

STATE_TTL_DEFAULT = 600
STATE_BYTES = 32
MAX_PENDING_STATES = 10_000


def generate_state() -> str:
    """Generate an unguessable state or nonce value."""
    return secrets.token_urlsafe(STATE_BYTES)


class StateStore:
    """Single-use record of login states issued by this process."""

    def __init__(
        self,
        ttl: int = STATE_TTL_DEFAULT,
        *,
        max_entries: int = MAX_PENDING_STATES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._pending: dict[str, tuple[str, float]] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def issue(self, state: str, nonce: str) -> None:
        """Remember a freshly issued state together with its nonce."""
        now = self._clock()
        self._prune(now)
        self._pending[state] = (nonce, now + self._ttl)

    def consume(self, state: str) -> str | None:
        """Redeem a state once. Returns its nonce, or None if unknown or expired."""
        entry = self._pending.pop(state, None)
        if entry is None:
            logger.info("login_state_unknown")
            return None
        nonce, expires_at = entry
        if self._clock() >= expires_at:
            logger.info("login_state_expired")
            return None
        return nonce

    def _prune(self, now: float) -> None:
        expired = [s for s, (_, exp) in self._pending.items() if exp <= now]
        for state in expired:
            del self._pending[state]
        overflow = len(self._pending) - self._max_entries + 1
        if overflow > 0:
            # dicts keep insertion order, so the first entries are the oldest
            for state in list(self._pending)[:overflow]:
                del self._pending[state]


class AuthorizationUrlBuilder:
    """Builds the provider's authorize-endpoint URL for the code flow."""

    def __init__(
        self,
        authorize_endpoint: str,
        *,
        client_id: str,
        redirect_uri: str,
        scopes: str,
        state_store: StateStore | None = None,
    ) -> None:
        self._authorize_endpoint = authorize_endpoint
        self._client_id = client_id
        self._redirect_uri = redirect_uri
        self._scopes = scopes
        self._states = state_store

    def build(
        self,
        organization_id: str | None = None,
        connection_id: str | None = None,
    ) -> AuthorizationRequest:
        """Create a login redirect with a fresh state and nonce."""
        if not self._redirect_uri:
            raise ConfigurationError("Redirect URI is not configured")

        state = generate_state()
        nonce = generate_state()
        params = {
            "response_type": "code",
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
            "state": state,
            "nonce": nonce,
        }
        if self._scopes:
            params["scope"] = self._scopes
        if organization_id:
            params["organization_id"] = organization_id
        if connection_id:
            params["connection_id"] = connection_id

        if self._states is not None:
            self._states.issue(state, nonce)

        separator = "&" if "?" in self._authorize_endpoint else "?"
        return AuthorizationRequest(
            url=f"{self._authorize_endpoint}{separator}{urlencode(params)}",
            state=state,
            nonce=nonce,
            organization_id=organization_id,
            connection_id=connection_id,
        )
