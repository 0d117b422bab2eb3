"""Bearer JWT verification against the cached provider key set."""

import re
import time
from collections.abc import Iterable

import jwt
from pydantic import ValidationError as PydanticValidationError

from noteauth.auth.keys import KeyCache, KeyNotFoundError
from noteauth.auth.types import VerifiedClaims
from noteauth.core.errors import AuthenticationError, ConfigurationError
from noteauth.core.logging import get_logger

logger = get_logger(__name__)

LEEWAY_DEFAULT = 60
ASYMMETRIC_ALGORITHMS = frozenset(
    {
        "RS256", "RS384", "RS512",
        "PS256", "PS384", "PS512",
        "ES256", "ES384", "ES512",
        "EdDSA",
    }
)
VERIFICATION_FAILURE = "Token verification failure"

_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")


def _fail(reason: str) -> AuthenticationError:
    logger.info("token_rejected", reason=reason)
    return AuthenticationError(VERIFICATION_FAILURE)


class TokenVerifier:
    """Validates signature, issuer, audience and time window of bearer tokens."""

    def __init__(
        self,
        key_cache: KeyCache,
        *,
        issuer: str,
        audience: str,
        algorithms: Iterable[str] = ("RS256",),
        leeway: int = LEEWAY_DEFAULT,
    ) -> None:
        if not issuer:
            raise ConfigurationError("Token issuer is not configured")
        if not audience:
            raise ConfigurationError("Token audience is not configured")
        allowed = frozenset(algorithms)
        unsupported = allowed - ASYMMETRIC_ALGORITHMS
        if not allowed or unsupported:
            raise ConfigurationError(
                "Only asymmetric signing algorithms may be configured"
            )
        self._keys = key_cache
        self._issuer = issuer
        self._audience = audience
        self._algorithms = allowed
        self._leeway = leeway

    @property
    def issuer(self) -> str:
        return self._issuer

    @property
    def audience(self) -> str:
        return self._audience

    async def verify(self, token: str) -> VerifiedClaims:
        """Verify a raw compact JWT and return its claims.

        Raises AuthenticationError for any token problem. A ProviderError from
        the key cache propagates unchanged.
        """
        segments = token.split(".") if token else []
        if len(segments) != 3 or not all(_SEGMENT.match(s) for s in segments):
            raise _fail("malformed")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as exc:
            raise _fail("bad_header") from exc

        alg = header.get("alg")
        if not isinstance(alg, str) or alg not in self._algorithms:
            raise _fail("algorithm_not_allowed")
        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise _fail("missing_kid")

        try:
            signing_key = await self._keys.get_key(kid)
        except KeyNotFoundError as exc:
            raise _fail("unknown_kid") from exc
        if signing_key.algorithm != alg:
            raise _fail("algorithm_key_mismatch")

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=[alg],
                issuer=self._issuer,
                audience=self._audience,
                leeway=self._leeway,
                options={"require": ["exp", "iss", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise _fail(type(exc).__name__) from exc

        issued_at = payload.get("iat")
        if isinstance(issued_at, (int, float)) and issued_at > time.time() + self._leeway:
            raise _fail("issued_in_future")

        try:
            return VerifiedClaims.model_validate(payload)
        except PydanticValidationError as exc:
            raise _fail("claim_shape") from exc
