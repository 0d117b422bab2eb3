"""Error taxonomy and the JSON rendering of errors at the HTTP boundary."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from noteauth.core.logging import get_logger

logger = get_logger(__name__)

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_CLIENT_CLOSED = 499
HTTP_INTERNAL_ERROR = 500
HTTP_NOT_IMPLEMENTED = 501
HTTP_BAD_GATEWAY = 502


class NoteAuthError(Exception):
    """Base class: a stable error code, a safe summary and an HTTP status."""

    code = "internal_error"
    status_code = HTTP_INTERNAL_ERROR
    default_message = "Internal error"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_body(self) -> dict[str, str]:
        return {"error": self.code, "message": self.message}


class ConfigurationError(NoteAuthError):
    """Required setup is missing or invalid."""

    code = "configuration_error"
    status_code = HTTP_INTERNAL_ERROR
    default_message = "Authentication is not configured"


class AuthenticationError(NoteAuthError):
    """Credentials are missing, malformed, expired or were rejected."""

    code = "authentication_failed"
    status_code = HTTP_UNAUTHORIZED
    default_message = "Authentication failed"


class AuthorizationError(NoteAuthError):
    """Authenticated, but the granted scopes do not cover the route."""

    code = "insufficient_scope"
    status_code = HTTP_FORBIDDEN
    default_message = "Missing required scope"


class ProviderError(NoteAuthError):
    """The identity provider was unreachable or answered unexpectedly."""

    code = "provider_error"
    status_code = HTTP_BAD_GATEWAY
    default_message = "Identity provider unavailable"


class ValidationError(NoteAuthError):
    """A required request field is missing or invalid."""

    code = "invalid_request"
    status_code = HTTP_BAD_REQUEST
    default_message = "Invalid request"


class NotFoundError(NoteAuthError):
    code = "not_found"
    status_code = HTTP_NOT_FOUND
    default_message = "Not found"


class RefreshNotSupportedError(NoteAuthError):
    code = "refresh_not_supported"
    status_code = HTTP_NOT_IMPLEMENTED
    default_message = "Token refresh is not supported. Please re-authenticate."


class ClientDisconnectedError(NoteAuthError):
    code = "client_closed_request"
    status_code = HTTP_CLIENT_CLOSED
    default_message = "Client closed the request"


async def _handle_noteauth_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, NoteAuthError)
    cause = exc.__cause__
    log = logger.warning if exc.status_code < HTTP_INTERNAL_ERROR else logger.error
    log(
        "request_failed",
        path=request.url.path,
        error=exc.code,
        status=exc.status_code,
        cause=type(cause).__name__ if cause is not None else None,
    )
    return JSONResponse(exc.to_body(), status_code=exc.status_code)


async def _handle_request_validation(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    message = "Missing or invalid field(s): " + ", ".join(fields)
    return JSONResponse(
        ValidationError(message).to_body(),
        status_code=HTTP_BAD_REQUEST,
    )


def install_error_handlers(app: FastAPI) -> None:
    """Register the JSON error renderers on the application."""
    app.add_exception_handler(NoteAuthError, _handle_noteauth_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
