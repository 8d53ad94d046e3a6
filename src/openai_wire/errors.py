"""Error hierarchy for the API client and its stream decoders."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from openai_wire.types import ErrorPayload


class SDKError(Exception):
    """Base error for all SDK errors."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


# --- Stream errors ---


class TransportError(SDKError):
    """The byte source failed while a body was being read."""

    retryable = True


class ProtocolError(SDKError):
    """The server sent an error object in place of a data record."""

    retryable = False

    def __init__(self, payload: ErrorPayload):
        super().__init__(payload.message)
        self.payload = payload

    @property
    def message(self) -> str:
        return self.payload.message

    @property
    def error_type(self) -> str:
        return self.payload.type

    @property
    def param(self) -> Any:
        return self.payload.param

    @property
    def code(self) -> Any:
        return self.payload.code


class DecodeError(SDKError):
    """A record's bytes did not match the expected payload schema."""

    retryable = False

    def __init__(self, message: str, *, frame: bytes, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.frame = frame


# --- Provider errors (from HTTP responses) ---


class ProviderError(SDKError):
    """Non-2xx response to the initial request."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_type: str | None = None,
        retry_after: float | None = None,
        raw: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.error_type = error_type
        self.retry_after = retry_after
        self.raw = raw


class AuthenticationError(ProviderError):
    """401 - Invalid API key or credentials."""


class AccessDeniedError(ProviderError):
    """403 - Permission denied."""


class NotFoundError(ProviderError):
    """404 - Resource (model, file, fine-tune) not found."""


class InvalidRequestError(ProviderError):
    """400/422 - Malformed request."""


class RateLimitError(ProviderError):
    """429 - Rate limit exceeded."""

    retryable = True


class ServerError(ProviderError):
    """500-599 - Provider server error."""

    retryable = True


_STATUS_MAP: dict[int, type[ProviderError]] = {
    400: InvalidRequestError,
    401: AuthenticationError,
    403: AccessDeniedError,
    404: NotFoundError,
    422: InvalidRequestError,
    429: RateLimitError,
}


def error_from_status_code(
    *,
    status_code: int,
    message: str,
    error_type: str | None = None,
    retry_after: float | None = None,
    raw: dict[str, Any] | None = None,
) -> ProviderError:
    """Create the appropriate error type from an HTTP status code and message."""
    error_cls = _STATUS_MAP.get(status_code)
    if error_cls is None:
        error_cls = ServerError if status_code >= 500 else ProviderError

    return error_cls(
        message,
        status_code=status_code,
        error_type=error_type,
        retry_after=retry_after,
        raw=raw,
    )
