"""错误分类模块：将 HTTP 状态码、响应体和传输层异常映射到统一的错误类别。

Error classification for the Amigo API.

Maps HTTP status codes and transport failures onto the closed set of
ErrorKind values callers can distinguish between.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import httpx


class ErrorKind(str, Enum):
    """Closed set of error categories raised by the SDK."""

    CONFIGURATION = "configuration"
    """Client configuration is missing or invalid."""

    AUTHENTICATION = "authentication"
    """Missing/invalid credentials, or the credential exchange failed."""

    AUTHORIZATION = "authorization"
    """Caller is authenticated but not permitted to access the resource."""

    BAD_REQUEST = "bad_request"
    """Malformed request body or invalid parameters."""

    NOT_FOUND = "not_found"
    """Requested resource not found."""

    CONFLICT = "conflict"
    """Request conflicts with the current state of the resource."""

    RATE_LIMIT = "rate_limit"
    """Throttled by the upstream API."""

    SERVER_ERROR = "server_error"
    """Server-side failure (500)."""

    SERVICE_UNAVAILABLE = "service_unavailable"
    """Service temporarily unavailable (503)."""

    NETWORK = "network"
    """Connection refused, DNS failure or another transport-level failure."""

    TIMEOUT = "timeout"
    """Request timed out before a response arrived."""

    PARSE = "parse"
    """A successful response could not be decoded."""

    GENERIC = "generic"
    """Any other non-2xx status."""


# Kinds a caller may reasonably retry later
_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {
        ErrorKind.RATE_LIMIT,
        ErrorKind.SERVER_ERROR,
        ErrorKind.SERVICE_UNAVAILABLE,
        ErrorKind.NETWORK,
        ErrorKind.TIMEOUT,
    }
)

_STATUS_MAPPING: dict[int, ErrorKind] = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.AUTHORIZATION,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.CONFLICT,
    429: ErrorKind.RATE_LIMIT,
    500: ErrorKind.SERVER_ERROR,
    503: ErrorKind.SERVICE_UNAVAILABLE,
}

# Substrings seen in transport failure messages when the exception type alone
# does not say what happened (e.g. wrapped OS errors)
_NETWORK_MARKERS = (
    "econnrefused",
    "connection refused",
    "enotfound",
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "network",
)
_TIMEOUT_MARKERS = ("etimedout", "timed out", "timeout")


def classify_http_error(status_code: int, body: Any = None) -> ErrorKind:
    """Classify a non-2xx HTTP status into an ErrorKind.

    Args:
        status_code: HTTP status code
        body: Parsed response body (unused by the status table, accepted so
            callers can classify uniformly)

    Returns:
        ErrorKind for the status
    """
    return _STATUS_MAPPING.get(status_code, ErrorKind.GENERIC)


def is_retryable(kind: ErrorKind) -> bool:
    """Check whether an error kind describes a transient condition."""
    return kind in _RETRYABLE_KINDS


def extract_error_message(body: Any) -> str | None:
    """Extract an error message from a response body.

    Supports the envelopes the API uses:
    - {"message": "..."}
    - {"detail": "..."} or {"detail": [{"msg": "..."}]}
    - {"error": "..."} or {"error": {"message": "..."}}

    Args:
        body: Parsed response body (dict, str or None)

    Returns:
        Error message if found, None otherwise
    """
    if isinstance(body, str):
        return body.strip() or None
    if not isinstance(body, dict):
        return None

    msg = body.get("message")
    if isinstance(msg, str) and msg:
        return msg

    detail = body.get("detail")
    if isinstance(detail, str) and detail:
        return detail
    if isinstance(detail, list) and detail:
        first = detail[0]
        if isinstance(first, dict) and isinstance(first.get("msg"), str):
            return first["msg"]
        return str(first)

    error = body.get("error")
    if isinstance(error, dict):
        nested = error.get("message")
        if isinstance(nested, str):
            return nested
    elif isinstance(error, str) and error:
        return error

    return None


def extract_field_errors(body: Any) -> dict[str, str] | None:
    """Extract field-level validation messages from a response body.

    Recognizes an ``errors`` array (entries with ``loc``/``field`` and
    ``msg``/``message`` keys, or plain strings) and a ``detail`` string.

    Args:
        body: Parsed response body

    Returns:
        Mapping of field name to message, or None if the body has neither shape
    """
    if not isinstance(body, dict):
        return None

    field_errors: dict[str, str] = {}

    errors = body.get("errors")
    if isinstance(errors, list):
        for index, entry in enumerate(errors):
            if isinstance(entry, dict):
                field_errors[_field_name(entry, index)] = str(
                    entry.get("msg") or entry.get("message") or entry
                )
            else:
                field_errors[str(index)] = str(entry)

    detail = body.get("detail")
    if isinstance(detail, str):
        field_errors.setdefault("detail", detail)

    if not isinstance(errors, list) and not isinstance(detail, str):
        return None
    return field_errors


def _field_name(entry: dict[str, Any], index: int) -> str:
    loc = entry.get("loc")
    if isinstance(loc, (list, tuple)) and loc:
        return ".".join(str(part) for part in loc)
    field = entry.get("field")
    if isinstance(field, str) and field:
        return field
    return str(index)


def is_network_error(error: BaseException) -> bool:
    """Check whether an exception looks like a network-layer failure.

    Args:
        error: Exception raised while sending a request

    Returns:
        True for httpx transport errors and OS-level connection failures
    """
    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    message = str(error).lower()
    return any(marker in message for marker in _NETWORK_MARKERS + _TIMEOUT_MARKERS)


def classify_transport_kind(error: BaseException) -> ErrorKind:
    """Pick NETWORK or TIMEOUT for a transport-level failure."""
    if isinstance(error, (httpx.TimeoutException, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(error, httpx.TransportError):
        return ErrorKind.NETWORK
    message = str(error).lower()
    if any(marker in message for marker in _TIMEOUT_MARKERS):
        return ErrorKind.TIMEOUT
    return ErrorKind.NETWORK
