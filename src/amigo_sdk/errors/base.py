"""错误基类：单一异常类型 + 错误类别判别字段 + 结构化上下文。

Error types for amigo-sdk.

Every failure surfaced by the SDK is an AmigoError whose ``kind`` names one
member of the ErrorKind taxonomy. Kind-specific payload lives on the same
object (``field_errors`` for BAD_REQUEST, ``stage`` for PARSE) and the
original exception, where there is one, is chained as ``__cause__``.

Cancellation is not part of the taxonomy: it is raised as
RequestCancelledError.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from amigo_sdk.errors.classification import (
    ErrorKind,
    classify_http_error,
    classify_transport_kind,
    extract_error_message,
    extract_field_errors,
    is_retryable,
)

if TYPE_CHECKING:
    import httpx

    from amigo_sdk.client.cancel import CancelReason

ParseStage = Literal["json", "response", "other"]


@dataclass
class ErrorContext:
    """Structured error context for diagnostics.

    Attributes:
        response_body: Parsed (or raw text) response body, if any
        headers: Response headers, if any
        method: Request method
        url: Request URL
        field: Configuration field at fault
        details: Additional details
    """

    response_body: Any = None
    headers: dict[str, str] | None = None
    method: str | None = None
    url: str | None = None
    field: str | None = None
    details: dict[str, Any] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary, dropping empty entries."""
        result: dict[str, Any] = {}
        if self.response_body is not None:
            result["response_body"] = self.response_body
        if self.headers:
            result["headers"] = self.headers
        if self.method:
            result["method"] = self.method
        if self.url:
            result["url"] = self.url
        if self.field:
            result["field"] = self.field
        result.update(self.details)
        return result


class AmigoError(Exception):
    """Single error type for all SDK failures.

    Attributes:
        message: Human-readable error message
        kind: ErrorKind discriminant
        status_code: HTTP status code, when the error came from a response
        context: Structured diagnostics
        field_errors: Field-level messages (BAD_REQUEST only)
        stage: Decoding stage that failed (PARSE only)
        error_code: Application error code from the response body, if any
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.GENERIC,
        *,
        status_code: int | None = None,
        context: ErrorContext | None = None,
        field_errors: dict[str, str] | None = None,
        stage: ParseStage | None = None,
        error_code: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.context = context or ErrorContext()
        self.field_errors = field_errors
        self.stage = stage
        self.error_code = error_code
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        status = f", status_code={self.status_code}" if self.status_code else ""
        return f"AmigoError({self.kind.value}: {self.message!r}{status})"

    @property
    def retryable(self) -> bool:
        """Whether the condition is transient (rate limit, 5xx, network)."""
        return is_retryable(self.kind)

    @property
    def cause(self) -> BaseException | None:
        """The original exception, if any."""
        return self.__cause__

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation of the error."""
        data: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
            "error_code": self.error_code,
            "context": self.context.to_dict(),
        }
        if self.field_errors is not None:
            data["field_errors"] = self.field_errors
        if self.stage is not None:
            data["stage"] = self.stage
        return data

    @classmethod
    def configuration(cls, message: str, field: str | None = None) -> AmigoError:
        """Create a CONFIGURATION error naming the offending field."""
        return cls(message, ErrorKind.CONFIGURATION, context=ErrorContext(field=field))

    @classmethod
    def parse(
        cls,
        message: str,
        stage: ParseStage,
        cause: BaseException | None = None,
    ) -> AmigoError:
        """Create a PARSE error for the given decoding stage."""
        return cls(
            message,
            ErrorKind.PARSE,
            stage=stage,
            context=ErrorContext(details={"stage": stage}),
            cause=cause,
        )

    @classmethod
    def authentication(
        cls,
        message: str,
        *,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ) -> AmigoError:
        """Create an AUTHENTICATION error, preserving the original cause."""
        return cls(
            message,
            ErrorKind.AUTHENTICATION,
            status_code=status_code,
            cause=cause,
        )

    @classmethod
    def from_response(
        cls,
        status_code: int,
        body: Any = None,
        headers: dict[str, str] | None = None,
        *,
        reason: str | None = None,
        method: str | None = None,
        url: str | None = None,
    ) -> AmigoError:
        """Create an AmigoError from a non-2xx HTTP response.

        Args:
            status_code: HTTP status code
            body: Parsed response body (dict/list/str/None)
            headers: Response headers
            reason: HTTP reason phrase, used when the body carries no message
            method: Request method
            url: Request URL

        Returns:
            AmigoError with the classified kind
        """
        kind = classify_http_error(status_code, body)
        message = extract_error_message(body) or reason or f"HTTP {status_code}"

        error_code = None
        if isinstance(body, dict) and body.get("code") is not None:
            error_code = str(body["code"])

        return cls(
            message,
            kind,
            status_code=status_code,
            context=ErrorContext(
                response_body=body,
                headers=headers,
                method=method,
                url=url,
            ),
            field_errors=(
                extract_field_errors(body) if kind is ErrorKind.BAD_REQUEST else None
            ),
            error_code=error_code,
        )


class RequestCancelledError(Exception):
    """Raised when a call is abandoned because its CancelToken fired.

    Deliberately not an AmigoError: cancellation is requested by the caller,
    it is never retried and never reported as a network failure.
    """

    def __init__(self, reason: CancelReason | None = None) -> None:
        self.reason = reason
        label = reason.value if reason is not None else "user_request"
        super().__init__(f"Request aborted ({label})")


def classify_transport_error(
    error: BaseException,
    request: httpx.Request | None = None,
) -> AmigoError:
    """Convert a transport-level failure into a NETWORK or TIMEOUT error.

    Args:
        error: Exception raised by the HTTP layer
        request: Request that failed, for diagnostics

    Returns:
        AmigoError carrying the original exception as its cause
    """
    kind = classify_transport_kind(error)
    label = "Request timed out" if kind is ErrorKind.TIMEOUT else "Network error"
    context = ErrorContext()
    if request is not None:
        context.method = request.method
        context.url = str(request.url)
    return AmigoError(f"{label}: {error}", kind, context=context, cause=error)


def is_amigo_error(error: object) -> bool:
    """Check whether a value is an AmigoError."""
    return isinstance(error, AmigoError)
