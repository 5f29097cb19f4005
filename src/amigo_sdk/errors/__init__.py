"""错误体系：统一的 AmigoError 异常与 ErrorKind 分类。

Error taxonomy for amigo-sdk.
"""

from amigo_sdk.errors.base import (
    AmigoError,
    ErrorContext,
    RequestCancelledError,
    classify_transport_error,
    is_amigo_error,
)
from amigo_sdk.errors.classification import (
    ErrorKind,
    classify_http_error,
    extract_error_message,
    extract_field_errors,
    is_network_error,
    is_retryable,
)

__all__ = [
    "AmigoError",
    "ErrorContext",
    "ErrorKind",
    "RequestCancelledError",
    "classify_http_error",
    "classify_transport_error",
    "extract_error_message",
    "extract_field_errors",
    "is_amigo_error",
    "is_network_error",
    "is_retryable",
]
