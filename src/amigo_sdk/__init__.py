"""Amigo 官方 Python SDK：带令牌刷新、重试与 NDJSON 流解码的异步 API 客户端。

amigo-sdk: async Python client for the Amigo API.

Exchanges API-key credentials for bearer tokens, retries transient failures
with jittered backoff, classifies errors into a single typed taxonomy, and
decodes JSON and NDJSON streaming responses.
"""
from __future__ import annotations

from amigo_sdk.client import (
    AmigoClient,
    AmigoClientBuilder,
    CancelReason,
    CancelToken,
)
from amigo_sdk.config import AmigoConfig
from amigo_sdk.errors import (
    AmigoError,
    ErrorKind,
    RequestCancelledError,
    is_amigo_error,
)
from amigo_sdk.pipeline import NdjsonStream
from amigo_sdk.resilience import RetryPolicy
from amigo_sdk.telemetry import AmigoLogger, LogLevel

__version__ = "0.1.0"

__all__ = [
    # Client
    "AmigoClient",
    "AmigoClientBuilder",
    "AmigoConfig",
    # Logging
    "AmigoLogger",
    # Errors
    "AmigoError",
    # Cancellation
    "CancelReason",
    "CancelToken",
    "ErrorKind",
    "LogLevel",
    # Streams
    "NdjsonStream",
    "RequestCancelledError",
    "RetryPolicy",
    "is_amigo_error",
    # Version
    "__version__",
]
