"""
Transport layer - HTTP client, retries, and bearer-token authentication.
"""

from amigo_sdk.transport.auth import (
    ApiKeyExchange,
    AuthInterceptor,
    AuthToken,
    SignInWithApiKeyResponse,
    TokenCache,
    TokenState,
)
from amigo_sdk.transport.http import HttpTransport
from amigo_sdk.transport.retrying import RetryingTransport

__all__ = [
    "ApiKeyExchange",
    "AuthInterceptor",
    "AuthToken",
    "HttpTransport",
    "RetryingTransport",
    "SignInWithApiKeyResponse",
    "TokenCache",
    "TokenState",
]
