"""
Resilience layer - retry policy, backoff with jitter, Retry-After parsing.
"""

from amigo_sdk.resilience.retry import (
    DEFAULT_RETRYABLE_METHODS,
    DEFAULT_RETRYABLE_STATUS,
    RetryPolicy,
    compute_delay,
    parse_retry_after,
)

__all__ = [
    "DEFAULT_RETRYABLE_METHODS",
    "DEFAULT_RETRYABLE_STATUS",
    "RetryPolicy",
    "compute_delay",
    "parse_retry_after",
]
