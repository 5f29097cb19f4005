"""
Retry policy with exponential backoff and full jitter.

Provides the immutable per-client RetryPolicy, the backoff calculator and
the Retry-After header parser used by the retrying transport.
"""

from __future__ import annotations

import email.utils
import math
import random
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

DEFAULT_RETRYABLE_STATUS: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})
DEFAULT_RETRYABLE_METHODS: frozenset[str] = frozenset({"GET"})


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration, fixed for the lifetime of a client.

    Attributes:
        max_attempts: Total attempts including the first (floored at 1)
        backoff_base_ms: Base of the exponential backoff window in milliseconds
        max_delay_ms: Upper bound for any single delay in milliseconds
        retryable_status_codes: HTTP statuses that trigger a retry
        retryable_methods: HTTP methods that may be retried
    """

    max_attempts: int = 3
    backoff_base_ms: float = 250
    max_delay_ms: float = 30_000
    retryable_status_codes: frozenset[int] = field(
        default_factory=lambda: DEFAULT_RETRYABLE_STATUS
    )
    retryable_methods: frozenset[str] = field(
        default_factory=lambda: DEFAULT_RETRYABLE_METHODS
    )

    def __post_init__(self) -> None:
        # Frozen: normalize through object.__setattr__
        object.__setattr__(self, "max_attempts", max(1, int(self.max_attempts)))
        object.__setattr__(
            self,
            "retryable_status_codes",
            frozenset(int(s) for s in self.retryable_status_codes),
        )
        object.__setattr__(
            self,
            "retryable_methods",
            frozenset(m.upper() for m in self.retryable_methods),
        )

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None) -> RetryPolicy:
        """Create a policy from a mapping of overrides.

        Unknown keys are ignored; missing keys keep their defaults.

        Args:
            options: Mapping with any of the dataclass field names

        Returns:
            RetryPolicy instance
        """
        if not options:
            return cls()

        kwargs: dict[str, Any] = {}
        for name in ("max_attempts", "backoff_base_ms", "max_delay_ms"):
            if options.get(name) is not None:
                kwargs[name] = options[name]
        for name in ("retryable_status_codes", "retryable_methods"):
            value = options.get(name)
            if isinstance(value, Iterable) and not isinstance(value, str):
                kwargs[name] = frozenset(value)
        return cls(**kwargs)

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """Create a policy that never retries."""
        return cls(max_attempts=1)

    def allows_method(self, method: str) -> bool:
        """Check whether requests with ``method`` may be retried."""
        return method.upper() in self.retryable_methods

    def delay_for(
        self,
        attempt_index: int,
        rand: Callable[[], float] = random.random,
    ) -> float:
        """Compute the jittered backoff for a zero-based attempt index (ms)."""
        return compute_delay(attempt_index, self.backoff_base_ms, self.max_delay_ms, rand)


def compute_delay(
    attempt_index: int,
    base_ms: float,
    cap_ms: float,
    rand: Callable[[], float] = random.random,
) -> float:
    """Calculate a full-jitter backoff delay.

    The window grows as ``base_ms * 2**attempt_index`` and is capped at
    ``cap_ms``; the delay is drawn uniformly from ``[0, window]``.

    Args:
        attempt_index: Zero-based index of the attempt that just failed
        base_ms: Backoff base in milliseconds
        cap_ms: Maximum delay in milliseconds
        rand: Source of uniform floats in [0, 1]

    Returns:
        Delay in milliseconds
    """
    exponent = max(0, attempt_index)
    # Avoid float overflow for very large attempt counts
    window = cap_ms if exponent >= 64 else min(cap_ms, base_ms * (2**exponent))
    window = max(0.0, window)
    return rand() * window


def parse_retry_after(
    header_value: str | None,
    cap_ms: float,
    now: datetime | None = None,
) -> float | None:
    """Parse a Retry-After header into a delay in milliseconds.

    Accepts a number of seconds ("2", "1.5") or an HTTP date. The result is
    clamped into ``[0, cap_ms]``.

    Args:
        header_value: Raw header value
        cap_ms: Maximum delay in milliseconds
        now: Current time (defaults to the system clock, UTC)

    Returns:
        Delay in milliseconds, or None if missing or unparseable
    """
    if header_value is None:
        return None
    value = header_value.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        if not math.isfinite(seconds):
            return None
        return _clamp(seconds * 1000, 0, cap_ms)

    try:
        when = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)

    current = now or datetime.now(timezone.utc)
    delta_ms = (when - current).total_seconds() * 1000
    return _clamp(delta_ms, 0, cap_ms)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
