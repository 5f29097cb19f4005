"""
Builder for fluent client construction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from amigo_sdk.config import ENV_VARS, AmigoConfig
from amigo_sdk.resilience.retry import RetryPolicy

if TYPE_CHECKING:
    import httpx

    from amigo_sdk.client.core import AmigoClient


class AmigoClientBuilder:
    """Builder for creating AmigoClient instances.

    Values set explicitly win over values loaded with ``from_env()``,
    regardless of call order.

    Example:
        >>> client = (
        ...     AmigoClientBuilder()
        ...     .from_env()
        ...     .org_id("my-org")
        ...     .max_attempts(5)
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        """Initialize the builder."""
        self._values: dict[str, Any] = {}
        self._env: dict[str, Any] = {}
        self._retry: dict[str, Any] = {}
        self._retry_policy: RetryPolicy | None = None
        self._http_client: httpx.AsyncClient | None = None

    def api_key(self, key: str) -> AmigoClientBuilder:
        """Set the API key.

        Args:
            key: API key

        Returns:
            Self for chaining
        """
        self._values["api_key"] = key
        return self

    def api_key_id(self, key_id: str) -> AmigoClientBuilder:
        """Set the API key ID.

        Args:
            key_id: API key ID

        Returns:
            Self for chaining
        """
        self._values["api_key_id"] = key_id
        return self

    def user_id(self, user_id: str) -> AmigoClientBuilder:
        """Set the user on whose behalf requests are made.

        Returns:
            Self for chaining
        """
        self._values["user_id"] = user_id
        return self

    def org_id(self, org_id: str) -> AmigoClientBuilder:
        """Set the organization ID.

        Returns:
            Self for chaining
        """
        self._values["org_id"] = org_id
        return self

    def base_url(self, url: str) -> AmigoClientBuilder:
        """Override base URL.

        Args:
            url: Base URL for API requests

        Returns:
            Self for chaining
        """
        self._values["base_url"] = url
        return self

    def timeout(self, seconds: float) -> AmigoClientBuilder:
        """Set request timeout.

        Args:
            seconds: Timeout in seconds

        Returns:
            Self for chaining
        """
        self._values["timeout"] = seconds
        return self

    def retry_policy(self, policy: RetryPolicy) -> AmigoClientBuilder:
        """Use a complete retry policy, replacing individual retry settings."""
        self._retry_policy = policy
        self._retry.clear()
        return self

    def max_attempts(self, attempts: int) -> AmigoClientBuilder:
        """Set the total number of attempts per call (including the first)."""
        self._retry["max_attempts"] = attempts
        return self

    def backoff(self, base_ms: float, max_delay_ms: float | None = None) -> AmigoClientBuilder:
        """Set the backoff base and, optionally, the delay cap in milliseconds."""
        self._retry["backoff_base_ms"] = base_ms
        if max_delay_ms is not None:
            self._retry["max_delay_ms"] = max_delay_ms
        return self

    def retry_on(
        self,
        *,
        statuses: set[int] | frozenset[int] | None = None,
        methods: set[str] | frozenset[str] | None = None,
    ) -> AmigoClientBuilder:
        """Override the retryable statuses and/or methods."""
        if statuses is not None:
            self._retry["retryable_status_codes"] = frozenset(statuses)
        if methods is not None:
            self._retry["retryable_methods"] = frozenset(methods)
        return self

    def no_retry(self) -> AmigoClientBuilder:
        """Disable retries."""
        return self.retry_policy(RetryPolicy.no_retry())

    def http_client(self, client: httpx.AsyncClient) -> AmigoClientBuilder:
        """Use an externally owned httpx client."""
        self._http_client = client
        return self

    def from_env(self) -> AmigoClientBuilder:
        """Load unset values from the ``AMIGO_*`` environment variables."""
        env_config = AmigoConfig.from_env()
        for name, _ in ENV_VARS:
            if name in env_config.model_fields_set:
                self._env[name] = getattr(env_config, name)
        return self

    def build_config(self) -> AmigoConfig:
        """Build the configuration without creating a client."""
        values = {**self._env, **self._values}
        if self._retry_policy is not None:
            values["retry"] = self._retry_policy
        elif self._retry:
            values["retry"] = dict(self._retry)
        return AmigoConfig(**values)

    def build(self) -> AmigoClient:
        """Build the client.

        Raises:
            AmigoError: CONFIGURATION kind if a required field is missing
        """
        from amigo_sdk.client.core import AmigoClient

        return AmigoClient(self.build_config(), http_client=self._http_client)
