"""
Client configuration.

AmigoConfig holds the credentials, organization, base URL, timeout and retry
policy of a client. It can be constructed directly or loaded from the
environment with ``AmigoConfig.from_env()``.
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from amigo_sdk.errors import AmigoError
from amigo_sdk.resilience.retry import RetryPolicy

DEFAULT_BASE_URL = "https://api.amigo.ai"
DEFAULT_TIMEOUT = 30.0

# (field, environment variable)
ENV_VARS: tuple[tuple[str, str], ...] = (
    ("api_key", "AMIGO_API_KEY"),
    ("api_key_id", "AMIGO_API_KEY_ID"),
    ("user_id", "AMIGO_USER_ID"),
    ("org_id", "AMIGO_ORGANIZATION_ID"),
    ("base_url", "AMIGO_BASE_URL"),
    ("timeout", "AMIGO_TIMEOUT_SECS"),
)

_REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("api_key", "API key is required"),
    ("api_key_id", "API key ID is required"),
    ("user_id", "User ID is required"),
    ("org_id", "Organization ID is required"),
)


class AmigoConfig(BaseModel):
    """Configuration for an AmigoClient.

    Example:
        >>> config = AmigoConfig(
        ...     api_key="key",
        ...     api_key_id="key-id",
        ...     user_id="user",
        ...     org_id="my-org",
        ...     retry={"max_attempts": 5},
        ... )
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    api_key: str | None = Field(default=None, description="API key from the Amigo dashboard")
    api_key_id: str | None = Field(default=None, description="API key ID from the Amigo dashboard")
    user_id: str | None = Field(default=None, description="User on whose behalf requests are made")
    org_id: str | None = Field(default=None, description="Organization ID")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Base URL of the Amigo API")
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, description="Request timeout in seconds")
    retry: RetryPolicy = Field(default_factory=RetryPolicy, description="Retry policy")

    @field_validator("base_url", mode="before")
    @classmethod
    def _normalize_base_url(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_BASE_URL
        if isinstance(value, str):
            value = value.strip().rstrip("/")
            return value or DEFAULT_BASE_URL
        return value

    @field_validator("retry", mode="before")
    @classmethod
    def _coerce_retry(cls, value: Any) -> Any:
        if value is None:
            return RetryPolicy()
        if isinstance(value, Mapping):
            return RetryPolicy.from_options(value)
        return value

    def validate_required(self) -> AmigoConfig:
        """Check that all credentials and the organization are set.

        Empty strings count as missing.

        Returns:
            Self for chaining

        Raises:
            AmigoError: CONFIGURATION kind naming the first missing field
        """
        for name, message in _REQUIRED_FIELDS:
            if not getattr(self, name):
                raise AmigoError.configuration(message, field=name)
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> AmigoConfig:
        """Load configuration from ``AMIGO_*`` environment variables.

        Explicit keyword overrides win over the environment.

        Raises:
            AmigoError: CONFIGURATION kind if AMIGO_TIMEOUT_SECS is invalid
        """
        values: dict[str, Any] = {}
        for name, env_var in ENV_VARS:
            raw = os.getenv(env_var)
            if raw is None or raw == "":
                continue
            if name == "timeout":
                try:
                    timeout = float(raw)
                except ValueError:
                    timeout = math.nan
                if not math.isfinite(timeout) or timeout <= 0:
                    raise AmigoError.configuration(
                        f"Invalid {env_var}: {raw!r}", field="timeout"
                    )
                values[name] = timeout
            else:
                values[name] = raw

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def masked(self) -> dict[str, Any]:
        """Return a loggable view of the configuration with secrets hidden."""
        return {
            "api_key": "***" if self.api_key else None,
            "api_key_id": self.api_key_id,
            "user_id": self.user_id,
            "org_id": self.org_id,
            "base_url": self.base_url,
            "timeout": self.timeout,
            "max_attempts": self.retry.max_attempts,
        }
