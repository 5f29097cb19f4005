"""Root pytest fixtures for amigo-sdk tests."""

from __future__ import annotations

import pytest

from amigo_sdk import AmigoConfig

TEST_BASE_URL = "https://api.example.com"
TEST_ORG_ID = "test-org"


@pytest.fixture
def amigo_config() -> AmigoConfig:
    """Complete configuration pointing at a fake host with fast retries."""
    return AmigoConfig(
        api_key="test-api-key",
        api_key_id="test-api-key-id",
        user_id="test-user-id",
        org_id=TEST_ORG_ID,
        base_url=TEST_BASE_URL,
        retry={"max_attempts": 3, "backoff_base_ms": 1, "max_delay_ms": 5},
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: test drives the full client pipeline against mocked HTTP",
    )
