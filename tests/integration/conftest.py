"""
Integration test helper utilities.

Shared fixtures and utilities for integration tests.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import pytest_asyncio

from amigo_sdk import AmigoClient

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    import pytest_httpx

    from amigo_sdk import AmigoConfig

BASE_URL = "https://api.example.com"
ORG_ID = "test-org"
SIGNIN_URL = f"{BASE_URL}/v1/{ORG_ID}/user/signin_with_api_key"


def api_url(path: str) -> str:
    """Absolute URL of an organization-scoped endpoint."""
    return f"{BASE_URL}/v1/{ORG_ID}/{path}"


def mock_signin(
    httpx_mock: pytest_httpx.HTTPXMock,
    token: str = "test-bearer-token",
    expires_in: timedelta = timedelta(hours=1),
) -> None:
    """Register one successful API key sign-in."""
    expires_at = datetime.now(timezone.utc) + expires_in
    httpx_mock.add_response(
        url=SIGNIN_URL,
        method="POST",
        json={"id_token": token, "expires_at": expires_at.isoformat()},
    )


def ndjson_body(*events: dict[str, Any]) -> bytes:
    """Encode events as a newline-delimited JSON body."""
    return b"".join(json.dumps(event).encode() + b"\n" for event in events)


def mock_conversation_events(conversation_id: str = "conv-1") -> list[dict[str, Any]]:
    """Events of a typical conversation start."""
    return [
        {"type": "conversation-created", "conversation_id": conversation_id},
        {"type": "new-message", "message": "Hello! ", "message_id": "m-1"},
        {"type": "new-message", "message": "How can I help?", "message_id": "m-1"},
        {"type": "interaction-complete", "interaction_id": "int-1", "full_message": "Hello! How can I help?"},
    ]


@pytest_asyncio.fixture
async def client(amigo_config: AmigoConfig) -> AsyncIterator[AmigoClient]:
    """Client against the mocked API host."""
    async with AmigoClient(amigo_config) as amigo:
        yield amigo
