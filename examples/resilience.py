#!/usr/bin/env python3
"""
Resilience example.

This example demonstrates:
- Configuring the retry policy with the builder
- Cancelling a call with a CancelToken timeout
- Inspecting classified errors
- Turning on SDK debug logging to see retries and token refreshes

Usage:
    export AMIGO_API_KEY="your-api-key"
    export AMIGO_API_KEY_ID="your-api-key-id"
    export AMIGO_USER_ID="your-user-id"
    export AMIGO_ORGANIZATION_ID="your-org-id"
    python examples/resilience.py
"""

import asyncio

from amigo_sdk import (
    AmigoClient,
    AmigoError,
    AmigoLogger,
    CancelToken,
    ErrorKind,
    LogLevel,
    RequestCancelledError,
)


async def main() -> None:
    """Run resilience example."""
    AmigoLogger.configure(level=LogLevel.DEBUG, format="text")

    client = (
        AmigoClient.builder()
        .from_env()
        .timeout(15)
        .max_attempts(5)
        .backoff(200, max_delay_ms=5_000)
        .retry_on(methods={"GET", "DELETE"})
        .build()
    )

    async with client:
        print(f"Retry policy: {client.transport.policy}")

        try:
            users = await client.users.get_users(params={"limit": 5})
            print(f"Users: {len(users.get('users', []))}")
        except AmigoError as e:
            if e.kind is ErrorKind.RATE_LIMIT:
                print("Still rate limited after retries, try again later.")
            elif e.retryable:
                print(f"Transient failure ({e.kind.value}): {e.message}")
            else:
                print(f"Request failed: {e.to_dict()}")

        # Give the whole call two seconds, including retries and token refresh
        token = CancelToken(timeout=2.0)
        try:
            await client.conversations.get_conversations(cancel_token=token)
            print("Conversations fetched in time.")
        except RequestCancelledError as e:
            print(f"Gave up: {e}")


if __name__ == "__main__":
    asyncio.run(main())
