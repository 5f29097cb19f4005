#!/usr/bin/env python3
"""
Basic conversation example.

This example starts a conversation with the first available service,
sends one text message and prints the streamed reply.

Usage:
    export AMIGO_API_KEY="your-api-key"
    export AMIGO_API_KEY_ID="your-api-key-id"
    export AMIGO_USER_ID="your-user-id"
    export AMIGO_ORGANIZATION_ID="your-org-id"
    python examples/basic_conversation.py
"""

import asyncio

from amigo_sdk import AmigoClient, AmigoConfig, AmigoError


async def main() -> None:
    """Run basic conversation example."""
    async with AmigoClient(AmigoConfig.from_env()) as client:
        services = await client.services.get_services()
        if not services.get("services"):
            print("No services available in this organization.")
            return
        service = services["services"][0]
        print(f"Using service: {service.get('name', service['id'])}")

        # Start a conversation; the agent's greeting arrives as NDJSON events
        conversation_id = None
        async with await client.conversations.create_conversation(
            {"service_id": service["id"], "service_version_set_name": "release"},
            params={"response_format": "text"},
        ) as events:
            async for event in events:
                if event.get("type") == "conversation-created":
                    conversation_id = event["conversation_id"]
                elif event.get("type") == "new-message":
                    print(event["message"], end="", flush=True)
        print()

        if conversation_id is None:
            print("Conversation was not created.")
            return

        async with await client.conversations.interact_with_conversation(
            conversation_id,
            "Hello! What can you help me with?",
            params={"request_format": "text", "response_format": "text"},
        ) as events:
            async for event in events:
                if event.get("type") == "new-message":
                    print(event["message"], end="", flush=True)
                elif event.get("type") == "interaction-complete":
                    print(f"\n[interaction {event['interaction_id']} complete]")

        try:
            await client.conversations.finish_conversation(conversation_id)
        except AmigoError as e:
            print(f"Could not finish conversation: {e.kind.value}: {e.message}")


if __name__ == "__main__":
    asyncio.run(main())
