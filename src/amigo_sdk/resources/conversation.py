"""
Conversation endpoints.

Creating a conversation and interacting with it return NDJSON event
streams; the other endpoints return ordinary JSON.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from amigo_sdk.resources.base import Resource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from amigo_sdk.client.cancel import CancelToken
    from amigo_sdk.pipeline.decode import NdjsonStream

# Multipart field carrying a text message
RECORDED_MESSAGE_FIELD = "recorded_message"
DEFAULT_AUDIO_CONTENT_TYPE = "application/octet-stream"


class ConversationResource(Resource):
    """Conversations between users and services."""

    async def create_conversation(
        self,
        body: Mapping[str, Any],
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> NdjsonStream:
        """Start a conversation.

        ``POST /v1/{organization}/conversation/``

        Args:
            body: Request body (service_id, service_version_set_name, ...)
            params: Query parameters (response_format, ...)
            headers: Additional headers
            cancel_token: Optional cancellation token, also checked while
                the stream is consumed

        Returns:
            NdjsonStream of conversation events
        """
        return await self._client.request_stream(
            "POST",
            self._path("conversation/"),
            json=dict(body),
            params=params,
            headers=headers,
            cancel_token=cancel_token,
        )

    async def interact_with_conversation(
        self,
        conversation_id: str,
        body: str | bytes,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        *,
        content_type: str | None = None,
        cancel_token: CancelToken | None = None,
    ) -> NdjsonStream:
        """Send a message in a conversation.

        ``POST /v1/{organization}/conversation/{conversation_id}/interact``

        Text is sent as the multipart field ``recorded_message``; bytes are
        sent as the raw request body (voice) with ``content_type``.

        Args:
            conversation_id: Conversation to interact with
            body: Text message or audio bytes
            params: Query parameters (request_format, response_format, ...)
            headers: Additional headers
            content_type: Content type of an audio body
            cancel_token: Optional cancellation token

        Returns:
            NdjsonStream of interaction events
        """
        path = self._path(
            "conversation/{conversation_id}/interact", conversation_id=conversation_id
        )
        request_headers = dict(headers or {})

        if isinstance(body, str):
            return await self._client.request_stream(
                "POST",
                path,
                files={RECORDED_MESSAGE_FIELD: (None, body)},
                params=params,
                headers=request_headers,
                cancel_token=cancel_token,
            )

        if isinstance(body, (bytes, bytearray, memoryview)):
            request_headers["Content-Type"] = content_type or DEFAULT_AUDIO_CONTENT_TYPE
            return await self._client.request_stream(
                "POST",
                path,
                content=bytes(body),
                params=params,
                headers=request_headers,
                cancel_token=cancel_token,
            )

        raise TypeError(
            f"Interaction body must be str or bytes, not {type(body).__name__}"
        )

    async def get_conversations(
        self,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """List conversations. ``GET /v1/{organization}/conversation/``"""
        return await self._client.request_json(
            "GET",
            self._path("conversation/"),
            params=params,
            headers=headers,
            cancel_token=cancel_token,
        )

    async def get_conversation_messages(
        self,
        conversation_id: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """List the messages of a conversation."""
        return await self._client.request_json(
            "GET",
            self._path(
                "conversation/{conversation_id}/messages/", conversation_id=conversation_id
            ),
            params=params,
            headers=headers,
            cancel_token=cancel_token,
        )

    async def finish_conversation(
        self,
        conversation_id: str,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> None:
        """Finish a conversation. The endpoint returns no content."""
        await self._client.request_empty(
            "POST",
            self._path(
                "conversation/{conversation_id}/finish/", conversation_id=conversation_id
            ),
            headers=headers,
            cancel_token=cancel_token,
        )

    async def recommend_responses_for_interaction(
        self,
        conversation_id: str,
        interaction_id: str,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """Get recommended user responses for an interaction."""
        return await self._client.request_json(
            "GET",
            self._path(
                "conversation/{conversation_id}/interaction/{interaction_id}/recommend_responses",
                conversation_id=conversation_id,
                interaction_id=interaction_id,
            ),
            headers=headers,
            cancel_token=cancel_token,
        )

    async def get_interaction_insights(
        self,
        conversation_id: str,
        interaction_id: str,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """Get insights for an interaction."""
        return await self._client.request_json(
            "GET",
            self._path(
                "conversation/{conversation_id}/interaction/{interaction_id}/insights",
                conversation_id=conversation_id,
                interaction_id=interaction_id,
            ),
            headers=headers,
            cancel_token=cancel_token,
        )

    async def get_message_source(
        self,
        conversation_id: str,
        message_id: str,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """Get the source of a message (e.g. a link to its audio)."""
        return await self._client.request_json(
            "GET",
            self._path(
                "conversation/{conversation_id}/messages/{message_id}/source",
                conversation_id=conversation_id,
                message_id=message_id,
            ),
            headers=headers,
            cancel_token=cancel_token,
        )

    async def generate_conversation_starters(
        self,
        body: Mapping[str, Any],
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """Generate conversation starter prompts.

        ``POST /v1/{organization}/conversation/conversation_starter``
        """
        return await self._client.request_json(
            "POST",
            self._path("conversation/conversation_starter"),
            json=dict(body),
            params=params,
            headers=headers,
            cancel_token=cancel_token,
        )
