"""
User endpoints.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from amigo_sdk.resources.base import Resource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from amigo_sdk.client.cancel import CancelToken


class UserResource(Resource):
    """Users of the organization."""

    async def get_users(
        self,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """List users. ``GET /v1/{organization}/user/``"""
        return await self._client.request_json(
            "GET",
            self._path("user/"),
            params=params,
            headers=headers,
            cancel_token=cancel_token,
        )

    async def create_user(
        self,
        body: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """Invite a user. ``POST /v1/{organization}/user/``"""
        return await self._client.request_json(
            "POST",
            self._path("user/"),
            json=dict(body),
            headers=headers,
            cancel_token=cancel_token,
        )

    async def delete_user(
        self,
        user_id: str,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> None:
        """Delete a user. The endpoint returns no content."""
        await self._client.request_empty(
            "DELETE",
            self._path("user/{user_id}", user_id=user_id),
            headers=headers,
            cancel_token=cancel_token,
        )

    async def update_user(
        self,
        user_id: str,
        body: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> None:
        """Update a user's info. The endpoint returns no content."""
        await self._client.request_empty(
            "POST",
            self._path("user/{user_id}", user_id=user_id),
            json=dict(body),
            headers=headers,
            cancel_token=cancel_token,
        )

    async def get_user_model(
        self,
        user_id: str,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """Get the user model. ``GET /v1/{organization}/user/{user_id}/user_model``"""
        return await self._client.request_json(
            "GET",
            self._path("user/{user_id}/user_model", user_id=user_id),
            headers=headers,
            cancel_token=cancel_token,
        )
