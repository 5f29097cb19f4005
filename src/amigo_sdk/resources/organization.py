"""
Organization endpoints.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from amigo_sdk.resources.base import Resource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from amigo_sdk.client.cancel import CancelToken


class OrganizationResource(Resource):
    """Organization details."""

    async def get_organization(
        self,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """Get the configured organization.

        ``GET /v1/{organization}/organization/``
        """
        return await self._client.request_json(
            "GET",
            self._path("organization/"),
            headers=headers,
            cancel_token=cancel_token,
        )
