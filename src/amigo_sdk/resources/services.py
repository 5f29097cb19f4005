"""
Service endpoints.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from amigo_sdk.resources.base import Resource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from amigo_sdk.client.cancel import CancelToken


class ServiceResource(Resource):
    """Services available to the organization."""

    async def get_services(
        self,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        *,
        cancel_token: CancelToken | None = None,
    ) -> Any:
        """List services.

        ``GET /v1/{organization}/service/``

        Args:
            params: Query parameters (filters, pagination)
            headers: Additional headers
            cancel_token: Optional cancellation token

        Returns:
            Decoded JSON body
        """
        return await self._client.request_json(
            "GET",
            self._path("service/"),
            params=params,
            headers=headers,
            cancel_token=cancel_token,
        )
