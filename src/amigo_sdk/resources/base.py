"""
Base class for API resources.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

if TYPE_CHECKING:
    from amigo_sdk.client.core import AmigoClient


class Resource:
    """A group of endpoints under ``/v1/{organization}/``.

    Resources only marshal parameters; authentication, retries, error
    classification and decoding happen in the client's request pipeline.
    """

    def __init__(self, client: AmigoClient, org_id: str) -> None:
        self._client = client
        self._org_id = org_id

    @property
    def org_id(self) -> str:
        return self._org_id

    def _path(self, template: str, **segments: str) -> str:
        """Build an organization-scoped path, escaping each segment.

        Example:
            >>> self._path("conversation/{conversation_id}/finish/", conversation_id="c1")
            '/v1/my-org/conversation/c1/finish/'
        """
        escaped = {name: quote(str(value), safe="") for name, value in segments.items()}
        return f"/v1/{quote(self._org_id, safe='')}/{template.format(**escaped)}"
