"""
API resources - thin request builders over the client pipeline.
"""

from amigo_sdk.resources.base import Resource
from amigo_sdk.resources.conversation import ConversationResource
from amigo_sdk.resources.organization import OrganizationResource
from amigo_sdk.resources.services import ServiceResource
from amigo_sdk.resources.user import UserResource

__all__ = [
    "ConversationResource",
    "OrganizationResource",
    "Resource",
    "ServiceResource",
    "UserResource",
]
