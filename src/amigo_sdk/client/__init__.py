"""
Client layer - AmigoClient, its builder and request cancellation.
"""

from amigo_sdk.client.cancel import CancelReason, CancelState, CancelToken, sleep
from amigo_sdk.client.core import AmigoClient
from amigo_sdk.client.builder import AmigoClientBuilder

__all__ = [
    "AmigoClient",
    "AmigoClientBuilder",
    "CancelReason",
    "CancelState",
    "CancelToken",
    "sleep",
]
