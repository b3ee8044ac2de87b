"""HTTP clients for the storage, pinning and gateway services."""

from tales_content.clients.gateway import GatewaySource, gateway_url
from tales_content.clients.nft_storage import NFTStorageClient
from tales_content.clients.pinata import PinataClient

__all__ = [
    "GatewaySource",
    "NFTStorageClient",
    "PinataClient",
    "gateway_url",
]
