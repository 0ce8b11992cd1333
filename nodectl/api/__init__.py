# nodectl/api/__init__.py
"""Node API binding: address parsing, client strategies and handle types."""

from .address import ApiAddress, parse_api_addr
from .binder import APIBinder, ClientStrategy
from .rpc import ClientFactory, KuboRpcClient, LegacyHttpClient, NodeApiClient
from .types import ClientModule, NodeHandle, NodeModule, PeerIdentity

__all__ = [
    "ApiAddress",
    "parse_api_addr",
    "APIBinder",
    "ClientStrategy",
    "ClientFactory",
    "KuboRpcClient",
    "LegacyHttpClient",
    "NodeApiClient",
    "ClientModule",
    "NodeHandle",
    "NodeModule",
    "PeerIdentity",
]
