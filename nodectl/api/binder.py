# nodectl/api/binder.py
"""Binding an API address to a client handle via the configured strategy."""

import logging
from enum import Enum

from nodectl.errors import MissingClientStrategyError

from .address import ApiAddress, parse_api_addr
from .types import ClientModule, NodeHandle

logger = logging.getLogger(__name__)


class ClientStrategy(Enum):
    """Which client-construction strategy a binder uses."""

    PRIMARY = "primary"
    LEGACY = "legacy"
    NONE = "none"

    @classmethod
    def resolve(
        cls, primary: ClientModule | None, legacy: ClientModule | None
    ) -> "ClientStrategy":
        """Primary wins when both are configured."""
        if primary is not None:
            return cls.PRIMARY
        if legacy is not None:
            return cls.LEGACY
        return cls.NONE


class APIBinder:
    """
    Produces client handles bound to API addresses.

    Holds the two optional client-construction strategies: the primary RPC
    client module and the legacy HTTP client module.
    """

    def __init__(
        self,
        rpc_module: ClientModule | None = None,
        http_module: ClientModule | None = None,
    ) -> None:
        self.rpc_module = rpc_module
        self.http_module = http_module

    @property
    def strategy(self) -> ClientStrategy:
        return ClientStrategy.resolve(self.rpc_module, self.http_module)

    def bind(self, addr: str) -> tuple[NodeHandle, ApiAddress]:
        """
        Parse addr and build a client handle for it.

        The handle gets api_host/api_port attributes for introspection.

        Args:
            addr: API address string, e.g. "/ip4/127.0.0.1/tcp/5001"

        Returns:
            (handle, parsed address)

        Raises:
            AddressParseError: If addr is malformed
            MissingClientStrategyError: If no client module is configured
        """
        address = parse_api_addr(addr)

        strategy = self.strategy
        if strategy is ClientStrategy.PRIMARY:
            logger.debug("Using kubo RPC client")
            handle = self.rpc_module.create(addr)
        elif strategy is ClientStrategy.LEGACY:
            logger.debug("Using legacy HTTP API client")
            handle = self.http_module.create(addr)
        else:
            raise MissingClientStrategyError()

        handle.api_host = address.host
        handle.api_port = address.port
        logger.info(f"Bound {strategy.value} client to {address.url}")
        return handle, address
