# nodectl/api/rpc.py
"""Node API clients over HTTP: the kubo RPC client and the legacy HTTP API client."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from nodectl.errors import NodeApiError

from .address import ApiAddress, parse_api_addr

logger = logging.getLogger(__name__)


class NodeApiClient:
    """
    Async client for a node's /api/v0 HTTP API.

    Subclasses pick the HTTP method and any response quirks. No retries are
    performed; transport errors (httpx.TransportError) propagate unchanged,
    error responses are raised as NodeApiError.
    """

    method = "POST"
    name = "node-api"

    def __init__(
        self,
        addr: str | ApiAddress,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            addr: API address string or parsed ApiAddress
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.address = addr if isinstance(addr, ApiAddress) else parse_api_addr(addr)
        self.api_host = self.address.host
        self.api_port = self.address.port
        self.client = httpx.AsyncClient(
            base_url=f"{self.address.url}/api/v0",
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def create(cls, addr: str) -> "NodeApiClient":
        return cls(addr)

    async def _call(self, command: str, **params: Any) -> dict[str, Any]:
        response = await self.client.request(self.method, f"/{command}", params=params or None)
        if response.is_error:
            raise NodeApiError(
                f"{self.name} command '{command}' failed with "
                f"{response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        return response.json()

    async def start(self) -> None:
        """Reachability check; a remote node is already running."""
        await self._call("version")
        logger.debug(f"{self.name} reachable at {self.address.url}")

    async def stop(self) -> None:
        """Ask the node to shut down, then release the HTTP client (kept on failure for retry)."""
        await self._call("shutdown")
        await self.client.aclose()

    async def id(self) -> dict[str, Any]:
        data = await self._call("id")
        return {
            "id": data.get("ID") or data.get("id"),
            "addresses": data.get("Addresses") or [],
            "agent_version": data.get("AgentVersion"),
            "public_key": data.get("PublicKey"),
        }

    async def version(self) -> dict[str, Any]:
        data = await self._call("version")
        return {
            "version": data.get("Version"),
            "commit": data.get("Commit"),
            "repo": data.get("Repo"),
        }

    async def close(self) -> None:
        await self.client.aclose()


class KuboRpcClient(NodeApiClient):
    """Primary client strategy: kubo RPC, every command is a POST."""

    method = "POST"
    name = "kubo-rpc"


class LegacyHttpClient(NodeApiClient):
    """Legacy client strategy: the older HTTP API which also accepted GET."""

    method = "GET"
    name = "http-api"


@dataclass(frozen=True)
class ClientFactory:
    """A client module bound to HTTP settings, usable as rpc_module/http_module."""

    client_cls: type[NodeApiClient]
    timeout: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None

    def create(self, addr: str) -> NodeApiClient:
        return self.client_cls(addr, timeout=self.timeout, transport=self.transport)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("Message") or body.get("message") or body)
    return str(body)
