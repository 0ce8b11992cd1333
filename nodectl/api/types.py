# nodectl/api/types.py
"""Handle surfaces shared by the in-process node and the API client strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol


class NodeHandle(Protocol):
    """A bound node: in-process instance or remote API client."""

    async def start(self) -> Any: ...

    async def stop(self) -> Any: ...

    async def id(self) -> Mapping[str, Any]: ...

    async def version(self) -> Mapping[str, Any]: ...


class NodeModule(Protocol):
    """Constructs in-process node instances."""

    async def create(self, options: Mapping[str, Any]) -> NodeHandle: ...


class ClientModule(Protocol):
    """Constructs an API client bound to an address string."""

    def create(self, addr: str) -> NodeHandle: ...


@dataclass(frozen=True)
class PeerIdentity:
    """Identity reported by a started node."""

    id: str
    addresses: list[str] = field(default_factory=list)
    agent_version: str | None = None
    public_key: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PeerIdentity":
        """Build from an id() payload; accepts lowercase or API-cased keys."""
        peer_id = payload.get("id") or payload.get("ID")
        if not peer_id:
            raise ValueError(f"Node identity payload has no id: {dict(payload)!r}")
        return cls(
            id=str(peer_id),
            addresses=[str(a) for a in payload.get("addresses") or payload.get("Addresses") or []],
            agent_version=payload.get("agent_version") or payload.get("AgentVersion"),
            public_key=payload.get("public_key") or payload.get("PublicKey"),
        )

    def __str__(self) -> str:
        return self.id
