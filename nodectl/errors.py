# nodectl/errors.py
"""Error kinds raised by the node controller and its collaborators."""

from __future__ import annotations


class NodeCtlError(Exception):
    """Base class for nodectl errors."""


class NotStartedError(NodeCtlError):
    """Peer identity was read before the node was started."""

    def __init__(self, message: str = "Not started") -> None:
        super().__init__(message)


class ConfigurationError(NodeCtlError):
    """The controller lacks something it needs to build or bind a node."""


class MissingClientStrategyError(ConfigurationError):
    """Neither client-construction strategy was supplied."""

    def __init__(
        self,
        message: str = "You must pass either a kubo RPC module or an HTTP API module",
    ) -> None:
        super().__init__(message)


class AddressParseError(NodeCtlError, ValueError):
    """An API address string could not be parsed."""


class NodeApiError(NodeCtlError):
    """A node API answered a command with an error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
