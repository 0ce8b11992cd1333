# nodectl/node/factory.py
"""Building the node handle a controller drives, per execution mode."""

import logging
from dataclasses import dataclass

from nodectl.api.address import ApiAddress
from nodectl.api.binder import APIBinder
from nodectl.api.types import NodeHandle, NodeModule
from nodectl.config.schema import ControllerConfig, InitOptions
from nodectl.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class Instance:
    """Result of InstanceFactory.ensure()."""

    handle: NodeHandle
    api_addr: ApiAddress | None = None
    created: bool = False  # True when an in-process node was just constructed


class InstanceFactory:
    """
    Produces a controller's node handle.

    Construction is memoized by the caller passing its current handle back in:
    an existing handle is always returned unchanged, so at most one in-process
    node is built per controller.
    """

    def __init__(
        self,
        config: ControllerConfig,
        path: str,
        binder: APIBinder,
        node_module: NodeModule | None = None,
    ) -> None:
        self.config = config
        self.path = path
        self.binder = binder
        self.node_module = node_module

    async def ensure(
        self, existing: NodeHandle | None, init_options: InitOptions
    ) -> Instance:
        """
        Return existing, or build a handle for the configured execution mode.

        Args:
            existing: The controller's current handle (may be None)
            init_options: Merged init options for a new in-process node

        Returns:
            Instance wrapping the handle

        Raises:
            ConfigurationError: If the mode's collaborator is not configured
        """
        if existing is not None:
            return Instance(handle=existing)

        if self.config.type == "remote":
            if not self.config.api_addr:
                raise ConfigurationError("Remote mode requires api_addr")
            handle, address = self.binder.bind(self.config.api_addr)
            return Instance(handle=handle, api_addr=address)

        if self.node_module is None:
            raise ConfigurationError("In-process mode requires a node module")

        logger.debug(f"Constructing in-process node for {self.path}")
        handle = await self.node_module.create(
            {"repo": self.path, "init": init_options, "silent": True}
        )
        return Instance(handle=handle, created=True)
