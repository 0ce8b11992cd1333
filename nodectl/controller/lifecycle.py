# nodectl/controller/lifecycle.py
"""
Node controller lifecycle.

Coordinates repository initialization, start (adopting an already-running
instance when one advertises itself in the repository), stop, and removal of
on-disk state, identically for in-process nodes and remote API nodes.

Callers must serialize init/stop/cleanup on one controller; the controller
does no locking. Only start() tolerates overlapping calls: a second call while
a start is in flight awaits the same attempt instead of binding again.
"""

import asyncio
import logging
import secrets
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any

from platformdirs import user_data_path

from nodectl.api.address import ApiAddress
from nodectl.api.binder import APIBinder
from nodectl.api.types import ClientModule, NodeHandle, NodeModule, PeerIdentity
from nodectl.config.schema import ControllerConfig, InitOptions
from nodectl.errors import NotStartedError
from nodectl.node.factory import InstanceFactory
from nodectl.node.local import LocalNode
from nodectl.repo.probe import FilesystemRepoProbe, RepoStateProbe

logger = logging.getLogger(__name__)


class RepoState(Enum):
    """What the controller knows about its repository."""

    PRISTINE = "pristine"  # never created or adopted
    PRESENT = "present"  # created or adopted, not removed
    REMOVED = "removed"  # removed by cleanup()


class RunState(Enum):
    """Whether the controller holds a live handle."""

    IDLE = "idle"
    STARTING = "starting"
    STARTED = "started"


def resolve_repo_path(config: ControllerConfig) -> str:
    """
    Pick the repository path for a config.

    Explicit config.repo wins; disposable controllers get a fresh temp
    directory name, others the per-user data directory.
    """
    if config.repo:
        return config.repo
    if config.disposable:
        return str(Path(tempfile.gettempdir()) / f"nodectl_{secrets.token_hex(8)}")
    return str(user_data_path("nodectl") / "repo")


class NodeController:
    """
    Lifecycle controller for one node and its repository.

    State:
        - repo_state: PRISTINE -> PRESENT <-> REMOVED (never back to PRISTINE,
          so `initialized` is monotonic)
        - run_state: IDLE -> STARTING -> STARTED; STARTED is only entered
          together with a bound handle
    """

    def __init__(
        self,
        config: ControllerConfig | None = None,
        *,
        node_module: NodeModule | None = LocalNode,
        rpc_module: ClientModule | None = None,
        http_module: ClientModule | None = None,
        probe: RepoStateProbe | None = None,
    ) -> None:
        """
        Initialize the controller; nothing touches disk until init()/start().

        Args:
            config: Controller configuration (defaults to ControllerConfig())
            node_module: Constructs in-process nodes (proc mode)
            rpc_module: Primary client-construction strategy
            http_module: Legacy client-construction strategy
            probe: Repository probe (defaults to the filesystem)
        """
        self.config = config or ControllerConfig()
        self._path = resolve_repo_path(self.config)
        self.probe = probe or FilesystemRepoProbe()
        self.binder = APIBinder(rpc_module=rpc_module, http_module=http_module)
        self.factory = InstanceFactory(
            self.config, self._path, self.binder, node_module=node_module
        )
        self.init_options = self.config.init

        self._repo_state = RepoState.PRISTINE
        self._run_state = RunState.IDLE
        self._api: NodeHandle | None = None
        self._api_addr: ApiAddress | None = None
        self._peer: PeerIdentity | None = None
        self._start_task: asyncio.Task | None = None

        logger.debug(f"Created {self.config.type} controller for {self._path}")

    @property
    def path(self) -> str:
        return self._path

    @property
    def repo_state(self) -> RepoState:
        return self._repo_state

    @property
    def run_state(self) -> RunState:
        return self._run_state

    @property
    def initialized(self) -> bool:
        return self._repo_state is not RepoState.PRISTINE

    @property
    def clean(self) -> bool:
        return self._repo_state is not RepoState.PRESENT

    @property
    def started(self) -> bool:
        return self._run_state is RunState.STARTED

    @property
    def disposable(self) -> bool:
        return self.config.disposable

    @property
    def api(self) -> NodeHandle | None:
        return self._api

    @property
    def api_addr(self) -> ApiAddress | None:
        return self._api_addr

    @property
    def peer(self) -> PeerIdentity:
        """
        Identity cached by the last successful start().

        Raises:
            NotStartedError: If the node has never been started
        """
        if self._peer is None:
            raise NotStartedError()
        return self._peer

    def _merged_init_options(
        self, overrides: InitOptions | dict[str, Any] | bool | None = None
    ) -> InitOptions:
        defaults = InitOptions(
            empty_repo=False,
            profiles=["test"] if self.config.test else [],
        )
        return InitOptions.merge(defaults, self.init_options, InitOptions.coerce(overrides))

    async def _ensure_api(self, init_options: InitOptions) -> NodeHandle:
        instance = await self.factory.ensure(self._api, init_options)
        if instance.api_addr is not None:
            self._api_addr = instance.api_addr
        if instance.created:
            # constructing an in-process node materializes its repository
            self._repo_state = RepoState.PRESENT
        self._api = instance.handle
        return instance.handle

    async def init(
        self, init_options: InitOptions | dict[str, Any] | bool | None = None
    ) -> "NodeController":
        """
        Ensure a repository exists, adopting an existing one untouched.

        Args:
            init_options: Per-call init options; override configured ones

        Returns:
            self
        """
        if await self.probe.exists(self._path):
            self._repo_state = RepoState.PRESENT
            logger.info(f"Adopted existing repository at {self._path}")
            return self

        merged = self._merged_init_options(init_options)
        await self._ensure_api(merged)
        self.init_options = merged
        self._repo_state = RepoState.PRESENT
        logger.info(
            f"Initialized repository at {self._path} "
            f"(profiles={merged.profiles}, empty_repo={merged.empty_repo})"
        )
        return self

    async def start(self) -> "NodeController":
        """
        Ensure a live handle, preferring an instance already serving the repo.

        Idempotent: returns immediately when started, and joins an in-flight
        start instead of beginning another.

        Returns:
            self

        Raises:
            MissingClientStrategyError: A running instance or remote mode needs a
                client strategy and none is configured
            ConfigurationError: The execution mode's collaborator is missing
        """
        if self.started:
            logger.debug(f"Node for {self._path} already started")
            return self

        if self._start_task is None or self._start_task.done():
            self._run_state = RunState.STARTING
            self._start_task = asyncio.create_task(self._start())
            self._start_task.add_done_callback(self._clear_start_task)
        await self._start_task
        return self

    def _clear_start_task(self, task: asyncio.Task) -> None:
        if self._start_task is task:
            self._start_task = None

    async def _start(self) -> None:
        try:
            addr = await self.probe.find_running_address(self._path)
            if addr is not None:
                handle, address = self.binder.bind(addr)
                self._api = handle
                self._api_addr = address
                self._repo_state = RepoState.PRESENT
                logger.info(f"Adopted running node at {address.url} for {self._path}")
            else:
                api = await self._ensure_api(self._merged_init_options())
                await api.start()

            peer = PeerIdentity.from_payload(await self._api.id())
        except BaseException:
            self._run_state = RunState.IDLE
            raise

        self._peer = peer
        self._run_state = RunState.STARTED
        logger.info(f"Node started: peer={peer.id}")

    async def stop(self) -> "NodeController":
        """
        Stop the node; disposable controllers then remove the repository.

        A failed stop command propagates and leaves the controller started.

        Returns:
            self
        """
        if not self.started:
            return self

        await self._api.stop()
        self._run_state = RunState.IDLE
        if self._api_addr is not None:
            # a stopped remote client is closed; the next call binds again
            self._api = None
            self._api_addr = None
        logger.info(f"Node stopped (repo={self._path})")

        if self.disposable:
            await self.cleanup()
        return self

    async def cleanup(self) -> "NodeController":
        """
        Remove the repository's on-disk contents, once.

        Returns:
            self
        """
        if self.clean:
            return self

        await self.probe.remove(self._path)
        self._repo_state = RepoState.REMOVED
        logger.info(f"Cleaned up repository at {self._path}")
        return self

    async def version(self) -> str:
        """Version reported by the node; builds a handle on demand without starting."""
        api = await self._ensure_api(self._merged_init_options())
        payload = await api.version()
        return payload["version"]

    async def pid(self) -> int:
        """
        In-process and bound remote nodes have no process of ours to report.

        Raises:
            NotImplementedError: Always
        """
        raise NotImplementedError("not implemented")

    async def __aenter__(self) -> "NodeController":
        await self.init()
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
