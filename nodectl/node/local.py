# nodectl/node/local.py
"""
Reference in-process node.

Owns a repository directory: creates it on first construction (identity,
profiles, datastore layout) and exposes the handle surface the controller
drives. Storage and networking are outside its scope; start/stop only toggle
the online flag.
"""

import asyncio
import base64
import hashlib
import json
import logging
import secrets
from pathlib import Path
from typing import Any, Mapping

from nodectl import __version__
from nodectl.config.schema import InitOptions
from nodectl.repo.probe import CONFIG_FILE

logger = logging.getLogger(__name__)

REPO_VERSION = 16
README = "Hello and welcome to this node's repository.\n"


def _generate_identity() -> dict[str, str]:
    """Generate a keypair stand-in and the peer id derived from it."""
    private_key = secrets.token_bytes(32)
    digest = hashlib.sha256(private_key).hexdigest()
    return {
        "PeerID": f"12D3{digest[:44]}",
        "PrivKey": base64.b64encode(private_key).decode("ascii"),
    }


class LocalNode:
    """An in-process node rooted at a repository directory."""

    def __init__(self, repo: str | Path, silent: bool = False) -> None:
        self.repo = Path(repo)
        self.online = False
        self._config: dict[str, Any] | None = None
        self._log = logging.getLogger(f"{__name__}.{self.repo.name}")
        if silent:
            self._log.setLevel(logging.WARNING)

    @classmethod
    async def create(cls, options: Mapping[str, Any]) -> "LocalNode":
        """
        Construct a node, initializing its repository if needed.

        Args:
            options: {"repo": path, "init": InitOptions | dict | bool, "silent": bool}.
                init=False skips repository initialization.

        Returns:
            LocalNode bound to the repository
        """
        node = cls(options["repo"], silent=bool(options.get("silent", False)))
        init = options.get("init", True)
        if init is not False:
            await asyncio.to_thread(node._init_repo, InitOptions.coerce(init))
        return node

    @property
    def config_path(self) -> Path:
        return self.repo / CONFIG_FILE

    def _init_repo(self, init: InitOptions) -> None:
        if self.config_path.is_file():
            self._log.info(f"Repository already initialized at {self.repo}")
            return

        profiles = list(init.profiles or [])
        empty_repo = bool(init.empty_repo)

        self.repo.mkdir(parents=True, exist_ok=True)
        (self.repo / "datastore").mkdir(exist_ok=True)
        blocks = self.repo / "blocks"
        blocks.mkdir(exist_ok=True)

        config = {
            "Identity": _generate_identity(),
            "Profiles": profiles,
            "EmptyRepo": empty_repo,
            "Datastore": {"Path": "datastore"},
        }
        if "test" in profiles:
            # test profile: no listeners, no bootstrap peers
            config["Addresses"] = {"Swarm": [], "API": None}
            config["Bootstrap"] = []

        (self.repo / "version").write_text(f"{REPO_VERSION}\n", encoding="utf-8")
        if not empty_repo:
            (blocks / "README").write_text(README, encoding="utf-8")
        self.config_path.write_text(json.dumps(config, indent=2), encoding="utf-8")
        self._config = config
        self._log.info(f"Initialized repository at {self.repo} (profiles={profiles})")

    def _load_config(self) -> dict[str, Any]:
        if self._config is None:
            self._config = json.loads(self.config_path.read_text(encoding="utf-8"))
        return self._config

    async def start(self) -> None:
        """
        Bring the node online.

        Raises:
            FileNotFoundError: If the repository was never initialized
        """
        await asyncio.to_thread(self._load_config)
        self.online = True
        self._log.info(f"Node online (repo={self.repo})")

    async def stop(self) -> None:
        self.online = False
        self._log.info("Node offline")

    async def id(self) -> dict[str, Any]:
        config = await asyncio.to_thread(self._load_config)
        return {
            "id": config["Identity"]["PeerID"],
            "addresses": [],
            "agent_version": f"nodectl/{__version__}",
        }

    async def version(self) -> dict[str, Any]:
        return {"version": __version__, "repo": str(REPO_VERSION)}
