# nodectl/repo/probe.py
"""
Repository state probing: existence, removal and running-instance discovery.

A repository is a directory holding a "config" file. A running daemon
advertises its API address in an "api" marker file inside the repository.
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

CONFIG_FILE = "config"
API_MARKER_FILE = "api"


class RepoStateProbe(Protocol):
    """Reports on and removes the repository at a path."""

    async def exists(self, path: str) -> bool:
        """Return True if a repository exists at path."""

    async def remove(self, path: str) -> None:
        """Remove the repository at path; a missing path is a no-op."""

    async def find_running_address(self, path: str) -> str | None:
        """Return the API address of an instance serving path, or None."""


class FilesystemRepoProbe:
    """RepoStateProbe backed by the local filesystem."""

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread((Path(path) / CONFIG_FILE).is_file)

    async def remove(self, path: str) -> None:
        """
        Delete the repository directory tree.

        Raises:
            OSError: If the tree exists but cannot be removed
        """
        try:
            await asyncio.to_thread(shutil.rmtree, Path(path))
        except FileNotFoundError:
            logger.debug(f"Repository {path} already absent")
            return
        logger.info(f"Removed repository {path}")

    async def find_running_address(self, path: str) -> str | None:
        """
        Read the API marker a running daemon leaves in the repository.

        Returns:
            The advertised address, or None when no marker is readable
        """
        marker = Path(path) / API_MARKER_FILE
        try:
            content = await asyncio.to_thread(marker.read_text, encoding="utf-8")
        except OSError:
            return None
        addr = content.strip()
        return addr or None
