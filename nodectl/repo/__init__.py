# nodectl/repo/__init__.py
"""Repository state probing."""

from .probe import API_MARKER_FILE, CONFIG_FILE, FilesystemRepoProbe, RepoStateProbe

__all__ = ["RepoStateProbe", "FilesystemRepoProbe", "CONFIG_FILE", "API_MARKER_FILE"]
