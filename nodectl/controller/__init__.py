# nodectl/controller/__init__.py
"""
Node lifecycle control.

Exports:
    - NodeController: init/start/stop/cleanup state machine
    - RepoState, RunState: controller state values
"""

from nodectl.controller.lifecycle import NodeController, RepoState, RunState, resolve_repo_path

__all__ = ["NodeController", "RepoState", "RunState", "resolve_repo_path"]
