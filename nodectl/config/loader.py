# nodectl/config/loader.py
"""
Configuration loading with auto-creation of defaults.

Uses platformdirs for cross-platform config directory management.
"""

import logging
import os
from pathlib import Path

import yaml
from platformdirs import user_config_path

from .schema import ControllerConfig

logger = logging.getLogger(__name__)

REPO_ENV_VAR = "NODECTL_REPO"


def get_config_path() -> Path:
    """Get path to config file, ensuring config directory exists."""
    config_dir = user_config_path("nodectl", ensure_exists=True)
    return config_dir / "config.yaml"


def load_config(path: Path | None = None) -> ControllerConfig:
    """
    Load configuration from YAML file.

    If the config file doesn't exist, creates it with defaults.
    The NODECTL_REPO environment variable overrides the repository path.

    Args:
        path: Explicit config file (defaults to the user config dir)

    Returns:
        Validated ControllerConfig
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        config = ControllerConfig()
        config_dict = config.model_dump(mode="json", exclude_none=True)

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("w") as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Created default config at {config_path}")
    else:
        with config_path.open("r") as f:
            config_data = yaml.safe_load(f) or {}

        config = ControllerConfig(**config_data)
        logger.info(f"Loaded config from {config_path}")

    repo_override = os.environ.get(REPO_ENV_VAR)
    if repo_override:
        config = config.model_copy(update={"repo": repo_override})
    return config
