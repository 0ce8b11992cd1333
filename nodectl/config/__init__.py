# nodectl/config/__init__.py
"""Configuration system for nodectl."""

from .loader import get_config_path, load_config
from .schema import ClientConfig, ControllerConfig, InitOptions

__all__ = [
    "ControllerConfig",
    "InitOptions",
    "ClientConfig",
    "load_config",
    "get_config_path",
]
