# nodectl/node/__init__.py
"""In-process node construction."""

from .factory import Instance, InstanceFactory
from .local import LocalNode

__all__ = ["Instance", "InstanceFactory", "LocalNode"]
