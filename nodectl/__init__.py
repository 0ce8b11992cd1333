# nodectl/__init__.py
"""Lifecycle controller for in-process and remote storage nodes."""

__version__ = "0.3.0"
