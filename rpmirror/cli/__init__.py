"""
rpmirror command line interface.

Replays recorded lifecycle events and inspects reporter configuration.
"""

from .main import cli, main

__all__ = ["main", "cli"]
