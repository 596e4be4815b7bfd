"""Adapters — bindings to the host's external programs.

Public re-exports for convenient access.
"""

from vpnode.adapters.mock import MockFetcher, MockRunner
from vpnode.adapters.shell.command import CommandResult, CommandRunner
from vpnode.adapters.shell.fetch import ArtifactFetcher

__all__ = [
    "ArtifactFetcher",
    "CommandResult",
    "CommandRunner",
    "MockFetcher",
    "MockRunner",
]
