"""Adapters — how convergence stages reach the host.

Public re-exports for convenient access.
"""

from devboot.adapters.base import CommandRunner
from devboot.adapters.mock import MockCall, MockRunner
from devboot.adapters.shell.command import ShellCommandRunner

__all__ = [
    "CommandRunner",
    "MockCall",
    "MockRunner",
    "ShellCommandRunner",
]
