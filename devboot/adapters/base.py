"""
Runner base — the contract between convergence stages and the host.

Stages never call ``subprocess`` directly; they go through a runner.
Runners NEVER raise for a failing command: the outcome is captured in
a Receipt and the stage decides whether it is fatal.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Mapping

from devboot.core.models.action import Receipt
from devboot.core.models.probe import ProbeResult

logger = logging.getLogger(__name__)


class CommandRunner(ABC):
    """Abstract base class for command runners.

    To create a new runner:
        1. Subclass CommandRunner
        2. Implement name and run
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Runner identifier (e.g. 'shell', 'mock')."""

    @abstractmethod
    def run(
        self,
        cmd: list[str],
        *,
        sudo: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> Receipt:
        """Run a command and return its receipt.

        Args:
            cmd: Argument list, never a shell string.
            sudo: Run with root privileges (``sudo -H``).
            env: Complete environment for the child process.
            cwd: Working directory.

        MUST never raise for a nonzero exit.
        """

    def probe(
        self,
        cmd: list[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> ProbeResult:
        """Best-effort check: stdout of ``cmd`` if it succeeds, else absent."""
        receipt = self.run(cmd, env=env, cwd=cwd)
        if receipt.ok:
            return ProbeResult.found(receipt.stdout.strip())
        logger.debug("Probe failed: %s (%s)", receipt.display, receipt.error or receipt.stderr)
        return ProbeResult.absent(receipt.error or receipt.stderr or "failed")

    def which(self, name: str, env: Mapping[str, str] | None = None) -> str | None:
        """Resolve ``name`` on the PATH of ``env`` (not the process PATH)."""
        path = env.get("PATH") if env is not None else None
        return shutil.which(name, path=path)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
