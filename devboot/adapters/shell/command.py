"""
Shell command runner — execute commands on the real host.

The single place where ``subprocess.run`` is called for convergence
steps. Commands are argument lists, never shell strings.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Mapping

from devboot.adapters.base import CommandRunner
from devboot.core.models.action import Receipt

logger = logging.getLogger(__name__)

# -H sets HOME to root's home, required on Ubuntu <= 19.10
SUDO_PREFIX = ["sudo", "-H"]


class ShellCommandRunner(CommandRunner):
    """Run commands with ``subprocess`` and capture their output.

    Args:
        timeout: Seconds before a command is abandoned. ``None`` waits
            for ever, so an unresponsive package index hangs the run.
    """

    def __init__(self, timeout: int | None = None):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "shell"

    def run(
        self,
        cmd: list[str],
        *,
        sudo: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> Receipt:
        if sudo and os.geteuid() != 0:
            cmd = SUDO_PREFIX + cmd

        logger.info("$ %s", " ".join(cmd))
        start = time.monotonic()

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                env=dict(env) if env is not None else None,
                cwd=cwd,
                timeout=self._timeout,
            )
        except FileNotFoundError:
            return Receipt.failure(cmd, error=f"Command not found: {cmd[0]}")
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                cmd,
                error=f"Command timed out after {self._timeout}s",
                metadata={"timeout": self._timeout},
            )
        except OSError as e:
            logger.exception("Subprocess error: %s", cmd)
            return Receipt.failure(cmd, error=f"Command execution error: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = result.stdout.strip() if result.stdout else ""
        stderr = result.stderr.strip() if result.stderr else ""

        if result.returncode == 0:
            return Receipt.success(
                cmd,
                stdout=stdout,
                stderr=stderr,
                duration_ms=elapsed_ms,
                metadata={"cwd": cwd},
            )

        return Receipt.failure(
            cmd,
            error=f"Command exited with code {result.returncode}",
            return_code=result.returncode,
            stdout=stdout,
            stderr=stderr,
            duration_ms=elapsed_ms,
            metadata={"cwd": cwd},
        )
