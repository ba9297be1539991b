"""
Convergence errors — every fatal condition of a run.

Each error carries a ``kind`` so callers (CLI, JSON output, the run
record) can tell a precondition failure from a failed command or a
failed verification. All of them end the run with exit status 1;
re-running is the only recovery.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devboot.core.models.action import Receipt


class ConvergeError(Exception):
    """Base class for fatal convergence errors."""

    kind = "error"
    exit_code = 1


class UnsupportedHostError(ConvergeError):
    """The host family is not one we converge."""

    kind = "precondition"


class ConflictingInstallError(ConvergeError):
    """Ansible is installed outside the sandbox."""

    kind = "precondition"

    def __init__(self, message: str, remediation: str):
        super().__init__(message)
        self.remediation = remediation

    def __str__(self) -> str:
        return f"{self.args[0]} - please uninstall with:\n\n   {self.remediation}\n"


class CommandFailedError(ConvergeError):
    """A required command returned nonzero."""

    kind = "subprocess"

    def __init__(self, receipt: Receipt, step: str = ""):
        self.receipt = receipt
        self.step = step
        detail = receipt.stderr or receipt.error or f"exit {receipt.return_code}"
        prefix = f"{step}: " if step else ""
        super().__init__(f"{prefix}command failed: {receipt.display}\n{detail}".rstrip())


class VerificationError(ConvergeError):
    """The converged state does not match what was installed."""

    kind = "verification"


class InventoryMissingError(ConvergeError):
    """The self-test inventory file does not exist."""

    kind = "selftest"


class SelfTestFailedError(ConvergeError):
    """Ansible ran but the inventory assertion failed."""

    kind = "selftest"
