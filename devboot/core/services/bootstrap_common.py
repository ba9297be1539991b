"""
Shared helpers for the convergence stages.
"""

from __future__ import annotations

from devboot.core.errors import CommandFailedError
from devboot.core.models.action import Receipt

# System interpreter; Ubuntu 20.04 ships it, no symlink needed
SYSTEM_PYTHON = "python3"


def require(receipt: Receipt, step: str = "") -> Receipt:
    """Fail fast: raise if a required command did not succeed."""
    if receipt.failed:
        raise CommandFailedError(receipt, step)
    return receipt
