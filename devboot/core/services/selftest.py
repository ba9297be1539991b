"""
Self-test — prove Ansible works against the bootstrap inventory.

Runs Ansible's own ``assert`` module on every host of a minimal
inventory, checking that ``inventory_ok`` is the string "true". A
missing inventory and a failing assertion are distinct errors.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from devboot.adapters.base import CommandRunner
from devboot.core.errors import InventoryMissingError, SelfTestFailedError
from devboot.core.models.action import Receipt
from devboot.core.models.config import BootstrapConfig

logger = logging.getLogger(__name__)

ASSERTION = "that='{{ inventory_ok == \"true\" }}'"


def selftest_command(inventory: Path, ansible: str = "ansible") -> list[str]:
    """The ad-hoc assert invocation."""
    return [ansible, "-i", str(inventory), "-m", "assert", "-a", ASSERTION, "all"]


def run_selftest(
    runner: CommandRunner,
    config: BootstrapConfig,
    env: Mapping[str, str],
) -> Receipt:
    """Run the inventory assertion. ``env`` must have the sandbox active.

    Raises:
        InventoryMissingError: The inventory file is absent or unreadable.
        SelfTestFailedError: Ansible exited nonzero.
    """
    paths = config.paths
    inventory = paths.inventory_file

    if not (inventory.is_file() and os.access(inventory, os.R_OK)):
        logger.error("Inventory not found or unreadable at %s", inventory)
        raise InventoryMissingError("No Ansible inventory found, exiting")

    test_env = dict(env)
    # Simplified ansible.cfg for bootstrap
    test_env["ANSIBLE_CONFIG"] = str(paths.ansible_config_file)

    ansible = runner.which("ansible", test_env) or "ansible"
    cwd = str(paths.repo_root) if paths.repo_root.is_dir() else None

    logger.info("Testing Ansible including inventory %s", inventory)
    receipt = runner.run(selftest_command(inventory, ansible), env=test_env, cwd=cwd)
    if receipt.failed:
        logger.error("Self-test output:\n%s\n%s", receipt.stdout, receipt.stderr)
        raise SelfTestFailedError("Ansible test failed, exiting")
    return receipt
