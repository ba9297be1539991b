"""
Host fact detection — classify the machine before touching it.

These functions READ system state but never WRITE. The only subprocess
is the virtualization probe, whose failure is not fatal.
"""

from __future__ import annotations

import logging
import os
import platform
import pwd
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import assert_never

from devboot.adapters.base import CommandRunner
from devboot.core.errors import UnsupportedHostError
from devboot.core.models.host import HostFacts, OSFamily, OSKind
from devboot.core.models.probe import ProbeResult

logger = logging.getLogger(__name__)

# CentOS has both centos-release and redhat-release
REDHAT_RELEASE_MARKERS = ("etc/centos-release", "etc/redhat-release")

# Laptops and CI VMs have this account, servers do not
LAPTOP_ACCOUNT = "vagrant"


def detect_os_kind(system: str | None = None) -> OSKind:
    """Classify the kernel name (``uname -s``)."""
    system = system if system is not None else platform.system()
    if system == "Darwin":
        return OSKind.MAC
    return OSKind.LINUX


def detect_family(kind: OSKind, root: Path = Path("/")) -> OSFamily:
    """Classify the distribution family from release marker files."""
    if kind is OSKind.MAC:
        return OSFamily.MAC
    for marker in REDHAT_RELEASE_MARKERS:
        if os.access(root / marker, os.R_OK):
            return OSFamily.REDHAT
    return OSFamily.DEBIAN


def detect_virtualization(
    runner: CommandRunner,
    env: Mapping[str, str] | None = None,
) -> ProbeResult:
    """Ask ``systemd-detect-virt`` what we run on (wsl, oracle, kvm, none...).

    The tool exits nonzero when it finds no virtualization but still
    prints ``none``, so stdout is used regardless of the exit code.
    """
    receipt = runner.run(["systemd-detect-virt"], env=env)
    value = receipt.stdout.strip()
    if value:
        return ProbeResult.found(value)
    return ProbeResult.absent(receipt.error or "no output")


def account_exists(name: str) -> bool:
    """Whether a local account exists (``id -u <name>``)."""
    try:
        pwd.getpwnam(name)
    except KeyError:
        return False
    return True


def detect_host_facts(
    runner: CommandRunner,
    *,
    env: Mapping[str, str] | None = None,
    root: Path = Path("/"),
    system: str | None = None,
    account: str = LAPTOP_ACCOUNT,
    account_lookup: Callable[[str], bool] = account_exists,
) -> HostFacts:
    """Detect all host facts in one pass.

    Args:
        runner: Runner for the virtualization probe.
        env: Environment for the probe.
        root: Filesystem root holding ``etc/`` (tests point this at tmp).
        system: Kernel name override (default: ``platform.system()``).
        account: Account whose absence marks a server.
        account_lookup: Account existence check.
    """
    kind = detect_os_kind(system)
    family = detect_family(kind, root)
    virtualization = detect_virtualization(runner, env).or_else("unknown")
    is_server = not account_lookup(account)

    facts = HostFacts(
        os=kind,
        family=family,
        is_server=is_server,
        virtualization=virtualization,
    )
    logger.info(
        "Host: os=%s family=%s role=%s virt=%s",
        kind.value, family.value, facts.role, virtualization,
    )
    return facts


def ensure_supported(facts: HostFacts) -> None:
    """Stop before any mutation on a family we do not converge.

    Raises:
        UnsupportedHostError: For redhat and mac.
    """
    family = facts.family
    if family is OSFamily.DEBIAN:
        return
    if family is OSFamily.REDHAT or family is OSFamily.MAC:
        raise UnsupportedHostError(
            f"detected OS '{facts.os.value}' / '{family.value}' - not supported"
        )
    assert_never(family)
