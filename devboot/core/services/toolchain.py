"""
System toolchain — Python 3 and pip at system level.

"System level" means installs into /usr/local that every user sees,
done with sudo. pip is always uninstalled and reinstalled at the
pinned version: the distro pip3 is sometimes broken and partial
upgrades of it are not trusted.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import assert_never

from devboot.adapters.base import CommandRunner
from devboot.core.errors import UnsupportedHostError
from devboot.core.models.config import BootstrapConfig
from devboot.core.models.host import HostFacts, OSFamily
from devboot.core.services.bootstrap_common import SYSTEM_PYTHON, require

logger = logging.getLogger(__name__)

STEP = "toolchain"

# Dev tools for Python builds; 'zip' for unusual Ubuntu variants without it
BUILD_PACKAGES = ["build-essential", "python3-dev", "libffi-dev", "libssl-dev", "zip", "unzip"]

DISTRO_PIP_PACKAGE = "python3-pip"


@dataclass
class ToolchainReport:
    """What the toolchain stage did and what it left behind."""

    pip_before: str = ""
    pip_after: str = ""
    verified: bool = False
    removed_links: list[str] = field(default_factory=list)
    installed_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "pip_before": self.pip_before,
            "pip_after": self.pip_after,
            "verified": self.verified,
            "removed_links": self.removed_links,
            "installed_paths": self.installed_paths,
        }


def _pip_version_cmd() -> list[str]:
    # 'python3 -m pip' avoids a broken pip3 script and pins the interpreter
    return [SYSTEM_PYTHON, "-m", "pip", "--version"]


def stale_pip_links(system_bin: Path) -> list[Path]:
    """pip3 scripts left by brew or non-OS pip installs."""
    found = set(system_bin.glob("pip3")) | set(system_bin.glob("pip3.[1-9]*"))
    return sorted(found)


def install_system_toolchain(
    runner: CommandRunner,
    facts: HostFacts,
    config: BootstrapConfig,
    env: Mapping[str, str],
) -> ToolchainReport:
    """Install build tools and reinstall pip at the pinned version."""
    family = facts.family
    if family is OSFamily.DEBIAN:
        return _install_debian(runner, config, env)
    if family is OSFamily.REDHAT or family is OSFamily.MAC:
        raise UnsupportedHostError(f"no system toolchain install for '{family.value}'")
    assert_never(family)


def _install_debian(
    runner: CommandRunner,
    config: BootstrapConfig,
    env: Mapping[str, str],
) -> ToolchainReport:
    report = ToolchainReport()
    pip_pin = config.versions.pip
    system_bin = config.paths.system_bin

    logger.info("Installing build tools")
    require(runner.run(["apt-get", "update"], sudo=True, env=env), STEP)
    require(runner.run(["apt-get", "install", "-y", *BUILD_PACKAGES], sudo=True, env=env), STEP)

    # pip module may be broken at this point
    report.pip_before = runner.probe(_pip_version_cmd(), env=env).or_else("")

    logger.info("Reinstalling pip3 at version %s", pip_pin)
    require(runner.run(["apt-get", "remove", "--yes", DISTRO_PIP_PACKAGE], sudo=True, env=env), STEP)
    require(runner.run(["apt-get", "install", "--yes", DISTRO_PIP_PACKAGE], sudo=True, env=env), STEP)

    links = stale_pip_links(system_bin)
    if links:
        require(runner.run(["rm", "-f", *map(str, links)], sudo=True, env=env), STEP)
        report.removed_links = [str(p) for p in links]

    uninstall = runner.run(
        [SYSTEM_PYTHON, "-m", "pip", "uninstall", "--yes", "pip"], sudo=True, env=env,
    )
    if uninstall.failed:
        logger.debug("No pip module to uninstall: %s", uninstall.stderr or uninstall.error)

    # May also upgrade dependencies such as setuptools
    require(
        runner.run(
            [SYSTEM_PYTHON, "-m", "pip", "install", "--upgrade", "--force-reinstall", f"pip=={pip_pin}"],
            sudo=True,
            env=env,
        ),
        STEP,
    )

    _verify(runner, report, pip_pin, system_bin, env)
    return report


def _verify(
    runner: CommandRunner,
    report: ToolchainReport,
    pip_pin: str,
    system_bin: Path,
    env: Mapping[str, str],
) -> None:
    """Record the resulting pip and paths. Diagnostic only, never fatal."""
    report.pip_after = runner.probe(_pip_version_cmd(), env=env).or_else("")
    report.installed_paths = sorted(
        str(p) for pattern in ("pip*", "python*") for p in system_bin.glob(pattern)
    )
    report.verified = report.pip_after.startswith(f"pip {pip_pin} ")

    logger.info("Python and pip path summary: %s", ", ".join(report.installed_paths) or "(none)")
    if not report.verified:
        logger.warning(
            "pip verification failed: expected pip %s, got %r",
            pip_pin, report.pip_after or "nothing",
        )
