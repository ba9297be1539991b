"""
Ansible install — pinned Ansible and Jinja2 inside the sandbox.

Ansible installed outside the sandbox is a hard stop: two installs
make ``which ansible`` ambiguous later on, so the operator is told how
to remove the outside one and the run ends.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import assert_never

from devboot.adapters.base import CommandRunner
from devboot.core.errors import ConflictingInstallError, VerificationError
from devboot.core.models.config import BootstrapConfig
from devboot.core.models.probe import ProbeResult
from devboot.core.models.versions import InstallPath
from devboot.core.services.bootstrap_common import SYSTEM_PYTHON, require
from devboot.core.services.venv_context import EnvironmentContext

logger = logging.getLogger(__name__)

STEP = "ansible"

ANSIBLE = "ansible"

REMEDIATION = f"sudo -H {SYSTEM_PYTHON} -m pip uninstall --yes ansible urllib3"


@dataclass
class AnsibleReport:
    """Which install path ran and what it found."""

    install_path: InstallPath = InstallPath.RELEASE
    version_before: str | None = None
    target: str = ""
    installed: bool = False

    def to_dict(self) -> dict:
        return {
            "install_path": self.install_path.value,
            "version_before": self.version_before,
            "target": self.target,
            "installed": self.installed,
        }


def check_conflicting_install(
    runner: CommandRunner,
    env: Mapping[str, str],
    python: str = SYSTEM_PYTHON,
) -> None:
    """Refuse to continue if pip outside the sandbox lists ansible.

    Must be called with the sandbox deactivated.

    Raises:
        ConflictingInstallError: With the uninstall command to run.
    """
    receipt = require(runner.run([python, "-m", "pip", "freeze"], env=env), STEP)
    outside = [
        line.strip() for line in receipt.stdout.splitlines()
        if line.strip().lower().startswith(ANSIBLE)
    ]
    if outside:
        raise ConflictingInstallError(
            f"Ansible is installed outside virtualenv ({', '.join(outside)})",
            remediation=REMEDIATION,
        )


def parse_ansible_version(output: str) -> str | None:
    """Version from the first line of ``ansible --version`` (``ansible 2.9.23``)."""
    first = output.splitlines()[0] if output else ""
    if not first.startswith(f"{ANSIBLE} "):
        return None
    return first[len(ANSIBLE) + 1:].strip() or None


def current_ansible_version(runner: CommandRunner, env: Mapping[str, str]) -> ProbeResult:
    """Version of the ansible found on the (sandboxed) PATH, if any."""
    ansible = runner.which(ANSIBLE, env)
    if ansible is None:
        return ProbeResult.absent("ansible not on PATH")
    output = runner.probe([ansible, "--version"], env=env)
    if not output.ok:
        return output
    version = parse_ansible_version(output.or_else(""))
    if version is None:
        return ProbeResult.absent("unrecognised ansible --version output")
    return ProbeResult.found(version)


def install_ansible(
    runner: CommandRunner,
    config: BootstrapConfig,
    context: EnvironmentContext,
) -> AnsibleReport:
    """Install Jinja2 and Ansible into the sandbox at the pinned versions.

    Exactly one of the release / release-candidate paths runs,
    selected by ``versions.use_pypi_release``.
    """
    versions = config.versions
    report = AnsibleReport(install_path=versions.install_path)

    check_conflicting_install(runner, context.environ, python=_system_python(runner, context.environ))

    logger.info("Installing Ansible using Python in virtualenv %s", config.paths.sandbox)
    with context.activated() as env:
        python = str(context.bin_dir / "python")
        require(
            runner.run([python, "-m", "pip", "install", "--upgrade", f"Jinja2=={versions.jinja2}"], env=env),
            STEP,
        )

        path = versions.install_path
        if path is InstallPath.RELEASE:
            _install_release(runner, config, python, env, report)
        elif path is InstallPath.RELEASE_CANDIDATE:
            _install_release_candidate(runner, config, python, env, report)
        else:
            assert_never(path)

    return report


def _system_python(runner: CommandRunner, env: Mapping[str, str]) -> str:
    return runner.which(SYSTEM_PYTHON, env) or SYSTEM_PYTHON


def _install_release(
    runner: CommandRunner,
    config: BootstrapConfig,
    python: str,
    env: Mapping[str, str],
    report: AnsibleReport,
) -> None:
    pin = config.versions.ansible
    report.target = pin
    report.version_before = current_ansible_version(runner, env).value

    if report.version_before == pin:
        # An installed release candidate reports its own version, so
        # switching back from an RC needs a manual uninstall first.
        logger.info("Ansible %s already installed", pin)
        return

    require(runner.run([python, "-m", "pip", "install", "--upgrade", f"ansible=={pin}"], env=env), STEP)
    report.installed = True


def _install_release_candidate(
    runner: CommandRunner,
    config: BootstrapConfig,
    python: str,
    env: Mapping[str, str],
    report: AnsibleReport,
) -> None:
    versions = config.versions
    tarball = config.paths.download_dir / versions.rc_tarball_name
    report.target = versions.rc_version

    if not os.access(tarball, os.R_OK):
        logger.info("Downloading Ansible %s", versions.rc_version)
        require(
            runner.run(
                ["curl", "--location", "--output", str(tarball), versions.rc_url],
                sudo=True,
                env=env,
            ),
            STEP,
        )

    require(runner.run([python, "-m", "pip", "install", "--upgrade", str(tarball)], env=env), STEP)
    report.installed = True


def verify_ansible(runner: CommandRunner, context: EnvironmentContext) -> str:
    """Ansible must resolve to the sandbox copy.

    Raises:
        VerificationError: If it resolves anywhere else, or not at all.
    """
    expected = str(context.bin_dir / ANSIBLE)
    with context.activated() as env:
        found = runner.which(ANSIBLE, env)

    if found != expected:
        logger.error("Expected ansible at %s, found %s", expected, found or "nothing")
        raise VerificationError(
            "Ansible install did not work - once fixed, please re-run this script."
        )
    return found
