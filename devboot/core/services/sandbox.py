"""
Sandbox — the isolated virtualenv that holds Ansible.

The sandbox is never patched: every run removes it and builds it again
from the system interpreter, so a half-finished previous run cannot
leak into this one.

On Debian the APT bindings (``python3-apt``, needed by Ansible's apt
modules) are not installable with pip. The .deb is downloaded and
unpacked, its files copied into the sandbox, and the
architecture-tagged shared libraries renamed to the plain names the
sandbox interpreter imports.
"""

from __future__ import annotations

import logging
import platform
import shutil
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import assert_never

from devboot.adapters.base import CommandRunner
from devboot.core.errors import UnsupportedHostError, VerificationError
from devboot.core.models.config import BootstrapConfig
from devboot.core.models.host import HostFacts, OSFamily
from devboot.core.models.skip import SKIP_VENV, SkipSet
from devboot.core.services.bootstrap_common import SYSTEM_PYTHON, require
from devboot.core.services.venv_context import EnvironmentContext

logger = logging.getLogger(__name__)

STEP = "sandbox"

APT_BINDING_PACKAGE = "python3-apt"
APT_BINDING_MODULES = ("apt_pkg", "apt_inst")
APT_BINDING_SOURCE = Path("usr/lib/python3/dist-packages")


@dataclass
class SandboxReport:
    """The freshly created sandbox."""

    path: str = ""
    python: str = ""
    python_version: str = ""
    replaced_existing: bool = False
    binding_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "python": self.python,
            "python_version": self.python_version,
            "replaced_existing": self.replaced_existing,
            "binding_files": self.binding_files,
        }


def sandbox_enabled(facts: HostFacts, skip: SkipSet) -> bool:
    """Whether this run (re)creates the sandbox. The skip token is Debian-only."""
    family = facts.family
    if family is OSFamily.DEBIAN:
        return not skip.skips(SKIP_VENV)
    if family is OSFamily.REDHAT or family is OSFamily.MAC:
        return True
    assert_never(family)


def binding_arch() -> str:
    """Multiarch triplet used in extension module names."""
    return f"{platform.machine()}-linux-gnu"


def remove_sandbox(runner: CommandRunner, sandbox: Path, env: Mapping[str, str]) -> bool:
    """Delete the sandbox directory if present. Returns whether it existed."""
    if not sandbox.exists() and not sandbox.is_symlink():
        return False

    logger.info("Removing existing virtualenv %s", sandbox)
    try:
        if sandbox.is_dir() and not sandbox.is_symlink():
            shutil.rmtree(sandbox)
        else:
            sandbox.unlink()
    except PermissionError:
        # Left behind by an earlier run under sudo
        require(runner.run(["rm", "-rf", str(sandbox)], sudo=True, env=env), STEP)
    except OSError as e:
        raise VerificationError(f"Cannot remove existing virtualenv {sandbox}: {e}") from e
    return True


def resolve_interpreter(runner: CommandRunner, env: Mapping[str, str]) -> str:
    """Absolute path of the system interpreter, never a nested virtualenv's."""
    path = runner.which(SYSTEM_PYTHON, env)
    if path is None:
        raise VerificationError(
            f"No {SYSTEM_PYTHON} on PATH ({env.get('PATH', '')}) - "
            "run without BOOTSTRAP_SKIP=python to install it"
        )
    return path


def create_sandbox(
    runner: CommandRunner,
    facts: HostFacts,
    config: BootstrapConfig,
    context: EnvironmentContext,
) -> SandboxReport:
    """Remove and recreate the sandbox, then add platform extras."""
    env = context.environ
    sandbox = config.paths.sandbox
    report = SandboxReport(path=str(sandbox))

    require(
        runner.run([SYSTEM_PYTHON, "-m", "pip", "install", "virtualenv"], sudo=True, env=env),
        STEP,
    )

    report.replaced_existing = remove_sandbox(runner, sandbox, env)

    python_path = resolve_interpreter(runner, env)
    report.python = python_path
    report.python_version = runner.probe([python_path, "-V"], env=env).or_else("unknown")
    logger.info("Copying %s into virtualenv - %s", python_path, report.python_version)

    # Installs the python binary into the sandbox
    require(
        runner.run([python_path, "-m", "virtualenv", "-p", python_path, str(sandbox)], env=env),
        STEP,
    )

    with context.activated() as venv_env:
        sandbox_python = runner.which("python", venv_env)
        logger.info("Virtualenv Python is %s", sandbox_python)

        family = facts.family
        if family is OSFamily.DEBIAN:
            copied = install_apt_binding(runner, config, venv_env)
            report.binding_files = [str(p) for p in copied]
        elif family is OSFamily.REDHAT or family is OSFamily.MAC:
            raise UnsupportedHostError(f"no sandbox extras for '{family.value}'")
        else:
            assert_never(family)

    return report


def _copy_tree_contents(source: Path, target: Path) -> None:
    target.mkdir(parents=True, exist_ok=True)
    for entry in source.iterdir():
        if entry.is_dir():
            shutil.copytree(entry, target / entry.name, dirs_exist_ok=True)
        else:
            shutil.copy2(entry, target / entry.name)


def install_apt_binding(
    runner: CommandRunner,
    config: BootstrapConfig,
    env: MutableMapping[str, str],
    arch: str | None = None,
) -> list[Path]:
    """Transplant python3-apt from its .deb into the sandbox.

    Returns:
        Paths of the renamed shared libraries inside the sandbox.
    """
    download_dir = config.paths.download_dir
    versions = config.versions
    arch = arch or binding_arch()

    stale = sorted(download_dir.glob(f"{APT_BINDING_PACKAGE}_*.deb"))
    if stale:
        require(runner.run(["rm", "-f", *map(str, stale)], sudo=True, env=env), STEP)

    require(runner.run(["apt-get", "update"], sudo=True, env=env), STEP)
    require(
        runner.run(["apt-get", "download", APT_BINDING_PACKAGE], sudo=True, env=env, cwd=str(download_dir)),
        STEP,
    )

    debs = sorted(
        download_dir.glob(f"{APT_BINDING_PACKAGE}*.deb"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    if not debs:
        raise VerificationError(f"apt-get download left no {APT_BINDING_PACKAGE} .deb in {download_dir}")

    require(
        runner.run(["dpkg", "-x", str(debs[0]), APT_BINDING_PACKAGE], env=env, cwd=str(download_dir)),
        STEP,
    )

    source = download_dir / APT_BINDING_PACKAGE / APT_BINDING_SOURCE
    target = config.paths.site_packages(versions.python_major)
    if not source.is_dir():
        raise VerificationError(f"{APT_BINDING_PACKAGE} package has no {APT_BINDING_SOURCE}")
    try:
        _copy_tree_contents(source, target)
    except OSError as e:
        raise VerificationError(f"Cannot copy {APT_BINDING_PACKAGE} into {target}: {e}") from e

    renamed: list[Path] = []
    for module in APT_BINDING_MODULES:
        tagged = target / f"{module}.cpython-{versions.python_tag}-{arch}.so"
        plain = target / f"{module}.so"
        if not tagged.is_file():
            raise VerificationError(
                f"Missing {tagged.name} in {APT_BINDING_PACKAGE} - "
                f"the package does not match Python {versions.python_major} / {arch}"
            )
        try:
            tagged.replace(plain)
        except OSError as e:
            raise VerificationError(f"Cannot rename {tagged.name}: {e}") from e
        renamed.append(plain)

    logger.info("Installed %s into %s", APT_BINDING_PACKAGE, target)
    return renamed
