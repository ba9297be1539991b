"""
Environment descriptor — the development VM as data.

A pure function over enumerated inputs: distro picks the box image,
provider picks the CPU count, memory comes from the caller. Unknown
inputs are configuration errors raised before any VM exists.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import TypeVar

from devboot.core.models.vm import Distro, Hypervisor, SharedFolder, VMRequest

# ── Policy tables ───────────────────────────────────────────────

BOXES: dict[Distro, tuple[str, str]] = {
    Distro.UBUNTU: ("bento/ubuntu-20.04", "202107.28.0"),
    Distro.CENTOS: ("bento/centos-7", "202012.21.0"),
}

CPU_POLICY: dict[Hypervisor, int] = {
    Hypervisor.HYPERV: 2,
    Hypervisor.PARALLELS: 4,
    Hypervisor.VMWARE: 2,
    Hypervisor.VIRTUALBOX: 2,
}

# Vagrant provider names
PROVIDER_NAMES: dict[Hypervisor, str] = {
    Hypervisor.HYPERV: "hyperv",
    Hypervisor.PARALLELS: "parallels",
    Hypervisor.VMWARE: "vmware_desktop",
    Hypervisor.VIRTUALBOX: "virtualbox",
}

DEFAULT_DISTRO = Distro.UBUNTU
DEFAULT_HYPERVISOR = Hypervisor.VIRTUALBOX
DEFAULT_MEMORY_MB = 4096

GUEST_MOUNT = "/vagrant"
PROVISION_SCRIPT = "dev-bootstrap/provision.sh"

DISTRO_ENV_VAR = "VAGRANT_DISTRO"
MEMORY_ENV_VAR = "VAGRANT_MEMORY"
REPO_ROOT_ENV_VAR = "AUTO_OPS"


class DescriptorError(Exception):
    """Raised for an unknown distro/provider or a bad memory size."""


E = TypeVar("E", bound=Enum)


def _coerce(enum_cls: type[E], value: E | str, label: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise DescriptorError(f"Unknown {label} '{value}' (expected one of: {allowed})") from None


def build_vm_request(
    distro: Distro | str = DEFAULT_DISTRO,
    hypervisor: Hypervisor | str = DEFAULT_HYPERVISOR,
    memory_mb: int = DEFAULT_MEMORY_MB,
    cpu_count: int | None = None,
    repo_root: Path | str | None = None,
) -> VMRequest:
    """Build the VM request.

    Args:
        distro: Guest distribution (ubuntu, centos).
        hypervisor: Vagrant provider.
        memory_mb: Guest memory in MB.
        cpu_count: Override the provider's CPU policy.
        repo_root: Host directory shared into the guest (default: cwd).

    Raises:
        DescriptorError: For unknown inputs or non-positive sizes.
    """
    distro = _coerce(Distro, distro, "distro")
    hypervisor = _coerce(Hypervisor, hypervisor, "provider")

    if memory_mb <= 0:
        raise DescriptorError(f"Memory must be a positive number of MB, got {memory_mb}")
    cpus = cpu_count if cpu_count is not None else CPU_POLICY[hypervisor]
    if cpus <= 0:
        raise DescriptorError(f"CPU count must be positive, got {cpus}")

    box_image, box_version = BOXES[distro]
    host_root = Path(repo_root) if repo_root is not None else Path.cwd()

    return VMRequest(
        provider=hypervisor,
        distro=distro,
        box_image=box_image,
        box_version=box_version,
        memory_mb=memory_mb,
        cpu_count=cpus,
        shared_folders=[SharedFolder(host=str(host_root), guest=GUEST_MOUNT)],
        provision_command=PROVISION_SCRIPT,
        symlink_capability=True,
    )


def request_from_env(
    environ: Mapping[str, str] | None = None,
    hypervisor: Hypervisor | str = DEFAULT_HYPERVISOR,
    cpu_count: int | None = None,
) -> VMRequest:
    """Build the VM request from VAGRANT_DISTRO, VAGRANT_MEMORY and AUTO_OPS."""
    environ = os.environ if environ is None else environ

    raw_memory = environ.get(MEMORY_ENV_VAR) or str(DEFAULT_MEMORY_MB)
    try:
        memory_mb = int(raw_memory)
    except ValueError:
        raise DescriptorError(f"{MEMORY_ENV_VAR} must be an integer (MB), got '{raw_memory}'") from None

    return build_vm_request(
        distro=environ.get(DISTRO_ENV_VAR) or DEFAULT_DISTRO,
        hypervisor=hypervisor,
        memory_mb=memory_mb,
        cpu_count=cpu_count,
        repo_root=environ.get(REPO_ROOT_ENV_VAR) or None,
    )


# ── Vagrantfile rendering ───────────────────────────────────────


_VAGRANTFILE = """\
# Generated by devboot from the VM descriptor - regenerate, don't edit.
Vagrant.configure("2") do |config|
  config.vm.box = "{box_image}"
  config.vm.box_version = "{box_version}"
{synced_folders}
  config.vm.provider "{provider}" do |v|
    v.memory = {memory_mb}
    v.cpus = {cpu_count}
{provider_extra}  end

  config.vm.provision "shell", path: "{provision}", privileged: false
end
"""

_VIRTUALBOX_SYMLINKS = (
    '    v.customize ["setextradata", :id, '
    '"VBoxInternal2/SharedFoldersEnableSymlinksCreate/{name}", "1"]\n'
)


def render_vagrantfile(request: VMRequest) -> str:
    """Render the request as a Vagrantfile for the hypervisor driver."""
    synced = "\n".join(
        f'  config.vm.synced_folder "{f.host}", "{f.guest}"' for f in request.shared_folders
    )

    extra = ""
    if request.symlink_capability and request.provider is Hypervisor.VIRTUALBOX:
        for folder in request.shared_folders:
            # VirtualBox keys the flag by share name, the guest path without its leading slash
            extra += _VIRTUALBOX_SYMLINKS.format(name=folder.guest.strip("/").replace("/", "_"))

    return _VAGRANTFILE.format(
        box_image=request.box_image,
        box_version=request.box_version,
        synced_folders=synced,
        provider=PROVIDER_NAMES[request.provider],
        memory_mb=request.memory_mb,
        cpu_count=request.cpu_count,
        provider_extra=extra,
        provision=request.provision_command,
    )
