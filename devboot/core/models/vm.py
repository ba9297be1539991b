"""
VM request — the shape of the development VM.

Pure data handed to the hypervisor driver (Vagrant). Built once by
the descriptor service from enumerated inputs.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Distro(str, Enum):
    """Guest distributions with a known box image."""

    UBUNTU = "ubuntu"
    CENTOS = "centos"


class Hypervisor(str, Enum):
    """Vagrant providers with a CPU policy."""

    HYPERV = "hyperv"
    PARALLELS = "parallels"
    VMWARE = "vmware"
    VIRTUALBOX = "virtualbox"


class SharedFolder(BaseModel):
    """A host directory mounted into the guest."""

    host: str
    guest: str


class VMRequest(BaseModel):
    """Fully specified VM request."""

    provider: Hypervisor
    distro: Distro
    box_image: str
    box_version: str
    memory_mb: int
    cpu_count: int
    shared_folders: list[SharedFolder] = Field(default_factory=list)
    provision_command: str = ""
    # Requested from the driver, not enforced here
    symlink_capability: bool = True

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
