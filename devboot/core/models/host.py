"""
Host facts — what kind of machine the convergence run is on.

Resolved once at the start of a run, before any install step, and
immutable afterwards.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class OSKind(str, Enum):
    """Kernel classification."""

    LINUX = "linux"
    MAC = "mac"


class OSFamily(str, Enum):
    """Distribution family. Only debian is converged today."""

    DEBIAN = "debian"
    REDHAT = "redhat"
    MAC = "mac"


class HostFacts(BaseModel):
    """Immutable facts about the host."""

    model_config = ConfigDict(frozen=True)

    os: OSKind
    family: OSFamily
    is_server: bool = False
    virtualization: str = "unknown"

    @property
    def role(self) -> str:
        return "server" if self.is_server else "laptop"

    def to_dict(self) -> dict:
        return {
            "os": self.os.value,
            "family": self.family.value,
            "role": self.role,
            "is_server": self.is_server,
            "virtualization": self.virtualization,
        }
