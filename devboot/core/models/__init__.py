"""
Domain models — Pydantic types for the bootstrap.

All models are re-exported here for convenient access:

    from devboot.core.models import HostFacts, ToolVersions, Receipt, VMRequest
"""

from devboot.core.models.action import Receipt
from devboot.core.models.config import BootstrapConfig, BootstrapPaths
from devboot.core.models.host import HostFacts, OSFamily, OSKind
from devboot.core.models.probe import ProbeResult
from devboot.core.models.skip import SkipSet
from devboot.core.models.versions import InstallPath, ToolVersions
from devboot.core.models.vm import Distro, Hypervisor, SharedFolder, VMRequest

__all__ = [
    # config.py
    "BootstrapConfig",
    "BootstrapPaths",
    # vm.py
    "Distro",
    # host.py
    "HostFacts",
    "Hypervisor",
    # versions.py
    "InstallPath",
    "OSFamily",
    "OSKind",
    # probe.py
    "ProbeResult",
    # action.py
    "Receipt",
    "SharedFolder",
    # skip.py
    "SkipSet",
    "ToolVersions",
    "VMRequest",
]
