"""
Bootstrap configuration — paths, versions and command policy.

Loaded from an optional bootstrap.yml; every field has a default so a
bare host converges without any file.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from devboot.core.models.versions import ToolVersions

# Mostly for WSL, whose inherited PATH has many /mnt/c dirs with spaces
REDUCED_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"


class BootstrapPaths(BaseModel):
    """Filesystem locations touched by a convergence run."""

    home: Path = Field(default_factory=Path.home)
    sandbox_name: str = "venv-main"
    fact_cache: Path = Path("/opt/ansible_cache")
    download_dir: Path = Path("/tmp")
    system_bin: Path = Path("/usr/local/bin")
    # Fixed PATH a run starts from; the inherited one is not trusted
    system_path: str = REDUCED_PATH
    repo_root: Path = Path("/vagrant")
    inventory: str = "dev-bootstrap/inv-bootstrap.yml"
    ansible_config: str = "dev-bootstrap/ansible.cfg"

    @field_validator("sandbox_name")
    @classmethod
    def _plain_name(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError("sandbox_name must be a plain directory name")
        return v

    @property
    def sandbox(self) -> Path:
        """Root of the isolated environment."""
        return self.home / self.sandbox_name

    @property
    def sandbox_bin(self) -> Path:
        return self.sandbox / "bin"

    @property
    def inventory_file(self) -> Path:
        return self.repo_root / self.inventory

    @property
    def ansible_config_file(self) -> Path:
        return self.repo_root / self.ansible_config

    def site_packages(self, python_major: str) -> Path:
        return self.sandbox / "lib" / f"python{python_major}" / "site-packages"


class BootstrapConfig(BaseModel):
    """Root configuration object."""

    versions: ToolVersions = Field(default_factory=ToolVersions)
    paths: BootstrapPaths = Field(default_factory=BootstrapPaths)
    command_timeout: int | None = None  # None = wait for ever

    source: str | None = None  # file this was loaded from, if any
