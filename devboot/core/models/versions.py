"""
Tool versions — the pinned toolchain.

When upgrading Ansible, bump ``ansible`` here (or under ``versions:``
in bootstrap.yml) and re-run ``devboot converge``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

ANSIBLE_RC_ARCHIVE_URL = "https://github.com/ansible/ansible/archive/{rc}.tar.gz"


class InstallPath(str, Enum):
    """Where Ansible comes from. Exactly one is active per run."""

    RELEASE = "release"
    RELEASE_CANDIDATE = "release-candidate"


class ToolVersions(BaseModel):
    """Pinned versions of everything the bootstrap installs."""

    python_major: str = "3.8"
    pip: str = "20.2.2"
    ansible: str = "2.9.23"          # ignored when installing a release candidate
    jinja2: str = "2.11.2"
    rc_version: str = "v2.8.6.0-0.4.rc2"  # ignored for releases, keeps the leading 'v2.'
    use_pypi_release: bool = True

    @property
    def python_tag(self) -> str:
        """Two-digit interpreter tag, e.g. ``38`` for 3.8."""
        return self.python_major.replace(".", "")

    @property
    def install_path(self) -> InstallPath:
        if self.use_pypi_release:
            return InstallPath.RELEASE
        return InstallPath.RELEASE_CANDIDATE

    @property
    def rc_url(self) -> str:
        return ANSIBLE_RC_ARCHIVE_URL.format(rc=self.rc_version)

    @property
    def rc_tarball_name(self) -> str:
        return f"ansible-{self.rc_version}.tar.gz"
