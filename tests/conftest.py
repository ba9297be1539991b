"""
Shared test fixtures and configuration.

``FakeHost`` is a throwaway Debian box under tmp_path: a system bin dir
with a ``python3`` executable, a home, a download dir, a repository
with the bootstrap inventory, and a MockRunner whose effects leave on
disk what the real commands would (virtualenv, .deb, ansible script).
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from devboot.adapters.mock import MockCall, MockRunner
from devboot.core.models.action import Receipt
from devboot.core.models.config import BootstrapConfig, BootstrapPaths
from devboot.core.models.host import HostFacts, OSFamily, OSKind
from devboot.core.models.versions import ToolVersions
from devboot.core.services.sandbox import binding_arch

PIP_VERSION_OUTPUT = "pip 20.2.2 from /usr/local/lib/python3.8/dist-packages/pip (python 3.8)"


def make_executable(path: Path, body: str = "#!/bin/sh\nexit 0\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body)
    path.chmod(0o755)
    return path


def write_inventory(path: Path, inventory_ok: str = "true") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "all": {
            "hosts": {"localhost": {"ansible_connection": "local"}},
            "vars": {"inventory_ok": inventory_ok},
        }
    }
    path.write_text(yaml.safe_dump(data))
    return path


class FakeHost:
    """A simulated Debian host rooted in a temp directory."""

    def __init__(self, root: Path, versions: ToolVersions | None = None):
        self.root = root
        self.home = root / "home"
        self.sysbin = root / "sysbin"
        self.downloads = root / "downloads"
        self.repo = root / "repo"
        self.cache = root / "cache"

        self.home.mkdir()
        self.downloads.mkdir()
        make_executable(self.sysbin / "python3")
        write_inventory(self.repo / "dev-bootstrap" / "inv-bootstrap.yml")
        (self.repo / "dev-bootstrap" / "ansible.cfg").write_text("[defaults]\n")

        self.config = BootstrapConfig(
            versions=versions or ToolVersions(),
            paths=BootstrapPaths(
                home=self.home,
                fact_cache=self.cache,
                download_dir=self.downloads,
                system_bin=self.sysbin,
                system_path=str(self.sysbin),
                repo_root=self.repo,
            ),
        )
        self.runner = MockRunner()
        self._install_effects()

    @property
    def sandbox(self) -> Path:
        return self.config.paths.sandbox

    @property
    def environ(self) -> dict[str, str]:
        return {"HOME": str(self.home), "USER": "tester", "PATH": "/usr/bin:/bin"}

    @property
    def facts(self) -> HostFacts:
        return HostFacts(os=OSKind.LINUX, family=OSFamily.DEBIAN, virtualization="oracle")

    # ── Simulated commands ──────────────────────────────────────

    def _install_effects(self) -> None:
        r = self.runner
        r.on(["systemd-detect-virt"], stdout="oracle")
        r.on(["python3", "-m", "pip", "--version"], stdout=PIP_VERSION_OUTPUT)
        r.on(["python3", "-V"], stdout="Python 3.8.10")
        r.on(["python3", "-m", "virtualenv"], effect=self._create_venv)
        r.on(["apt-get", "download", "python3-apt"], effect=self._download_deb)
        r.on(["dpkg", "-x"], effect=self._extract_deb)
        r.on(["python", "-m", "pip", "install", "--upgrade"], effect=self._install_ansible)
        r.on(["mkdir", "-p"], effect=self._mkdir)
        r.on(["ansible", "-i"], effect=self._selftest)

    def _create_venv(self, call: MockCall) -> None:
        sandbox = Path(call.cmd[-1])
        make_executable(sandbox / "bin" / "python")
        make_executable(sandbox / "bin" / "pip")
        (sandbox / "lib" / "python3.8" / "site-packages").mkdir(parents=True)

    def _download_deb(self, call: MockCall) -> None:
        assert call.cwd is not None
        (Path(call.cwd) / "python3-apt_2.0.1_amd64.deb").write_bytes(b"!<arch>")

    def _extract_deb(self, call: MockCall) -> None:
        assert call.cwd is not None
        dist = Path(call.cwd) / call.cmd[3] / "usr" / "lib" / "python3" / "dist-packages"
        (dist / "apt").mkdir(parents=True, exist_ok=True)
        (dist / "apt" / "__init__.py").write_text("")
        for module in ("apt_pkg", "apt_inst"):
            (dist / f"{module}.cpython-38-{binding_arch()}.so").write_bytes(b"\x7fELF")

    def _install_ansible(self, call: MockCall) -> None:
        target = call.cmd[-1]
        if target.startswith("ansible=="):
            version = target.split("==", 1)[1]
        elif target.endswith(".tar.gz"):
            version = self.config.versions.rc_version
        else:
            return  # Jinja2
        make_executable(
            Path(call.cmd[0]).parent / "ansible",
            f"#!/bin/sh\necho 'ansible {version}'\n",
        )

    def _mkdir(self, call: MockCall) -> None:
        Path(call.cmd[-1]).mkdir(parents=True, exist_ok=True)

    def _selftest(self, call: MockCall) -> Receipt | None:
        data = yaml.safe_load(Path(call.cmd[2]).read_text())
        value = data["all"]["vars"].get("inventory_ok")
        if value == "true":
            return Receipt.success(call.cmd, stdout="localhost | SUCCESS")
        return Receipt.failure(
            call.cmd,
            error="Command exited with code 2",
            return_code=2,
            stdout="localhost | FAILED! => Assertion failed",
        )

    # ── Helpers ─────────────────────────────────────────────────

    def apt_installs(self) -> list[list[str]]:
        return [c for c in self.runner.commands if c[:2] == ["apt-get", "install"]]


@pytest.fixture
def host(tmp_path: Path) -> FakeHost:
    """A fresh simulated Debian host."""
    return FakeHost(tmp_path)


@pytest.fixture
def debian_facts() -> HostFacts:
    return HostFacts(os=OSKind.LINUX, family=OSFamily.DEBIAN)
