"""
Virtualenv context — activate and deactivate the sandbox in-process.

Activation is three environment variables (PATH, VIRTUAL_ENV,
PYTHONHOME), saved into a RestoreToken on ``enter`` and put back
exactly on ``exit``. The ``activated()`` context manager pairs the two
so repeated toggling within one run cannot leave stale values behind.

The environment is any mutable mapping: the convergence run works on
a copy of ``os.environ`` and hands it to every command it runs.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from devboot.core.models.config import REDUCED_PATH

CONTEXT_VARS = ("PATH", "VIRTUAL_ENV", "PYTHONHOME")


@dataclass(frozen=True)
class RestoreToken:
    """Saved values of the context variables (None = was unset)."""

    saved: tuple[tuple[str, str | None], ...]


def _snapshot(environ: Mapping[str, str]) -> RestoreToken:
    return RestoreToken(saved=tuple((name, environ.get(name)) for name in CONTEXT_VARS))


def _strip_path_entry(path: str, entry: str) -> str:
    return ":".join(p for p in path.split(":") if p and p != entry)


class EnvironmentContext:
    """Sandbox activation over a mutable environment mapping."""

    def __init__(self, environ: MutableMapping[str, str], sandbox: Path):
        self._environ = environ
        self._sandbox = sandbox

    @property
    def environ(self) -> MutableMapping[str, str]:
        return self._environ

    @property
    def sandbox(self) -> Path:
        return self._sandbox

    @property
    def bin_dir(self) -> Path:
        return self._sandbox / "bin"

    @property
    def active(self) -> bool:
        return self._environ.get("VIRTUAL_ENV") == str(self._sandbox)

    def enter(self) -> RestoreToken:
        """Activate the sandbox and return the token that undoes it."""
        token = _snapshot(self._environ)
        path = self._environ.get("PATH", "")
        self._environ["VIRTUAL_ENV"] = str(self._sandbox)
        self._environ["PATH"] = f"{self.bin_dir}:{path}" if path else str(self.bin_dir)
        self._environ.pop("PYTHONHOME", None)
        return token

    def exit(self, token: RestoreToken) -> None:
        """Restore the variables saved by ``enter``."""
        for name, value in token.saved:
            if value is None:
                self._environ.pop(name, None)
            else:
                self._environ[name] = value

    @contextmanager
    def activated(self) -> Iterator[MutableMapping[str, str]]:
        """Scope in which the sandbox is active."""
        token = self.enter()
        try:
            yield self._environ
        finally:
            self.exit(token)


def deactivate_inherited(environ: MutableMapping[str, str]) -> None:
    """Drop a virtualenv the caller was already in (normally the case)."""
    venv = environ.get("VIRTUAL_ENV")
    if not venv:
        return
    environ["PATH"] = _strip_path_entry(environ.get("PATH", ""), f"{venv}/bin")
    environ.pop("VIRTUAL_ENV", None)
    environ.pop("PYTHONHOME", None)


def base_environment(
    environ: Mapping[str, str],
    path: str = REDUCED_PATH,
) -> dict[str, str]:
    """Environment a convergence run starts from.

    A copy of ``environ`` with any inherited virtualenv dropped, PATH
    reduced to ``path``, and pip's upgrade nag silenced.
    """
    env = dict(environ)
    deactivate_inherited(env)
    env["PATH"] = path
    env["PIP_DISABLE_PIP_VERSION_CHECK"] = "1"
    return env
