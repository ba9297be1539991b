"""
Mock runner — test double for every command a convergence run issues.

Records each call and answers with configurable receipts. Rules match
on a command prefix (the first element also matches by basename, so
``python3`` matches ``/home/u/venv-main/bin/python3``). Optional
effects simulate what the real command would leave on disk.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devboot.adapters.base import CommandRunner
from devboot.core.models.action import Receipt


@dataclass
class MockCall:
    """One recorded command invocation."""

    cmd: list[str]
    sudo: bool = False
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None


Effect = Callable[[MockCall], Receipt | None]


@dataclass
class _Rule:
    prefix: list[str]
    stdout: str = ""
    returncode: int = 0
    effect: Effect | None = None


def _matches(prefix: list[str], cmd: list[str]) -> bool:
    if len(cmd) < len(prefix):
        return False
    for i, expected in enumerate(prefix):
        actual = cmd[i]
        if actual == expected:
            continue
        if i == 0 and Path(actual).name == expected:
            continue
        return False
    return True


class MockRunner(CommandRunner):
    """Universal mock runner.

    By default every command succeeds with empty output. Later rules
    take precedence over earlier ones.
    """

    def __init__(self, default_stdout: str = ""):
        self._default_stdout = default_stdout
        self._rules: list[_Rule] = []
        self._calls: list[MockCall] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def calls(self) -> list[MockCall]:
        """All calls this mock has received."""
        return self._calls

    @property
    def call_count(self) -> int:
        return len(self._calls)

    @property
    def commands(self) -> list[list[str]]:
        return [c.cmd for c in self._calls]

    def on(
        self,
        prefix: list[str],
        *,
        stdout: str = "",
        returncode: int = 0,
        effect: Effect | None = None,
    ) -> MockRunner:
        """Configure the answer for commands starting with ``prefix``."""
        self._rules.append(_Rule(list(prefix), stdout, returncode, effect))
        return self

    def fail(self, prefix: list[str], stderr: str = "Mock failure", returncode: int = 1) -> MockRunner:
        """Configure commands starting with ``prefix`` to fail."""

        def _failure(call: MockCall) -> Receipt:
            return Receipt.failure(
                call.cmd,
                error=f"Command exited with code {returncode}",
                return_code=returncode,
                stderr=stderr,
            )

        return self.on(prefix, returncode=returncode, effect=_failure)

    def ran(self, prefix: list[str]) -> bool:
        """Whether any recorded command starts with ``prefix``."""
        return any(_matches(prefix, c.cmd) for c in self._calls)

    def calls_matching(self, prefix: list[str]) -> list[MockCall]:
        return [c for c in self._calls if _matches(prefix, c.cmd)]

    def run(
        self,
        cmd: list[str],
        *,
        sudo: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> Receipt:
        call = MockCall(cmd=list(cmd), sudo=sudo, env=dict(env or {}), cwd=cwd)
        self._calls.append(call)

        for rule in reversed(self._rules):
            if not _matches(rule.prefix, call.cmd):
                continue
            if rule.effect is not None:
                override = rule.effect(call)
                if override is not None:
                    return override
            if rule.returncode != 0:
                return Receipt.failure(
                    call.cmd,
                    error=f"Command exited with code {rule.returncode}",
                    return_code=rule.returncode,
                    stdout=rule.stdout,
                )
            return Receipt.success(call.cmd, stdout=rule.stdout, metadata={"mock": True})

        return Receipt.success(call.cmd, stdout=self._default_stdout, metadata={"mock": True})

    def reset(self) -> None:
        """Clear recorded calls and rules."""
        self._calls.clear()
        self._rules.clear()
