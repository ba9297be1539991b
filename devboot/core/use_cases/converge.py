"""
Convergence use case — drive the host to the pinned toolchain.

Stages run strictly in order and stop at the first fatal error:

    facts → support check → toolchain → sandbox → ansible → verify
          → host dirs → self-test

There is no retry. Every stage is safe to run again from scratch, so
re-running the whole command is the recovery path.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from devboot.adapters.base import CommandRunner
from devboot.core.errors import ConvergeError
from devboot.core.models.config import BootstrapConfig
from devboot.core.models.host import HostFacts
from devboot.core.models.skip import SKIP_PYTHON, SKIP_VENV, SkipSet
from devboot.core.persistence.run_record import save_run_record
from devboot.core.services.ansible_install import install_ansible, verify_ansible
from devboot.core.services.facts import detect_host_facts, ensure_supported
from devboot.core.services.host_dirs import prepare_fact_cache, prepare_home_dirs
from devboot.core.services.sandbox import create_sandbox, sandbox_enabled
from devboot.core.services.selftest import run_selftest
from devboot.core.services.toolchain import install_system_toolchain
from devboot.core.services.venv_context import EnvironmentContext, base_environment

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class StageOutcome:
    """Outcome of one stage."""

    name: str
    status: str = "running"  # running, ok, skipped, failed
    detail: str = ""
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "status": self.status,
            "detail": self.detail,
            "data": self.data,
        }


@dataclass
class ConvergeResult:
    """Result of the converge use case."""

    facts: HostFacts | None = None
    skip: list[str] = field(default_factory=list)
    stages: list[StageOutcome] = field(default_factory=list)
    ansible_path: str | None = None
    error: str | None = None
    error_kind: str | None = None
    started_at: str = field(default_factory=_now_iso)
    ended_at: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def stage(self, name: str) -> StageOutcome | None:
        for s in self.stages:
            if s.name == name:
                return s
        return None

    def skipped(self, name: str, reason: str) -> None:
        logger.info("Skipping %s (%s)", name, reason)
        self.stages.append(StageOutcome(name=name, status="skipped", detail=reason))

    def to_dict(self) -> dict:
        result: dict = {
            "ok": self.ok,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "facts": self.facts.to_dict() if self.facts else None,
            "skip": self.skip,
            "stages": [s.to_dict() for s in self.stages],
            "ansible_path": self.ansible_path,
        }
        if self.error:
            result["error"] = self.error
            result["error_kind"] = self.error_kind
        return result


@contextmanager
def _stage(result: ConvergeResult, name: str) -> Iterator[StageOutcome]:
    """Record a stage; any exception marks it failed and propagates."""
    outcome = StageOutcome(name=name)
    result.stages.append(outcome)
    logger.info("── %s", name)
    try:
        yield outcome
    except Exception as e:
        outcome.status = "failed"
        outcome.detail = str(e)
        raise
    outcome.status = "ok"


def run_converge(
    config: BootstrapConfig,
    runner: CommandRunner,
    environ: Mapping[str, str] | None = None,
    facts: HostFacts | None = None,
    skip: SkipSet | None = None,
    record_path: Path | None = None,
) -> ConvergeResult:
    """Run one convergence pass.

    Args:
        config: Versions and paths.
        runner: Command runner (real or mock).
        environ: Starting environment (default: os.environ). Never mutated.
        facts: Pre-computed host facts (default: detect them).
        skip: Skip tokens (default: from BOOTSTRAP_SKIP).
        record_path: Where to persist the result, or None to not persist.

    Returns:
        ConvergeResult; ``error`` is set when the run stopped early.
    """
    env = base_environment(
        os.environ if environ is None else environ,
        path=config.paths.system_path,
    )
    skip = skip if skip is not None else SkipSet.from_env(env)
    context = EnvironmentContext(env, config.paths.sandbox)

    result = ConvergeResult(skip=skip.to_list())

    try:
        _converge(config, runner, env, context, facts, skip, result)
    except ConvergeError as e:
        logger.error("%s", e)
        result.error = str(e)
        result.error_kind = e.kind

    result.ended_at = _now_iso()

    if record_path is not None:
        try:
            save_run_record(result.to_dict(), record_path)
        except OSError as e:
            logger.warning("Could not save run record to %s: %s", record_path, e)

    return result


def _converge(
    config: BootstrapConfig,
    runner: CommandRunner,
    env: dict[str, str],
    context: EnvironmentContext,
    facts: HostFacts | None,
    skip: SkipSet,
    result: ConvergeResult,
) -> None:
    with _stage(result, "facts") as stage:
        facts = facts or detect_host_facts(runner, env=env)
        result.facts = facts
        stage.data = facts.to_dict()
        ensure_supported(facts)

    if skip.skips(SKIP_PYTHON):
        result.skipped("toolchain", f"BOOTSTRAP_SKIP contains '{SKIP_PYTHON}'")
    else:
        with _stage(result, "toolchain") as stage:
            toolchain = install_system_toolchain(runner, facts, config, env)
            stage.data = toolchain.to_dict()
            if not toolchain.verified:
                stage.detail = "pip verification failed (not gating)"

    if sandbox_enabled(facts, skip):
        with _stage(result, "sandbox") as stage:
            sandbox = create_sandbox(runner, facts, config, context)
            stage.data = sandbox.to_dict()

        with _stage(result, "ansible") as stage:
            ansible = install_ansible(runner, config, context)
            stage.data = ansible.to_dict()
    else:
        reason = f"BOOTSTRAP_SKIP contains '{SKIP_VENV}'"
        result.skipped("sandbox", reason)
        result.skipped("ansible", reason)

    with _stage(result, "verify") as stage:
        result.ansible_path = verify_ansible(runner, context)
        stage.detail = result.ansible_path

    with _stage(result, "host-dirs") as stage:
        prepare_fact_cache(runner, config.paths.fact_cache, env)
        dirs = prepare_home_dirs(config.paths.home)
        stage.data = {"fact_cache": str(config.paths.fact_cache), "dirs": [str(d) for d in dirs]}

    with _stage(result, "selftest") as stage, context.activated() as venv_env:
        receipt = run_selftest(runner, config, venv_env)
        stage.detail = "Ansible passed test"
        stage.data = {"duration_ms": receipt.duration_ms}
