"""
Tests for the convergence use case — a full run against a FakeHost.
"""

import pytest

from devboot.core.models.host import HostFacts, OSFamily, OSKind
from devboot.core.models.skip import SkipSet
from devboot.core.persistence.run_record import load_run_record
from devboot.core.use_cases.converge import run_converge
from tests.conftest import write_inventory


def _converge(host, **kwargs):
    kwargs.setdefault("facts", host.facts)
    return run_converge(host.config, host.runner, environ=host.environ, **kwargs)


def _stage_names(result):
    return [(s.name, s.status) for s in result.stages]


class TestHappyPath:
    def test_all_stages_ok(self, host):
        result = _converge(host)
        assert result.ok, result.error
        assert _stage_names(result) == [
            ("facts", "ok"),
            ("toolchain", "ok"),
            ("sandbox", "ok"),
            ("ansible", "ok"),
            ("verify", "ok"),
            ("host-dirs", "ok"),
            ("selftest", "ok"),
        ]
        assert result.ansible_path == str(host.sandbox / "bin" / "ansible")
        assert result.stage("selftest").detail == "Ansible passed test"

    def test_leaves_expected_state(self, host):
        _converge(host)
        assert (host.sandbox / "bin" / "ansible").is_file()
        assert host.cache.is_dir()
        assert (host.home / ".ssh" / "regn").is_dir()

    def test_caller_environment_untouched(self, host):
        environ = dict(host.environ, VIRTUAL_ENV="/somewhere/else")
        before = dict(environ)
        run_converge(host.config, host.runner, environ=environ, facts=host.facts)
        assert environ == before

    def test_commands_use_reduced_path(self, host):
        _converge(host)
        apt = host.runner.calls_matching(["apt-get", "update"])[0]
        assert apt.env["PATH"] == str(host.sysbin)
        assert "VIRTUAL_ENV" not in apt.env

    def test_selftest_runs_inside_sandbox(self, host):
        _converge(host)
        call = host.runner.calls_matching(["ansible", "-i"])[0]
        assert call.env["VIRTUAL_ENV"] == str(host.sandbox)
        assert call.cmd[0] == str(host.sandbox / "bin" / "ansible")

    def test_detects_facts_when_not_given(self, host, monkeypatch):
        monkeypatch.setattr(
            "devboot.core.use_cases.converge.detect_host_facts",
            lambda runner, env: host.facts,
        )
        result = run_converge(host.config, host.runner, environ=host.environ)
        assert result.ok
        assert result.facts == host.facts


class TestIdempotence:
    def test_second_run_succeeds(self, host):
        first = _converge(host)
        second = _converge(host)
        assert first.ok and second.ok
        assert _stage_names(first) == _stage_names(second)
        assert first.ansible_path == second.ansible_path
        assert second.stage("sandbox").data["replaced_existing"] is True

    def test_sandbox_rebuilt_every_run(self, host):
        _converge(host)
        (host.sandbox / "stray").write_text("x")
        _converge(host)
        assert not (host.sandbox / "stray").exists()


class TestFamilyGating:
    @pytest.mark.parametrize(
        "facts",
        [
            HostFacts(os=OSKind.LINUX, family=OSFamily.REDHAT),
            HostFacts(os=OSKind.MAC, family=OSFamily.MAC),
        ],
    )
    def test_unsupported_host_mutates_nothing(self, host, facts):
        result = _converge(host, facts=facts)
        assert not result.ok
        assert result.error_kind == "precondition"
        assert "not supported" in result.error
        assert host.runner.call_count == 0
        assert not host.sandbox.exists()
        assert _stage_names(result) == [("facts", "failed")]


class TestConflict:
    def test_outside_ansible_stops_run(self, host):
        host.runner.on(["python3", "-m", "pip", "freeze"], stdout="ansible==2.9.6")
        result = _converge(host)
        assert result.error_kind == "precondition"
        assert "please uninstall with" in result.error
        assert result.stage("ansible").status == "failed"
        assert result.stage("verify") is None
        assert not (host.sandbox / "bin" / "ansible").exists()


class TestSkipTokens:
    def test_skip_python(self, host):
        result = _converge(host, skip=SkipSet.parse("python"))
        assert result.ok
        assert result.stage("toolchain").status == "skipped"
        assert not host.runner.ran(["apt-get", "install", "-y"])

    def test_skip_from_environment(self, host):
        environ = dict(host.environ, BOOTSTRAP_SKIP="python")
        result = run_converge(host.config, host.runner, environ=environ, facts=host.facts)
        assert result.skip == ["python"]
        assert result.stage("toolchain").status == "skipped"

    def test_skip_venv_without_sandbox_fails_verification(self, host):
        result = _converge(host, skip=SkipSet.parse("python venv"))
        assert result.stage("sandbox").status == "skipped"
        assert result.stage("ansible").status == "skipped"
        assert result.error_kind == "verification"
        assert not host.runner.ran(["python3", "-m", "virtualenv"])

    def test_skip_venv_with_existing_sandbox(self, host):
        assert _converge(host).ok
        host.runner.reset()
        host._install_effects()
        result = _converge(host, skip=SkipSet.parse("python venv"))
        assert result.ok, result.error
        assert not host.runner.ran(["python3", "-m", "virtualenv"])
        assert not host.runner.ran(["apt-get"])


class TestFailures:
    def test_failed_command_stops_run(self, host):
        host.runner.fail(["apt-get", "update"], stderr="Temporary failure resolving")
        result = _converge(host)
        assert result.error_kind == "subprocess"
        assert result.stage("toolchain").status == "failed"
        assert result.stage("sandbox") is None

    def test_pip_verification_not_gating(self, host):
        host.runner.on(["python3", "-m", "pip", "--version"], stdout="pip 9.0.1 from /usr/lib")
        result = _converge(host)
        assert result.ok
        assert result.stage("toolchain").detail == "pip verification failed (not gating)"

    def test_selftest_failure(self, host):
        write_inventory(host.config.paths.inventory_file, inventory_ok="no")
        result = _converge(host)
        assert result.error_kind == "selftest"
        assert result.error == "Ansible test failed, exiting"

    def test_filesystem_failure_is_reported(self, host, tmp_path):
        (host.home / ".aws").write_text("not a directory")
        path = tmp_path / "last-run.json"
        result = _converge(host, record_path=path)
        assert result.error_kind == "verification"
        assert ".aws" in result.error
        assert result.stage("host-dirs").status == "failed"
        assert result.stage("selftest") is None
        record = load_run_record(path)
        assert record["ok"] is False
        assert record["error_kind"] == "verification"


class TestRunRecord:
    def test_saved(self, host, tmp_path):
        path = tmp_path / "state" / "last-run.json"
        result = _converge(host, record_path=path)
        record = load_run_record(path)
        assert record["ok"] is True
        assert record["facts"]["family"] == "debian"
        assert [s["name"] for s in record["stages"]] == [s.name for s in result.stages]

    def test_failure_saved(self, host, tmp_path):
        path = tmp_path / "last-run.json"
        _converge(host, facts=HostFacts(os=OSKind.MAC, family=OSFamily.MAC), record_path=path)
        record = load_run_record(path)
        assert record["ok"] is False
        assert record["error_kind"] == "precondition"

    def test_unwritable_record_is_not_fatal(self, host, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        result = _converge(host, record_path=blocker / "last-run.json")
        assert result.ok
