"""
Tests for in-process virtualenv activation.
"""

from pathlib import Path

import pytest

from devboot.core.services.venv_context import (
    EnvironmentContext,
    base_environment,
    deactivate_inherited,
)

SANDBOX = Path("/home/dev/venv-main")


class TestEnterExit:
    def test_enter_activates(self):
        env = {"PATH": "/usr/bin:/bin"}
        ctx = EnvironmentContext(env, SANDBOX)
        ctx.enter()
        assert env["VIRTUAL_ENV"] == str(SANDBOX)
        assert env["PATH"] == "/home/dev/venv-main/bin:/usr/bin:/bin"
        assert ctx.active

    def test_exit_restores_exactly(self):
        env = {"PATH": "/usr/bin:/bin", "HOME": "/home/dev"}
        before = dict(env)
        ctx = EnvironmentContext(env, SANDBOX)
        token = ctx.enter()
        ctx.exit(token)
        assert env == before
        assert not ctx.active

    def test_pythonhome_dropped_then_restored(self):
        env = {"PATH": "/bin", "PYTHONHOME": "/opt/py"}
        ctx = EnvironmentContext(env, SANDBOX)
        token = ctx.enter()
        assert "PYTHONHOME" not in env
        ctx.exit(token)
        assert env["PYTHONHOME"] == "/opt/py"

    def test_empty_path(self):
        env = {}
        ctx = EnvironmentContext(env, SANDBOX)
        token = ctx.enter()
        assert env["PATH"] == "/home/dev/venv-main/bin"
        ctx.exit(token)
        assert env == {}

    def test_repeated_toggling_leaves_no_residue(self):
        env = {"PATH": "/usr/bin"}
        ctx = EnvironmentContext(env, SANDBOX)
        for _ in range(3):
            token = ctx.enter()
            ctx.exit(token)
        assert env == {"PATH": "/usr/bin"}


class TestActivated:
    def test_scope(self):
        env = {"PATH": "/usr/bin"}
        ctx = EnvironmentContext(env, SANDBOX)
        with ctx.activated() as active_env:
            assert active_env is env
            assert ctx.active
        assert env == {"PATH": "/usr/bin"}

    def test_restores_on_error(self):
        env = {"PATH": "/usr/bin"}
        ctx = EnvironmentContext(env, SANDBOX)
        with pytest.raises(RuntimeError):
            with ctx.activated():
                raise RuntimeError("boom")
        assert env == {"PATH": "/usr/bin"}

    def test_nested(self):
        env = {"PATH": "/usr/bin"}
        outer = EnvironmentContext(env, SANDBOX)
        inner = EnvironmentContext(env, Path("/tmp/other"))
        with outer.activated():
            with inner.activated():
                assert env["VIRTUAL_ENV"] == "/tmp/other"
            assert env["VIRTUAL_ENV"] == str(SANDBOX)
        assert "VIRTUAL_ENV" not in env


class TestInheritedEnvironment:
    def test_deactivate_inherited(self):
        env = {
            "PATH": "/home/dev/old/bin:/usr/bin",
            "VIRTUAL_ENV": "/home/dev/old",
            "PYTHONHOME": "/x",
        }
        deactivate_inherited(env)
        assert env == {"PATH": "/usr/bin"}

    def test_deactivate_noop(self):
        env = {"PATH": "/usr/bin"}
        deactivate_inherited(env)
        assert env == {"PATH": "/usr/bin"}

    def test_base_environment_is_a_copy(self):
        source = {"PATH": "/mnt/c/Program Files:/usr/bin", "HOME": "/home/dev", "VIRTUAL_ENV": "/v"}
        env = base_environment(source)
        assert source["VIRTUAL_ENV"] == "/v"
        assert "VIRTUAL_ENV" not in env
        assert env["PATH"] == "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"
        assert env["PIP_DISABLE_PIP_VERSION_CHECK"] == "1"
        assert env["HOME"] == "/home/dev"

    def test_base_environment_custom_path(self):
        assert base_environment({}, path="/opt/bin")["PATH"] == "/opt/bin"
