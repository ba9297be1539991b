"""
devboot — CLI entrypoint.

Usage:
    devboot --help
    devboot converge
    devboot facts
    devboot vm vagrantfile
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from devboot import __version__
from devboot.core.observability.logging_config import (
    FILE_ENV_VAR,
    FILE_LEVEL_ENV_VAR,
    resolve_level,
    setup_logging,
)


def _load_config(ctx: click.Context):
    """Load bootstrap.yml (or defaults), exiting 1 on a config error."""
    from devboot.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


def _make_runner(config):
    from devboot.adapters import ShellCommandRunner

    return ShellCommandRunner(timeout=config.command_timeout)


@click.group()
@click.version_option(version=__version__, prog_name="devboot")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to bootstrap.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """devboot — converge a developer box to the pinned Ansible toolchain."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet, environ=os.environ),
        log_file=os.environ.get(FILE_ENV_VAR),
        log_file_level=os.environ.get(FILE_LEVEL_ENV_VAR),
        quiet_third_party=not debug,
    )


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--no-record", is_flag=True, help="Don't save the result to ~/.devboot.")
@click.pass_context
def converge(ctx: click.Context, as_json: bool, no_record: bool) -> None:
    """Install Python, pip, the virtualenv and Ansible, then self-test.

    Significant changes are made to the Python setup of this machine.
    Set BOOTSTRAP_SKIP='python venv' (or a subset) to skip stages
    while developing the bootstrap itself.
    """
    from devboot.core.persistence.run_record import default_record_path
    from devboot.core.use_cases.converge import run_converge

    config = _load_config(ctx)
    runner = _make_runner(config)
    record_path = None if no_record else default_record_path(config.paths.home)

    if not as_json and not ctx.obj.get("quiet"):
        click.secho("\n🔧 devboot converge", fg="cyan", bold=True)
        click.echo(f"   Ansible {config.versions.ansible} ({config.versions.install_path.value})")
        click.echo(f"   Virtualenv: {config.paths.sandbox}")
        click.echo()

    result = run_converge(config, runner, record_path=record_path)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    _print_stages(result.stages, verbose=ctx.obj.get("verbose", False))

    if not result.ok:
        click.echo()
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.echo()
    click.secho(f"✅ Ansible installed inside virtualenv - path: {result.ansible_path}", fg="green", bold=True)
    click.echo()


def _print_stages(stages, verbose: bool = False) -> None:
    for stage in stages:
        if stage.status == "ok":
            click.secho(f"   ✓ {stage.name}", fg="green", nl=False)
        elif stage.status == "skipped":
            click.secho(f"   ⊘ {stage.name}", fg="yellow", nl=False)
        else:
            click.secho(f"   ✗ {stage.name}", fg="red", nl=False)
        click.echo(f"  {stage.detail.splitlines()[0]}" if stage.detail else "")
        if verbose and stage.data:
            for key, val in stage.data.items():
                click.echo(f"     │ {key}: {val}")


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def facts(as_json: bool) -> None:
    """Show detected host facts (OS family, role, virtualization)."""
    from devboot.adapters import ShellCommandRunner
    from devboot.core.errors import UnsupportedHostError
    from devboot.core.services.facts import detect_host_facts, ensure_supported

    host = detect_host_facts(ShellCommandRunner(timeout=10))
    supported = True
    try:
        ensure_supported(host)
    except UnsupportedHostError:
        supported = False

    if as_json:
        click.echo(json.dumps({**host.to_dict(), "supported": supported}, indent=2))
        return

    click.secho("\n🖥️  Host facts", fg="cyan", bold=True)
    click.echo(f"   OS:             {host.os.value}")
    click.echo(f"   Family:         {host.family.value}")
    click.echo(f"   Role:           {host.role}")
    click.echo(f"   Virtualization: {host.virtualization}")
    if supported:
        click.secho("   ✓ supported", fg="green")
    else:
        click.secho("   ✗ not supported", fg="red")
    click.echo()


@cli.command()
@click.pass_context
def selftest(ctx: click.Context) -> None:
    """Run the Ansible inventory self-test against the current virtualenv."""
    from devboot.core.errors import ConvergeError
    from devboot.core.services.selftest import run_selftest
    from devboot.core.services.venv_context import EnvironmentContext, base_environment

    config = _load_config(ctx)
    runner = _make_runner(config)
    env = base_environment(os.environ, path=config.paths.system_path)
    context = EnvironmentContext(env, config.paths.sandbox)

    try:
        with context.activated() as env:
            run_selftest(runner, config, env)
    except ConvergeError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.secho("✅ Ansible passed test", fg="green", bold=True)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show the outcome of the last convergence run."""
    from devboot.core.persistence.run_record import default_record_path, load_run_record

    config = _load_config(ctx)
    path = default_record_path(config.paths.home)
    record = load_run_record(path)

    if as_json:
        click.echo(json.dumps(record or {"error": "No run recorded"}, indent=2))
        if record is None:
            sys.exit(1)
        return

    if record is None:
        click.secho(f"⚠️  No run recorded at {path} - run 'devboot converge'", fg="yellow")
        sys.exit(1)

    ok = record.get("ok", False)
    click.secho(
        f"\n📋 Last run: {'ok' if ok else 'failed'}",
        fg="green" if ok else "red",
        bold=True,
    )
    click.echo(f"   at {record.get('ended_at') or record.get('started_at')}")
    for stage in record.get("stages", []):
        marker = {"ok": "✓", "skipped": "⊘"}.get(stage.get("status"), "✗")
        click.echo(f"   {marker} {stage.get('name')}")
    if record.get("error"):
        click.secho(f"   {record['error'].splitlines()[0]}", fg="red")
    click.echo()


@cli.command()
@click.option(
    "--baf-root",
    default=None,
    help="blockchain-automation-framework checkout (default: ~/devel/blockchain-automation-framework).",
)
@click.option("--interpreter", default=None, help="ansible_python_interpreter for managed hosts.")
@click.option("--print", "print_only", is_flag=True, help="Print the command instead of running it.")
def deploy(baf_root: str | None, interpreter: str | None, print_only: bool) -> None:
    """Run the blockchain-automation-framework site playbook.

    Replaces this process with ansible-playbook, so its exit status is
    returned unchanged. Exits 127 when ansible-playbook is not on PATH.
    """
    from devboot.core.services.playbook import (
        DEFAULT_BAF_ROOT,
        DEFAULT_INTERPRETER,
        build_playbook_invocation,
        exec_playbook,
    )

    invocation = build_playbook_invocation(
        baf_root=baf_root or DEFAULT_BAF_ROOT,
        interpreter=interpreter or DEFAULT_INTERPRETER,
    )

    if print_only:
        for key, val in invocation.env.items():
            click.echo(f"{key}={val}")
        click.echo(invocation.display())
        return

    click.echo("Running the playbook...")
    try:
        exec_playbook(invocation)
    except FileNotFoundError as e:
        click.secho(f"❌ {invocation.program} not found: {e}", fg="red")
        click.echo("   Run 'devboot converge' and activate the virtualenv first")
        sys.exit(127)
    except OSError as e:
        click.secho(f"❌ Cannot run {invocation.program}: {e}", fg="red")
        sys.exit(126)


# ── Register sub-command groups from devboot/ui/cli/ ──────────────

from devboot.ui.cli.vm import vm  # noqa: E402

cli.add_command(vm)


if __name__ == "__main__":
    cli()
