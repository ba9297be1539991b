"""
CLI commands for the development VM descriptor.

Thin wrappers over ``devboot.core.services.descriptor``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from devboot.core.models.vm import Distro, Hypervisor


def _build(distro: str | None, provider: str, memory: int | None, cpus: int | None):
    """Build the request from options, falling back to VAGRANT_* env vars."""
    import os

    from devboot.core.services.descriptor import DescriptorError, request_from_env

    environ = dict(os.environ)
    if distro:
        environ["VAGRANT_DISTRO"] = distro
    if memory is not None:
        environ["VAGRANT_MEMORY"] = str(memory)

    try:
        return request_from_env(environ, hypervisor=provider, cpu_count=cpus)
    except DescriptorError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


_distro_option = click.option(
    "--distro",
    type=click.Choice([d.value for d in Distro]),
    default=None,
    help="Guest distro (default: $VAGRANT_DISTRO or ubuntu).",
)
_provider_option = click.option(
    "--provider",
    type=click.Choice([h.value for h in Hypervisor]),
    default=Hypervisor.VIRTUALBOX.value,
    show_default=True,
    help="Vagrant provider.",
)
_memory_option = click.option(
    "--memory", type=int, default=None, help="Memory in MB (default: $VAGRANT_MEMORY or 4096).",
)
_cpus_option = click.option(
    "--cpus", type=int, default=None, help="CPU count (default: provider policy).",
)


@click.group()
def vm() -> None:
    """VM — describe the development VM, render its Vagrantfile."""


@vm.command()
@_distro_option
@_provider_option
@_memory_option
@_cpus_option
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def describe(
    distro: str | None,
    provider: str,
    memory: int | None,
    cpus: int | None,
    as_json: bool,
) -> None:
    """Show the fully specified VM request."""
    request = _build(distro, provider, memory, cpus)

    if as_json:
        click.echo(json.dumps(request.to_dict(), indent=2))
        return

    click.secho(f"\n📦 {request.box_image} {request.box_version}", fg="cyan", bold=True)
    click.echo(f"   Provider:  {request.provider.value}")
    click.echo(f"   Memory:    {request.memory_mb} MB")
    click.echo(f"   CPUs:      {request.cpu_count}")
    for folder in request.shared_folders:
        click.echo(f"   Shared:    {folder.host} → {folder.guest}")
    click.echo(f"   Provision: {request.provision_command}")
    click.echo()


@vm.command()
@_distro_option
@_provider_option
@_memory_option
@_cpus_option
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False), default=None,
    help="Write to this file instead of stdout.",
)
def vagrantfile(
    distro: str | None,
    provider: str,
    memory: int | None,
    cpus: int | None,
    output: str | None,
) -> None:
    """Render a Vagrantfile for the VM request."""
    from devboot.core.services.descriptor import render_vagrantfile

    text = render_vagrantfile(_build(distro, provider, memory, cpus))

    if output is None:
        click.echo(text, nl=False)
        return

    Path(output).write_text(text, encoding="utf-8")
    click.secho(f"✅ Wrote {output}", fg="green")
