"""
Playbook wrapper — hand the process over to ansible-playbook.

Runs the blockchain-automation-framework site playbook against its
shared inventory. The process is replaced (exec), so the caller sees
ansible-playbook's exit status unchanged.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import NoReturn

logger = logging.getLogger(__name__)

DEFAULT_BAF_ROOT = "~/devel/blockchain-automation-framework"
DEFAULT_INTERPRETER = "/usr/bin/python3"
EXTRA_PATH = "/root/bin"

SITE_PLAYBOOK = "platforms/shared/configuration/site.yaml"
INVENTORY_DIR = "platforms/shared/inventory/"
NETWORK_VARS = "build/networks/initial-network.yaml"
KUBECONFIG = "build/kubeconfig.yaml"


@dataclass
class PlaybookInvocation:
    """Program, arguments and environment additions for the exec."""

    argv: list[str]
    env: dict[str, str] = field(default_factory=dict)

    @property
    def program(self) -> str:
        return self.argv[0]

    def display(self) -> str:
        return " ".join(self.argv)


def build_playbook_invocation(
    baf_root: str | Path = DEFAULT_BAF_ROOT,
    interpreter: str = DEFAULT_INTERPRETER,
    environ: Mapping[str, str] | None = None,
    verbosity: str = "-vv",
) -> PlaybookInvocation:
    """Build the ansible-playbook command line and environment."""
    environ = os.environ if environ is None else environ
    root = Path(os.path.expanduser(str(baf_root)))

    argv = [
        "ansible-playbook",
        verbosity,
        str(root / SITE_PLAYBOOK),
        f"--inventory-file={root / INVENTORY_DIR}/",
        "-e", f"@{root / NETWORK_VARS}",
        "-e", f"ansible_python_interpreter={interpreter}",
    ]

    path = environ.get("PATH", "")
    env = {
        "PATH": f"{EXTRA_PATH}:{path}" if path else EXTRA_PATH,
        "KUBECONFIG": str(root / KUBECONFIG),
    }
    return PlaybookInvocation(argv=argv, env=env)


def exec_playbook(
    invocation: PlaybookInvocation,
    environ: Mapping[str, str] | None = None,
) -> NoReturn:
    """Replace the current process with ansible-playbook.

    Raises:
        OSError: If the program cannot be found or executed.
    """
    env = dict(os.environ if environ is None else environ)
    env.update(invocation.env)
    logger.info("Running the playbook: %s", invocation.display())
    os.execvpe(invocation.program, invocation.argv, env)
