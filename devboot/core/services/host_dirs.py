"""
Host directories — fact cache and per-user credential directories.
"""

from __future__ import annotations

import getpass
import logging
from collections.abc import Mapping
from pathlib import Path

from devboot.adapters.base import CommandRunner
from devboot.core.errors import VerificationError
from devboot.core.services.bootstrap_common import require

logger = logging.getLogger(__name__)

STEP = "host-dirs"

DIR_MODE = 0o755


def prepare_fact_cache(
    runner: CommandRunner,
    cache: Path,
    env: Mapping[str, str],
    user: str | None = None,
) -> None:
    """Create the shared Ansible fact cache, owned by the invoking user.

    Raises:
        VerificationError: If the cache is not writable afterwards.
    """
    user = user or env.get("USER") or getpass.getuser()
    require(runner.run(["mkdir", "-p", str(cache)], sudo=True, env=env), STEP)
    require(runner.run(["chown", f"{user}:", str(cache)], sudo=True, env=env), STEP)

    testfile = cache / "testfile"
    try:
        testfile.touch()
        testfile.unlink()
    except OSError as e:
        raise VerificationError(f"Ansible fact cache {cache} is not writable: {e}") from e


def prepare_home_dirs(home: Path) -> list[Path]:
    """Create ~/.aws and ~/.ssh/regn, mode 755.

    Raises:
        VerificationError: If a directory cannot be created or chmodded.
    """
    aws = home / ".aws"
    ssh = home / ".ssh"
    regn = ssh / "regn"

    dirs = [aws, ssh, regn]
    try:
        aws.mkdir(parents=True, exist_ok=True)
        regn.mkdir(parents=True, exist_ok=True)
        for d in dirs:
            d.chmod(DIR_MODE)
    except OSError as e:
        raise VerificationError(f"Cannot prepare {home} credential directories: {e}") from e
    logger.debug("Prepared %s", ", ".join(str(d) for d in dirs))
    return dirs
