"""
Configuration loader — reads bootstrap.yml into a BootstrapConfig.

The file is optional: without one, the pinned defaults apply. Paths
that depend on the invoking user (home, repository root) are filled
in from the environment when the file does not set them.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from devboot.core.models.config import BootstrapConfig

logger = logging.getLogger(__name__)

# Default config filename
BOOTSTRAP_CONFIG_FILE = "bootstrap.yml"

# Repository root override (the shared folder in the VM)
REPO_ROOT_ENV_VAR = "AUTO_OPS"
DEFAULT_REPO_ROOT = "/vagrant"


class ConfigError(Exception):
    """Raised when bootstrap configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for bootstrap.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to bootstrap.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / BOOTSTRAP_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _read_yaml(path: Path) -> dict:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading bootstrap config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    search: bool = True,
) -> BootstrapConfig:
    """Load and validate bootstrap configuration.

    Args:
        path: Explicit path to bootstrap.yml. Must exist when given.
        environ: Environment to read HOME / AUTO_OPS from (default: os.environ).
        search: When no path is given, look for bootstrap.yml upward from cwd.

    Returns:
        Validated BootstrapConfig.

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    environ = os.environ if environ is None else environ

    if path is None and search:
        path = find_config_file()

    data: dict = _read_yaml(path) if path is not None else {}

    paths = data.get("paths") or {}
    if not isinstance(paths, dict):
        raise ConfigError(f"'paths' must be a mapping in {path}")
    paths.setdefault("repo_root", environ.get(REPO_ROOT_ENV_VAR) or DEFAULT_REPO_ROOT)
    if environ.get("HOME"):
        paths.setdefault("home", environ["HOME"])
    data["paths"] = paths

    if path is not None:
        data["source"] = str(path)

    try:
        config = BootstrapConfig.model_validate(data)
    except ValidationError as e:
        where = f" in {path}" if path is not None else ""
        raise ConfigError(f"Invalid bootstrap configuration{where}: {e}") from e

    logger.info(
        "Bootstrap config: ansible %s (%s), sandbox %s",
        config.versions.ansible,
        config.versions.install_path.value,
        config.paths.sandbox,
    )
    return config
