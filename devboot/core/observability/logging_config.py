"""
Logging configuration — one setup call at CLI start.

Every module logs through ``logging.getLogger(__name__)``; runners log
each command they execute at INFO (``$ apt-get update``), stages log
their progress at INFO and problems at WARNING/ERROR.

Console level, in precedence order:
    --debug / --verbose / --quiet  >  DEVBOOT_LOG_LEVEL  >  WARNING

A convergence run is long and mostly subprocess time. Setting
DEVBOOT_LOG_FILE keeps a trace of every command regardless of the
console level (DEVBOOT_LOG_FILE_LEVEL, default DEBUG).
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping

LEVEL_ENV_VAR = "DEVBOOT_LOG_LEVEL"
FILE_ENV_VAR = "DEVBOOT_LOG_FILE"
FILE_LEVEL_ENV_VAR = "DEVBOOT_LOG_FILE_LEVEL"

_DATEFMT_SHORT = "%H:%M:%S"
_DATEFMT_LONG = "%Y-%m-%d %H:%M:%S"

# (threshold, format, datefmt); first threshold >= level wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", _DATEFMT_SHORT),
    (logging.INFO, "%(asctime)s %(message)s", _DATEFMT_SHORT),
    (logging.CRITICAL, "%(message)s", None),
)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s  %(message)s"

# apt/pip progress is already in the command output
_NOISY_LOGGERS = ("urllib3", "asyncio")


def parse_level(level: str | None, default: int = logging.WARNING) -> int:
    """Level name to its numeric constant; unknown names give ``default``."""
    if not level:
        return default
    numeric = getattr(logging, level.upper(), None)
    return numeric if isinstance(numeric, int) else default


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Console level name from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return (environ or {}).get(LEVEL_ENV_VAR) or "WARNING"


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = next(
        ((f, d) for threshold, f, d in _CONSOLE_FORMATS if level <= threshold),
        _CONSOLE_FORMATS[-1][1:],
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATEFMT_LONG))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name.
        log_file: Optional trace file, appended to.
        log_file_level: Level for the trace file (default: DEBUG).
        quiet_third_party: Hold noisy library loggers at WARNING
            unless the console is at DEBUG.
    """
    console_level = parse_level(level)
    handlers = [_console_handler(console_level)]

    if log_file:
        handlers.append(_file_handler(log_file, parse_level(log_file_level, default=logging.DEBUG)))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # A broken log file must not abort a half-converged host
    logging.raiseExceptions = False
