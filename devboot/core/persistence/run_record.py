"""
Run record persistence — the outcome of the last convergence run.

Stored as JSON in ~/.devboot/last-run.json. Writes are atomic (write
to temp file, then rename) so an interrupted run never leaves a
half-written record.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_RECORD_DIR = ".devboot"
DEFAULT_RECORD_FILE = "last-run.json"


def default_record_path(home: Path) -> Path:
    """Get the default run record path for a user."""
    return home / DEFAULT_RECORD_DIR / DEFAULT_RECORD_FILE


def load_run_record(path: Path) -> dict | None:
    """Load the last run record.

    Returns:
        The record dict, or None if missing or unreadable.
    """
    if not path.is_file():
        logger.info("No run record at %s", path)
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.warning("Corrupt run record %s: %s", path, e)
        return None
    except OSError as e:
        logger.warning("Cannot read run record %s: %s", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Run record %s is not a JSON object", path)
        return None
    return data


def save_run_record(record: dict, path: Path) -> None:
    """Save a run record (atomic write).

    Args:
        record: JSON-serializable result dict.
        path: Target path for the record.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(record, indent=2, ensure_ascii=False) + "\n"

    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".run_",
            suffix=".tmp",
        )
        os.close(fd)
        tmp = Path(tmp_path)
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.rename(path)
            logger.debug("Run record saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except Exception as e:
        logger.error("Failed to save run record to %s: %s", path, e)
        raise
