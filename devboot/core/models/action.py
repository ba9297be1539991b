"""
Receipt model — the command execution contract.

Runners execute commands and return Receipts. A nonzero exit is a
failed Receipt, never an exception; the convergence stages decide
which failures are fatal.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Receipt(BaseModel):
    """Result of one command execution."""

    command: list[str] = Field(default_factory=list)
    status: Literal["ok", "failed"] = "ok"
    return_code: int | None = None

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the command failed."""
        return self.status == "failed"

    @property
    def display(self) -> str:
        """The command as a single printable line."""
        return " ".join(self.command)

    @classmethod
    def success(cls, command: list[str], stdout: str = "", **kwargs: Any) -> Receipt:
        """Create a success receipt."""
        return cls(command=command, status="ok", return_code=0, stdout=stdout, **kwargs)

    @classmethod
    def failure(cls, command: list[str], error: str, **kwargs: Any) -> Receipt:
        """Create a failure receipt."""
        return cls(command=command, status="failed", error=error, **kwargs)
