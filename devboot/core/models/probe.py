"""
Probe result — the outcome of a best-effort check.

A probe either yields a value or is absent. There is no implicit
default: callers state their fallback at the call site with
``or_else``, so every swallowed failure is visible in the code.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProbeResult:
    """Value-or-absent result of a best-effort probe."""

    value: str | None = None
    reason: str = ""

    @classmethod
    def found(cls, value: str) -> ProbeResult:
        return cls(value=value)

    @classmethod
    def absent(cls, reason: str = "") -> ProbeResult:
        return cls(value=None, reason=reason)

    @property
    def ok(self) -> bool:
        return self.value is not None

    def or_else(self, fallback: str) -> str:
        """Return the probed value, or ``fallback`` when absent."""
        return self.value if self.value is not None else fallback
