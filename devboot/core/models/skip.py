"""
Skip set — opt-out tokens read from ``BOOTSTRAP_SKIP``.

Used when developing the bootstrap itself, to bypass stages whose
"already installed" check would be too hard to make idempotent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SKIP_ENV_VAR = "BOOTSTRAP_SKIP"

SKIP_PYTHON = "python"
SKIP_VENV = "venv"
KNOWN_TOKENS = frozenset({SKIP_PYTHON, SKIP_VENV})


@dataclass(frozen=True)
class SkipSet:
    """Set of stage names to bypass."""

    tokens: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def parse(cls, value: str | None) -> SkipSet:
        """Parse a space-separated token list."""
        tokens = frozenset((value or "").split())
        unknown = sorted(tokens - KNOWN_TOKENS)
        if unknown:
            logger.warning(
                "Ignoring unknown %s token(s): %s", SKIP_ENV_VAR, ", ".join(unknown)
            )
        return cls(tokens=tokens)

    @classmethod
    def from_env(cls, environ: dict[str, str]) -> SkipSet:
        return cls.parse(environ.get(SKIP_ENV_VAR))

    def skips(self, token: str) -> bool:
        return token in self.tokens

    def __bool__(self) -> bool:
        return bool(self.tokens)

    def to_list(self) -> list[str]:
        return sorted(self.tokens)
