"""Version numbers: dotted numeric components with an optional qualifier."""

from __future__ import annotations

import re
from functools import total_ordering

_NUMERIC = re.compile(r"^\d+$")


@total_ordering
class VersionNumber:
    """Comparable version such as ``1.2``, ``2.0.1`` or ``1.5-beta-2``.

    Trailing zero components are insignificant, so ``1.0 == 1``. A qualified
    version sorts before the same unqualified one (``1.0-beta < 1.0``).
    Non-numeric components sort after numeric ones and compare as text.
    """

    def __init__(self, raw: str):
        self.raw = str(raw or "0").strip()
        core, _, qualifier = self.raw.partition("-")
        parts: list[tuple[int, int | str]] = []
        for piece in core.split("."):
            piece = piece.strip()
            if _NUMERIC.match(piece):
                parts.append((0, int(piece)))
            elif piece:
                parts.append((1, piece.lower()))
        while parts and parts[-1] == (0, 0):
            parts.pop()
        self._parts = tuple(parts)
        self._qualifier = qualifier.lower()

    def _key(self) -> tuple:
        # an empty qualifier (a release) outranks any qualifier
        return (self._parts, self._qualifier == "", self._qualifier)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionNumber):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: VersionNumber) -> bool:
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return f"VersionNumber({self.raw!r})"

    def __str__(self) -> str:
        return self.raw


def is_newer(a: str, b: str) -> bool:
    """True if version *a* is strictly newer than *b*."""
    return VersionNumber(a) > VersionNumber(b)


def is_older(a: str, b: str) -> bool:
    """True if version *a* is strictly older than *b*."""
    return VersionNumber(a) < VersionNumber(b)
