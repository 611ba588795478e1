"""Plugin filters: votes on whether a candidate should be activated."""

from __future__ import annotations

import fnmatch
import logging
from abc import ABC, abstractmethod
from functools import reduce
from pathlib import Path

from optplug.core.utils import call_collaborator

from .models import Decision, PluginCandidate

logger = logging.getLogger(__name__)


class PluginFilter(ABC):
    """Votes INCLUDE, EXCLUDE or NO_OPINION on a candidate."""

    @abstractmethod
    def make_decision(self, candidate: PluginCandidate, archive: Path) -> Decision:
        ...


def _vote(f: PluginFilter, candidate: PluginCandidate, archive: Path) -> Decision:
    result = call_collaborator(
        f.make_decision,
        candidate,
        archive,
        default=Decision.NO_OPINION,
        what=f"optional plugin filter {f!r}",
    )
    if not isinstance(result, Decision):
        logger.warning("optional plugin filter %r returned %r, treating as no opinion", f, result)
        return Decision.NO_OPINION
    return result


def decide(filters: list[PluginFilter], candidate: PluginCandidate, archive: Path) -> Decision:
    """Fold every filter's vote. No filters at all means NO_OPINION."""
    votes = (_vote(f, candidate, archive) for f in filters)
    return reduce(Decision.combine, votes, Decision.NO_OPINION)


class NameFilter(PluginFilter):
    """Include/exclude by shell-style patterns on the short name."""

    def __init__(self, include: list[str] | None = None, exclude: list[str] | None = None):
        self.include = list(include or [])
        self.exclude = list(exclude or [])

    @staticmethod
    def _matches(name: str, patterns: list[str]) -> bool:
        return any(fnmatch.fnmatchcase(name, p) for p in patterns)

    def make_decision(self, candidate: PluginCandidate, archive: Path) -> Decision:
        if self._matches(candidate.short_name, self.exclude):
            return Decision.EXCLUDE
        if self._matches(candidate.short_name, self.include):
            return Decision.INCLUDE
        return Decision.NO_OPINION

    def __repr__(self) -> str:
        return f"NameFilter(include={self.include!r}, exclude={self.exclude!r})"
