"""Inclusion closure, final version reconciliation, and enablement checks."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from .models import Decision, Dependency, PluginCandidate

if TYPE_CHECKING:
    from .host import PluginHost

logger = logging.getLogger(__name__)


def newest_per_name(candidates: Iterable[PluginCandidate], host: PluginHost) -> list[PluginCandidate]:
    """Keep one candidate per short name: highest version, then first location."""
    best: dict[str, PluginCandidate] = {}
    for c in sorted(candidates, key=lambda c: c.location):
        current = best.get(c.short_name)
        if current is None or host.is_newer(c.version, current.version):
            if current is not None:
                logger.debug(
                    "%s version %s from %s supersedes version %s from %s",
                    c.short_name, c.version, c.location, current.version, current.location,
                )
            best[c.short_name] = c
    return list(best.values())


def is_superseded(candidate: PluginCandidate, host: PluginHost) -> bool:
    """An active or enabled installed plugin at the same or a newer version wins."""
    existing = host.get_plugin(candidate.short_name)
    return (
        existing is not None
        and existing.in_use
        and not host.is_newer(candidate.version, existing.version)
    )


def _needs_upgrade(dep: Dependency, host: PluginHost) -> bool:
    existing = host.get_plugin(dep.name)
    return existing is not None and existing.in_use and host.is_older(existing.version, dep.version)


def compute_inclusion(
    candidates: Iterable[PluginCandidate],
    decision_of: Callable[[PluginCandidate], Decision],
    host: PluginHost,
) -> list[PluginCandidate]:
    """Return the candidates to activate.

    Candidates already satisfied by an installed plugin are dropped first,
    then vetoed ones. Explicitly included candidates pull in their required
    dependencies, and optional ones whose installed version is too old,
    transitively.
    """
    working: dict[str, PluginCandidate] = {}
    included: set[str] = set()
    for c in candidates:
        if is_superseded(c, host):
            existing = host.get_plugin(c.short_name)
            logger.debug(
                "excluding %s version %s as version %s is already installed",
                c.short_name, c.version, existing.version if existing else "?",
            )
            continue
        decision = decision_of(c)
        if decision is Decision.EXCLUDE:
            logger.debug("excluding %s version %s based on decision from filters", c.short_name, c.version)
            continue
        working[c.short_name] = c
        if decision is Decision.INCLUDE:
            included.add(c.short_name)
    logger.debug("initial filtered set: %s", sorted(working))

    worklist = deque(sorted(included))
    while worklist:
        c = working[worklist.popleft()]
        wanted = [d.name for d in c.dependencies]
        wanted += [d.name for d in c.optional_dependencies if _needs_upgrade(d, host)]
        for name in wanted:
            if name in working and name not in included:
                logger.debug("including %s as a dependency of %s", name, c.short_name)
                included.add(name)
                worklist.append(name)

    result = [c for name, c in working.items() if name in included]
    logger.debug("after adding required dependencies: %s", [c.short_name for c in result])
    return result


def final_versions(host: PluginHost, candidates: Iterable[PluginCandidate]) -> dict[str, str]:
    """Versions expected once every candidate is active: installed, then newer candidates."""
    versions = {p.name: p.version for p in host.plugins() if p.in_use}
    for c in candidates:
        current = versions.get(c.short_name)
        if current is None or host.is_newer(c.version, current):
            versions[c.short_name] = c.version
    logger.debug("expected final plugin version map: %s", versions)
    return versions


def missing_dependencies(
    candidate: PluginCandidate, versions: dict[str, str], host: PluginHost
) -> list[Dependency]:
    """Dependencies the final version map cannot satisfy.

    An optional dependency that will not be present at all is fine.
    """
    missing = []
    for d in candidate.dependencies:
        v = versions.get(d.name)
        if v is None or host.is_older(v, d.version):
            missing.append(d)
    for d in candidate.optional_dependencies:
        v = versions.get(d.name)
        if v is not None and host.is_older(v, d.version):
            missing.append(d)
    return missing


def plugins_to_enable(
    candidates: Iterable[PluginCandidate], versions: dict[str, str], host: PluginHost
) -> set[str]:
    enable: set[str] = set()
    for c in candidates:
        missing = missing_dependencies(c, versions, host)
        if missing:
            for d in missing:
                logger.debug("%s is missing a dependency on %s version %s", c.short_name, d.name, d.version)
            logger.debug("%s cannot be enabled due to missing dependencies", c.short_name)
        else:
            logger.debug("%s can be enabled", c.short_name)
            enable.add(c.short_name)
    return enable
