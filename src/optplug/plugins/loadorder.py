"""Load ordering and best-effort hot loading of freshly materialized plugins."""

from __future__ import annotations

import heapq
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from .models import DynamicLoad, PluginCandidate, RestartRequiredError

if TYPE_CHECKING:
    from .host import PluginHost

logger = logging.getLogger(__name__)


class CycleError(ValueError):
    """The dependency graph among the plugins to load has a cycle."""

    def __init__(self, members: list[str]):
        self.members = members
        super().__init__(f"cyclic reference detected amongst plugins: {', '.join(members)}")


def can_hot_load(candidates: list[PluginCandidate], host: PluginHost) -> bool:
    """False when activation needs a restart whatever the load order."""
    feasible = True
    for c in candidates:
        existing = host.get_plugin(c.short_name)
        if existing is not None and existing.in_use and not existing.pinned:
            logger.info(
                "cannot dynamically load optional plugins because %s is already installed",
                existing.name,
            )
            feasible = False
        elif c.dynamic_load is DynamicLoad.NO:
            logger.info(
                "cannot dynamically load optional plugins because %s does not support dynamic load",
                c.short_name,
            )
            feasible = False
    return feasible


def load_order(graph: dict[str, list[str]]) -> list[str]:
    """Topologically sort *graph* (name -> names it depends on), dependencies first.

    Edges to names outside the graph are ignored. Raises CycleError.
    """
    names = sorted(graph)
    index = {name: i for i, name in enumerate(names)}
    dependents: list[list[int]] = [[] for _ in names]
    indegree = [0] * len(names)
    for name in names:
        i = index[name]
        for dep in set(graph[name]):
            j = index.get(dep)
            if j is None:
                continue
            dependents[j].append(i)
            indegree[i] += 1

    ready = [i for i, d in enumerate(indegree) if d == 0]
    heapq.heapify(ready)
    order: list[int] = []
    while ready:
        i = heapq.heappop(ready)
        order.append(i)
        for k in dependents[i]:
            indegree[k] -= 1
            if indegree[k] == 0:
                heapq.heappush(ready, k)

    if len(order) != len(names):
        raise CycleError([names[i] for i, d in enumerate(indegree) if d > 0])
    return [names[i] for i in order]


def dependency_graph(candidates: list[PluginCandidate]) -> dict[str, list[str]]:
    """Required and optional edges restricted to *candidates* themselves."""
    present = {c.short_name for c in candidates}
    return {
        c.short_name: [
            d.name for d in c.dependencies + c.optional_dependencies if d.name in present
        ]
        for c in candidates
    }


def hot_load_all(order: list[str], archives: dict[str, Path], host: PluginHost) -> bool:
    """Load each plugin in turn; stop at the first failure.

    Returns True if a restart is required. Plugins loaded before a failure stay loaded.
    """
    logger.info("starting dynamic loading of optional plugins")
    restart_required = False
    for name in order:
        archive = archives[name]
        try:
            host.hot_load(archive)
        except InterruptedError:
            logger.warning("interrupted while trying to dynamic load plugin %s", name, exc_info=True)
            restart_required = True
            break
        except OSError:
            logger.warning("failed to dynamic load plugin %s", name, exc_info=True)
            restart_required = True
            break
        except RestartRequiredError:
            logger.warning("plugin %s does not support dynamic loading", name, exc_info=True)
            restart_required = True
            break
    logger.info(
        "finished dynamic loading of optional plugins, restart required %s", restart_required
    )
    return restart_required
