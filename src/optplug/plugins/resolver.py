"""PluginResolver: decide which optional plugins to activate, and activate them."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from .closure import compute_inclusion, final_versions, newest_per_name, plugins_to_enable
from .filters import NameFilter, PluginFilter, decide
from .host import LocalHost, PluginHost
from .loadorder import CycleError, can_hot_load, dependency_graph, hot_load_all, load_order
from .materialize import materialize
from .models import Decision, PluginCandidate
from .sources import DirectorySource, PluginSource, UrlListSource, all_plugins
from .stager import PluginStager

if TYPE_CHECKING:
    from optplug.core.config import Config

logger = logging.getLogger(__name__)


class PluginResolver:
    """Owns the staging cache for as long as the host process runs.

    Create one per host at startup and call close() at shutdown; refresh() may
    be called any number of times in between.
    """

    def __init__(
        self,
        host: PluginHost | None,
        sources: list[PluginSource],
        filters: list[PluginFilter],
        staging_dir: Path,
    ):
        self.host = host
        self.sources = list(sources)
        self.filters = list(filters)
        self.staging_dir = Path(staging_dir)
        self.stager = PluginStager(host, self.staging_dir) if host is not None else None

    def close(self) -> None:
        if self.stager is not None:
            self.stager.clear()

    def __enter__(self) -> PluginResolver:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _decision(self, candidate: PluginCandidate) -> Decision:
        return decide(self.filters, candidate, candidate.archive)

    def list_candidates(self) -> list[PluginCandidate]:
        """Stage every source's plugins and wrap them, one per short name."""
        host = self.host
        if host is None or self.stager is None:
            return []
        candidates = []
        for staged in self.stager.stage(all_plugins(self.sources)):
            try:
                candidate = host.wrap(staged.path)
            except OSError:
                logger.warning("IO exception processing %s", staged.path, exc_info=True)
                continue
            candidate.location = staged.location
            candidates.append(candidate)
        return newest_per_name(candidates, host)

    def refresh(self) -> bool:
        """Re-examine every source and activate whatever the filters let through.

        Returns True if a restart is required to complete activation, False if
        nothing changed or every new plugin was loaded dynamically.
        """
        host = self.host
        if host is None:
            return False

        logger.debug("enumerating available optional plugins and filtering to determine set for activation")
        included = compute_inclusion(self.list_candidates(), self._decision, host)
        if not included:
            logger.debug("no new optional plugins to install")
            return False

        logger.debug("checking if dynamic loading of plugins is possible")
        feasible = can_hot_load(included, host)
        versions = final_versions(host, included)
        enable = plugins_to_enable(included, versions, host)
        result = materialize(included, enable, host)
        if not feasible or result.restart_required:
            return True

        to_load = [c for c in included if c.short_name in result.ready]
        if not to_load:
            return False
        try:
            order = load_order(dependency_graph(to_load))
        except CycleError as e:
            logger.warning("%s; leaving them for the next restart", e)
            return True
        logger.debug("sorted plugin load order: %s", order)
        return hot_load_all(order, result.ready, host)


def build_sources(config: Config) -> list[PluginSource]:
    sources: list[PluginSource] = []
    urls: list[str] = []
    for entry in config.sources:
        path = Path(entry).expanduser()
        if "://" not in entry and path.is_dir():
            sources.append(DirectorySource(path))
        else:
            urls.append(entry)
    if urls:
        sources.append(UrlListSource(urls))
    return sources


def build_resolver(config: Config, host: PluginHost | None = None) -> PluginResolver:
    """Wire a resolver from settings: LocalHost, configured sources, a NameFilter."""
    if host is None:
        host = LocalHost(config.plugins_dir)
    filters: list[PluginFilter] = []
    if config.include or config.exclude:
        filters.append(NameFilter(config.include, config.exclude))
    return PluginResolver(host, build_sources(config), filters, config.staging_dir)
