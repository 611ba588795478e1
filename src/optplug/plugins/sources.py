"""Plugin sources: where optional plugin archives come from."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from optplug.core.utils import call_collaborator

from .models import ARCHIVE_EXT, LEGACY_ARCHIVE_EXT

logger = logging.getLogger(__name__)


class PluginSource(ABC):
    """A provider of optional plugin locations (URLs or filesystem paths)."""

    @abstractmethod
    def list_plugins(self) -> list[str]:
        """Return the locations of every plugin archive this source offers."""


def canonical_location(location: str) -> str:
    """Plain filesystem paths become ``file://`` URIs; URLs pass through."""
    location = location.strip()
    if "://" in location:
        return location
    return Path(location).expanduser().resolve().as_uri()


def _listed(source: PluginSource) -> list:
    return list(source.list_plugins() or [])


def all_plugins(sources: list[PluginSource]) -> list[str]:
    """Aggregate every source's locations, de-duplicated, in discovery order.

    A source that raises contributes nothing; the others still count.
    """
    seen: dict[str, None] = {}
    for src in sources:
        locations = call_collaborator(
            _listed,
            src,
            default=[],
            what=f"optional plugin source {src!r}",
        )
        for location in locations:
            if location is None:
                logger.error("optional plugin source %r returned None in its plugin list", src)
                continue
            if not isinstance(location, str):
                logger.error(
                    "optional plugin source %r returned a %s where only strings are expected",
                    src,
                    type(location).__name__,
                )
                continue
            seen.setdefault(canonical_location(location), None)
    return list(seen)


def _is_archive_name(name: str) -> bool:
    lower = name.lower()
    return lower.endswith(ARCHIVE_EXT) or lower.endswith(LEGACY_ARCHIVE_EXT)


class DirectorySource(PluginSource):
    """Every archive file directly inside one directory."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def list_plugins(self) -> list[str]:
        if not self.path.is_dir():
            return []
        return [
            p.resolve().as_uri()
            for p in sorted(self.path.iterdir())
            if p.is_file() and _is_archive_name(p.name)
        ]

    def __repr__(self) -> str:
        return f"DirectorySource({str(self.path)!r})"


class UrlListSource(PluginSource):
    """A fixed list of locations, typically from settings.json."""

    def __init__(self, urls: list[str]):
        self.urls = list(urls)

    def list_plugins(self) -> list[str]:
        return [canonical_location(u) for u in self.urls if u and u.strip()]

    def __repr__(self) -> str:
        return f"UrlListSource({len(self.urls)} url(s))"
