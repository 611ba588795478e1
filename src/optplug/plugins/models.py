"""Plugin data models: Decision, Dependency, PluginManifest, PluginCandidate, InstalledPlugin."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path

ARCHIVE_EXT = ".plugin"
LEGACY_ARCHIVE_EXT = ".plg"
PIN_SUFFIX = ".pinned"
DISABLE_SUFFIX = ".disabled"


class PluginArchiveError(OSError):
    """An archive could not be read or turned into a candidate."""


class RestartRequiredError(Exception):
    """The host refuses to activate a plugin without a restart."""


class Decision(enum.Enum):
    """A filter's vote on a candidate.

    EXCLUDE is a veto, INCLUDE wins over NO_OPINION, NO_OPINION is the identity.
    """

    EXCLUDE = "exclude"
    NO_OPINION = "no_opinion"
    INCLUDE = "include"

    def combine(self, other: Decision) -> Decision:
        if self is Decision.EXCLUDE or other is Decision.EXCLUDE:
            return Decision.EXCLUDE
        if self is Decision.INCLUDE or other is Decision.INCLUDE:
            return Decision.INCLUDE
        return Decision.NO_OPINION


class DynamicLoad(enum.Enum):
    YES = "yes"
    NO = "no"
    MAYBE = "maybe"

    @classmethod
    def parse(cls, value: object) -> DynamicLoad:
        if isinstance(value, bool):
            return cls.YES if value else cls.NO
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MAYBE


@dataclass(frozen=True)
class Dependency:
    name: str
    version: str  # declared minimum


@dataclass
class PluginManifest:
    """Parsed from plugin.json inside a plugin archive."""

    name: str
    version: str = "0"
    description: str = ""
    dependencies: list[Dependency] = field(default_factory=list)
    optional_dependencies: list[Dependency] = field(default_factory=list)
    dynamic_load: DynamicLoad = DynamicLoad.MAYBE
    entry: str = ""


@dataclass
class StagedArchive:
    """A source location copied into the staging directory."""

    location: str
    path: Path
    digest: str
    length: int
    last_modified: float | None = None
    short_name: str = ""


@dataclass
class PluginCandidate:
    """A not-yet-activated plugin discovered in the current pass."""

    manifest: PluginManifest
    archive: Path
    location: str = ""

    @property
    def short_name(self) -> str:
        return self.manifest.name

    @property
    def version(self) -> str:
        return self.manifest.version

    @property
    def dependencies(self) -> list[Dependency]:
        return self.manifest.dependencies

    @property
    def optional_dependencies(self) -> list[Dependency]:
        return self.manifest.optional_dependencies

    @property
    def dynamic_load(self) -> DynamicLoad:
        return self.manifest.dynamic_load

    def __repr__(self) -> str:
        return f"{self.short_name}@{self.version}"


@dataclass
class InstalledPlugin:
    """Read-only view of a plugin the host already knows about."""

    name: str
    version: str
    active: bool = False
    enabled: bool = True
    pinned: bool = False
    dependencies: list[Dependency] = field(default_factory=list)
    archive: Path | None = None

    @property
    def in_use(self) -> bool:
        return self.active or self.enabled


def archive_name(short_name: str, ext: str = ARCHIVE_EXT) -> str:
    return f"{short_name}{ext}"
