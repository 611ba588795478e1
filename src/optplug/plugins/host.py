"""Host services: archive wrapping, installed-plugin registry, hot loading."""

from __future__ import annotations

import importlib
import json
import logging
import sys
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path

from . import versions
from .models import (
    ARCHIVE_EXT,
    DISABLE_SUFFIX,
    PIN_SUFFIX,
    Dependency,
    DynamicLoad,
    InstalledPlugin,
    PluginArchiveError,
    PluginCandidate,
    PluginManifest,
    RestartRequiredError,
)

logger = logging.getLogger(__name__)

MANIFEST_NAME = "plugin.json"


class PluginHost(ABC):
    """What the resolver needs from the application it extends."""

    plugins_dir: Path

    @abstractmethod
    def wrap(self, archive: Path) -> PluginCandidate:
        """Read *archive* into a candidate. Raises OSError."""

    def short_name(self, archive: Path) -> str:
        return self.wrap(archive).short_name

    @abstractmethod
    def get_plugin(self, name: str) -> InstalledPlugin | None:
        ...

    @abstractmethod
    def plugins(self) -> list[InstalledPlugin]:
        ...

    @abstractmethod
    def hot_load(self, archive: Path) -> None:
        """Activate *archive* in the running host.

        Raises OSError (including InterruptedError) or RestartRequiredError.
        """

    def is_newer(self, a: str, b: str) -> bool:
        return versions.is_newer(a, b)

    def is_older(self, a: str, b: str) -> bool:
        return versions.is_older(a, b)


# ── Manifest parsing ────────────────────────────────────────────────


def _parse_dependency(raw: object) -> tuple[Dependency, bool] | None:
    """Accept ``{"name", "version", "optional"}`` or ``name:version[;resolution:=optional]``."""
    if isinstance(raw, dict):
        name = str(raw.get("name", "")).strip()
        if not name:
            return None
        return Dependency(name, str(raw.get("version", "0"))), bool(raw.get("optional", False))
    if isinstance(raw, str):
        spec, _, flags = raw.partition(";")
        name, _, version = spec.partition(":")
        if not name.strip():
            return None
        optional = "resolution:=optional" in flags.replace(" ", "")
        return Dependency(name.strip(), version.strip() or "0"), optional
    return None


def parse_manifest(data: dict) -> PluginManifest:
    name = str(data.get("name", "")).strip()
    if not name:
        raise ValueError("plugin.json: missing required field 'name'")
    required: list[Dependency] = []
    optional: list[Dependency] = []
    raw_deps = data.get("dependencies", [])
    if isinstance(raw_deps, str):
        raw_deps = [d for d in raw_deps.split(",") if d.strip()]
    for raw in raw_deps if isinstance(raw_deps, list) else []:
        parsed = _parse_dependency(raw)
        if parsed is None:
            continue
        dep, is_optional = parsed
        (optional if is_optional else required).append(dep)
    return PluginManifest(
        name=name,
        version=str(data.get("version", "0")) or "0",
        description=str(data.get("description", "")),
        dependencies=required,
        optional_dependencies=optional,
        dynamic_load=DynamicLoad.parse(data.get("dynamicLoad", "maybe")),
        entry=str(data.get("entry", "")),
    )


def read_manifest(archive: Path) -> PluginManifest:
    """Read plugin.json from a zip archive. Raises PluginArchiveError."""
    try:
        with zipfile.ZipFile(archive) as zf:
            data = json.loads(zf.read(MANIFEST_NAME).decode("utf-8"))
    except KeyError as e:
        raise PluginArchiveError(f"{archive}: no {MANIFEST_NAME} in archive") from e
    except (zipfile.BadZipFile, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PluginArchiveError(f"{archive}: {e}") from e
    if not isinstance(data, dict):
        raise PluginArchiveError(f"{archive}: {MANIFEST_NAME} is not an object")
    try:
        return parse_manifest(data)
    except ValueError as e:
        raise PluginArchiveError(f"{archive}: {e}") from e


# ── Local host ──────────────────────────────────────────────────────


class LocalHost(PluginHost):
    """A host whose plugins are zip archives in one directory.

    The installed registry is read once, at construction, which stands for the
    application's startup: every enabled archive found then counts as active.
    Afterwards the registry only changes through hot_load().
    """

    def __init__(self, plugins_dir: Path):
        self.plugins_dir = Path(plugins_dir)
        self._plugins: dict[str, InstalledPlugin] = {}
        self._scan()

    def _scan(self) -> None:
        if not self.plugins_dir.is_dir():
            return
        for archive in sorted(self.plugins_dir.glob(f"*{ARCHIVE_EXT}")):
            if not archive.is_file():
                continue
            try:
                manifest = read_manifest(archive)
            except PluginArchiveError as e:
                logger.warning("skipping installed archive: %s", e)
                continue
            enabled = not Path(f"{archive}{DISABLE_SUFFIX}").exists()
            self._plugins[manifest.name] = InstalledPlugin(
                name=manifest.name,
                version=manifest.version,
                active=enabled,
                enabled=enabled,
                pinned=Path(f"{archive}{PIN_SUFFIX}").exists(),
                dependencies=manifest.dependencies + manifest.optional_dependencies,
                archive=archive,
            )

    def wrap(self, archive: Path) -> PluginCandidate:
        return PluginCandidate(manifest=read_manifest(archive), archive=Path(archive))

    def get_plugin(self, name: str) -> InstalledPlugin | None:
        return self._plugins.get(name)

    def plugins(self) -> list[InstalledPlugin]:
        return list(self._plugins.values())

    def hot_load(self, archive: Path) -> None:
        manifest = read_manifest(archive)
        if manifest.dynamic_load is DynamicLoad.NO:
            raise RestartRequiredError(f"{manifest.name} does not support dynamic loading")
        if manifest.entry:
            entry_path = str(archive)
            if entry_path not in sys.path:
                sys.path.insert(0, entry_path)
            # drop any earlier copy so an upgraded archive at the same path is re-read
            sys.modules.pop(manifest.entry, None)
            importlib.invalidate_caches()
            try:
                module = importlib.import_module(manifest.entry)
                activate = getattr(module, "activate", None)
                if callable(activate):
                    activate()
            except Exception as e:
                raise PluginArchiveError(f"{archive}: cannot activate {manifest.entry}: {e}") from e
        deps = manifest.dependencies + manifest.optional_dependencies
        self._plugins[manifest.name] = InstalledPlugin(
            name=manifest.name,
            version=manifest.version,
            active=True,
            enabled=True,
            pinned=Path(f"{archive}{PIN_SUFFIX}").exists(),
            dependencies=deps,
            archive=Path(archive),
        )
        logger.debug("hot loaded %s version %s", manifest.name, manifest.version)
