"""Shared helpers: plugin archive builder and an in-memory host."""

import json
import sys
import zipfile
from pathlib import Path

import pytest

from optplug.plugins.host import PluginHost, read_manifest
from optplug.plugins.models import (
    Dependency,
    InstalledPlugin,
    PluginCandidate,
    PluginManifest,
    RestartRequiredError,
)


def make_archive(
    directory: Path,
    name: str,
    version: str = "1.0",
    deps: list[str] | None = None,
    optional: list[str] | None = None,
    filename: str | None = None,
    files: dict[str, str] | None = None,
    **extra,
) -> Path:
    """Write a zip plugin archive; deps are ``name:version`` strings."""
    directory.mkdir(parents=True, exist_ok=True)
    manifest = {"name": name, "version": version, "dependencies": []}
    for d in deps or []:
        manifest["dependencies"].append(d)
    for d in optional or []:
        manifest["dependencies"].append(f"{d};resolution:=optional")
    manifest.update(extra)
    path = directory / (filename or f"{name}.plugin")
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("plugin.json", json.dumps(manifest))
        for arcname, content in (files or {}).items():
            zf.writestr(arcname, content)
    return path


def candidate(name, version="1.0", deps=(), optional=(), location=""):
    """A PluginCandidate without an archive on disk."""
    manifest = PluginManifest(
        name=name,
        version=version,
        dependencies=[Dependency(*d.split(":")) for d in deps],
        optional_dependencies=[Dependency(*d.split(":")) for d in optional],
    )
    return PluginCandidate(manifest=manifest, archive=Path(f"/nonexistent/{name}.plugin"), location=location)


class FakeHost(PluginHost):
    """Installed registry in memory; wrap() reads real archives."""

    def __init__(self, plugins_dir: Path, installed: list[InstalledPlugin] | None = None):
        self.plugins_dir = plugins_dir
        self.installed = {p.name: p for p in installed or []}
        self.loaded: list[str] = []
        self.fail_on: dict[str, Exception] = {}

    def wrap(self, archive):
        return PluginCandidate(manifest=read_manifest(archive), archive=Path(archive))

    def get_plugin(self, name):
        return self.installed.get(name)

    def plugins(self):
        return list(self.installed.values())

    def hot_load(self, archive):
        manifest = read_manifest(archive)
        if manifest.name in self.fail_on:
            raise self.fail_on[manifest.name]
        self.loaded.append(manifest.name)
        self.installed[manifest.name] = InstalledPlugin(
            name=manifest.name, version=manifest.version, active=True
        )


@pytest.fixture
def host(tmp_path):
    return FakeHost(tmp_path / "plugins")


@pytest.fixture
def restart_error():
    return RestartRequiredError("needs restart")


@pytest.fixture
def clean_imports(monkeypatch):
    monkeypatch.setattr(sys, "path", list(sys.path))
    before = set(sys.modules)
    yield
    for name in set(sys.modules) - before:
        sys.modules.pop(name, None)
