"""Plugins: optional plugin discovery, filtering, materialization and hot loading."""

from .filters import NameFilter, PluginFilter, decide
from .host import LocalHost, PluginHost, read_manifest
from .models import (
    Decision,
    Dependency,
    DynamicLoad,
    InstalledPlugin,
    PluginArchiveError,
    PluginCandidate,
    PluginManifest,
    RestartRequiredError,
    StagedArchive,
)
from .resolver import PluginResolver, build_resolver
from .sources import DirectorySource, PluginSource, UrlListSource, all_plugins

__all__ = [
    "Decision",
    "Dependency",
    "DirectorySource",
    "DynamicLoad",
    "InstalledPlugin",
    "LocalHost",
    "NameFilter",
    "PluginArchiveError",
    "PluginCandidate",
    "PluginFilter",
    "PluginHost",
    "PluginManifest",
    "PluginResolver",
    "PluginSource",
    "RestartRequiredError",
    "StagedArchive",
    "UrlListSource",
    "all_plugins",
    "build_resolver",
    "decide",
    "read_manifest",
]
