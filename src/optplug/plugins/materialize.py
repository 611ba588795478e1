"""Materializer: write candidate archives and their marker files into the plugin directory."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .models import ARCHIVE_EXT, DISABLE_SUFFIX, LEGACY_ARCHIVE_EXT, PIN_SUFFIX, PluginCandidate, archive_name

if TYPE_CHECKING:
    from .host import PluginHost

logger = logging.getLogger(__name__)


@dataclass
class MaterializeResult:
    """What a materialization pass left behind."""

    ready: dict[str, Path] = field(default_factory=dict)  # name -> archive, eligible for hot load
    written: list[str] = field(default_factory=list)
    restart_required: bool = False


def _rename_legacy(legacy: Path, current: Path) -> None:
    if not legacy.exists():
        return
    if current.exists():
        logger.debug("leaving legacy %s in place as %s already exists", legacy.name, current.name)
        return
    try:
        legacy.rename(current)
    except OSError:
        logger.warning("could not move legacy %s to %s", legacy, current, exc_info=True)


def normalize_legacy(plugins_dir: Path, short_name: str) -> None:
    """Move ``name.plg`` and its marker files to the current extension."""
    legacy = plugins_dir / archive_name(short_name, LEGACY_ARCHIVE_EXT)
    current = plugins_dir / archive_name(short_name, ARCHIVE_EXT)
    for suffix in ("", PIN_SUFFIX, DISABLE_SUFFIX):
        _rename_legacy(Path(f"{legacy}{suffix}"), Path(f"{current}{suffix}"))


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def _write_archive(candidate: PluginCandidate, target: Path, declared: float | None) -> bool:
    try:
        shutil.copyfile(candidate.archive, target)
    except OSError:
        logger.warning("could not write %s", target.name, exc_info=True)
        return False
    if declared is not None:
        # reused as a change-detection key across restarts
        try:
            os.utime(target, (declared, declared))
        except OSError:
            logger.warning("could not set last modified timestamp on %s", target.name)
    return True


def _set_disabled(marker: Path, disabled: bool, short_name: str) -> None:
    try:
        if disabled:
            if not marker.exists():
                marker.touch()
        else:
            marker.unlink(missing_ok=True)
    except OSError:
        logger.warning("could not update disabled flag for %s", short_name, exc_info=True)


def materialize(
    candidates: list[PluginCandidate], enable: set[str], host: PluginHost
) -> MaterializeResult:
    """Write each candidate to ``<plugins_dir>/<name>.plugin``.

    A pin marker freezes an existing file. Candidates that cannot be enabled
    are still written, with a ``.disabled`` marker beside them.
    """
    result = MaterializeResult()
    plugins_dir = Path(host.plugins_dir)
    plugins_dir.mkdir(parents=True, exist_ok=True)

    for c in candidates:
        name = c.short_name
        existing = host.get_plugin(name)
        if existing is not None and existing.active:
            if not host.is_newer(c.version, existing.version) and not host.is_older(c.version, existing.version):
                logger.debug("ignoring installing plugin %s as current version is desired", name)
                continue
            if host.is_newer(existing.version, c.version):
                logger.info(
                    "ignoring installing plugin %s as current version %s is newer than bundled version %s",
                    name, existing.version, c.version,
                )
                continue
            if existing.pinned:
                logger.info(
                    "not replacing pinned plugin %s %s with %s, restart required once unpinned",
                    name, existing.version, c.version,
                )
                result.restart_required = True
                continue
            logger.info("restart required as plugin %s is already installed", name)
            result.restart_required = True

        normalize_legacy(plugins_dir, name)
        target = plugins_dir / archive_name(name)
        pin_marker = Path(f"{target}{PIN_SUFFIX}")
        disable_marker = Path(f"{target}{DISABLE_SUFFIX}")

        declared = _mtime(c.archive)
        current = _mtime(target)
        wrote = False
        if current is None or (current != declared and not pin_marker.exists()):
            wrote = _write_archive(c, target, declared)
            if wrote:
                result.written.append(name)
        in_place = wrote or (current is not None and current == declared)

        enabled = name in enable
        _set_disabled(disable_marker, not enabled, name)

        if in_place and enabled and not (existing is not None and existing.active):
            result.ready[name] = target

    logger.debug("materialized %s, ready for loading %s", result.written, sorted(result.ready))
    return result
