"""Candidate stager: copy source locations into a local, content-checked cache."""

from __future__ import annotations

import hashlib
import http.client
import logging
import os
import threading
import urllib.error
import urllib.parse
import urllib.request
from email.utils import parsedate_to_datetime
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from optplug.core.utils import CHUNK_SIZE, digest_of_file, digest_of_string

from .models import ARCHIVE_EXT, StagedArchive

if TYPE_CHECKING:
    from .host import PluginHost

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 60


def _declared_length(headers) -> int:
    try:
        return int(headers.get("Content-Length", -1))
    except (TypeError, ValueError):
        return -1


def _declared_mtime(headers) -> float | None:
    raw = headers.get("Last-Modified")
    if not raw:
        return None
    try:
        return parsedate_to_datetime(raw).timestamp()
    except (TypeError, ValueError):
        return None


def _base_name(location: str) -> str:
    """File name of the location's path without its extension."""
    path = urllib.parse.unquote(urllib.parse.urlparse(location).path)
    return PurePosixPath(path.replace("\\", "/")).stem if path and not path.endswith("/") else ""


class PluginStager:
    """Turns plugin locations into files in the staging directory.

    The cache maps a canonical location to the archive it produced and lives as
    long as the stager. An entry is trusted only while the file still exists
    with the recorded length and digest; otherwise the location is fetched again.
    """

    def __init__(self, host: PluginHost, staging_dir: Path):
        self.host = host
        self.staging_dir = Path(staging_dir)
        self._cache: dict[str, StagedArchive] = {}
        self._lock = threading.Lock()

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def cached(self, location: str) -> StagedArchive | None:
        """The cache entry for *location* if the staged file still matches it."""
        with self._lock:
            entry = self._cache.get(location)
        if entry is None:
            return None
        try:
            if (
                entry.path.is_file()
                and entry.path.stat().st_size == entry.length
                and digest_of_file(entry.path) == entry.digest
            ):
                return entry
        except OSError:
            pass
        return None

    def _remember(self, entry: StagedArchive) -> None:
        with self._lock:
            self._cache[entry.location] = entry

    def _prepare_dir(self) -> bool:
        if self.staging_dir.exists() and not self.staging_dir.is_dir():
            logger.error(
                "optional plugin working directory %s exists and is not a directory",
                self.staging_dir,
            )
            return False
        try:
            self.staging_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.error("could not create optional plugin working directory %s", self.staging_dir)
            return False
        return True

    def stage(self, locations: list[str]) -> list[StagedArchive]:
        """Stage every location; a location that fails is logged and skipped."""
        if not self._prepare_dir():
            return []
        result: list[StagedArchive] = []
        claimed: dict[str, str] = {}  # staged file name -> location, this pass only
        for location in locations:
            try:
                entry = self._stage_one(location, claimed)
            except (OSError, urllib.error.URLError, http.client.HTTPException, ValueError):
                logger.warning("could not process optional plugin from %s", location, exc_info=True)
                continue
            claimed[entry.path.name] = location
            result.append(entry)
        logger.debug("staged plugins: %s", [str(e.path) for e in result])
        return result

    def _stage_one(self, location: str, claimed: dict[str, str]) -> StagedArchive:
        entry = self.cached(location)
        if entry is not None and claimed.get(entry.path.name, location) == location:
            return entry

        base = _base_name(location)
        name_check = False
        if not base or claimed.get(base + ARCHIVE_EXT, location) != location:
            name_check = True
            base = digest_of_string(location)
        target = self.staging_dir / (base + ARCHIVE_EXT)
        partial = target.with_name(target.name + ".part")

        with urllib.request.urlopen(location, timeout=FETCH_TIMEOUT) as resp:
            length = _declared_length(resp.headers)
            last_modified = _declared_mtime(resp.headers)
            h = hashlib.sha256()
            try:
                with open(partial, "wb") as out:
                    for chunk in iter(lambda: resp.read(CHUNK_SIZE), b""):
                        h.update(chunk)
                        out.write(chunk)
            except BaseException:
                partial.unlink(missing_ok=True)
                raise
        digest = h.hexdigest()

        if (
            target.is_file()
            and (last_modified is None or target.stat().st_mtime == last_modified)
            and target.stat().st_size == length
            and digest_of_file(target) == digest
        ):
            partial.unlink()
        else:
            os.replace(partial, target)

        short_name = ""
        if name_check:
            target, short_name = self._rename_to_short_name(target, digest, base, location, claimed)

        if last_modified is not None:
            try:
                os.utime(target, (last_modified, last_modified))
            except OSError:
                logger.debug("couldn't set last modified on %s", target)

        entry = StagedArchive(
            location=location,
            path=target,
            digest=digest,
            length=target.stat().st_size,
            last_modified=last_modified,
            short_name=short_name,
        )
        self._remember(entry)
        return entry

    def _rename_to_short_name(
        self, target: Path, digest: str, base: str, location: str, claimed: dict[str, str]
    ) -> tuple[Path, str]:
        short_name = self.host.short_name(target)
        if short_name == base:
            return target, short_name
        renamed = self.staging_dir / (short_name + ARCHIVE_EXT)
        if claimed.get(renamed.name, location) != location:
            # another source already owns that name in this pass
            return target, short_name
        if renamed.is_file() and digest_of_file(renamed) == digest:
            target.unlink()
        else:
            os.replace(target, renamed)
        return renamed, short_name
