"""Digest helpers, collaborator call wrapper, size and path formatting."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO, TypeVar

T = TypeVar("T")

CHUNK_SIZE = 64 * 1024  # 64KB

logger = logging.getLogger(__name__)


def digest_of_stream(stream: BinaryIO) -> str:
    h = hashlib.sha256()
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        h.update(chunk)
    return h.hexdigest()


def digest_of_file(path: Path) -> str:
    with open(path, "rb") as f:
        return digest_of_stream(f)


def digest_of_string(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def call_collaborator(fn: Callable[..., T], *args, default: T, what: str = "") -> T:
    """Call into a source or filter, turning any ordinary failure into *default*.

    MemoryError, RecursionError and non-Exception throwables (KeyboardInterrupt,
    SystemExit) are fatal and propagate.
    """
    try:
        return fn(*args)
    except (MemoryError, RecursionError):
        raise
    except Exception:
        logger.warning("%s raised an unexpected exception", what or fn, exc_info=True)
        return default


def human_size(size: int) -> str:
    """Format bytes to human readable."""
    for unit in ("B", "KB", "MB", "GB"):
        if abs(size) < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{size}{unit}"
        size /= 1024  # type: ignore
    return f"{size:.1f}TB"


def short_path(p: Path) -> str:
    """Return path relative to home directory, using ~ prefix."""
    try:
        rel = p.relative_to(Path.home())
        return f"~/{rel}" if str(rel) != "." else "~"
    except ValueError:
        return str(p)
