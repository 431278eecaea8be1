# src/core/mirror/paths.py
"""
Deterministic on-disk layout for mirrored sites.

Layout (under <cache_root>/):
  - <folder>/            published tree, entry file at its root
  - <folder>.tmp/        staging area, never read by lookups
  - <folder>.old/        previous tree while a publish swaps directories
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path
from urllib.parse import urlparse

_UNSAFE_FOLDER_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_DEFAULT_PORTS = {"http": 80, "https": 443}

STAGING_SUFFIX = ".tmp"
BACKUP_SUFFIX = ".old"


def origin_of(url: str) -> str:
    """
    scheme://host[:port] for a URL, lower-cased, default ports omitted.

    Raises ValueError for URLs without a scheme or host.
    """
    parsed = urlparse(url.strip())
    if not parsed.scheme or not parsed.hostname:
        raise ValueError(f"URL has no origin: {url!r}")
    scheme = parsed.scheme.lower()
    host = parsed.hostname.lower()
    if ":" in host:
        host = f"[{host}]"
    port = parsed.port
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def folder_name_for(url: str) -> str:
    """Hostname of `url` with anything outside [a-zA-Z0-9.-] replaced by '_'."""
    hostname = urlparse(url.strip()).hostname or ""
    if not hostname:
        raise ValueError(f"URL has no hostname: {url!r}")
    return _UNSAFE_FOLDER_CHARS.sub("_", hostname)


def staging_path(destination: Path) -> Path:
    return destination.with_name(destination.name + STAGING_SUFFIX)


def backup_path(destination: Path) -> Path:
    return destination.with_name(destination.name + BACKUP_SUFFIX)


def remove_tree(path: Path) -> None:
    """rm -rf; missing paths are fine."""
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
    elif path.exists():
        shutil.rmtree(path)


def is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def is_within(candidate: Path, root: Path) -> bool:
    """True if `candidate` equals `root` or is nested under it (both already canonical)."""
    return candidate == root or root in candidate.parents


__all__ = [
    "STAGING_SUFFIX",
    "BACKUP_SUFFIX",
    "origin_of",
    "folder_name_for",
    "staging_path",
    "backup_path",
    "remove_tree",
    "is_file",
    "is_within",
]
