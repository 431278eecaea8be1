# src/core/mirror/errors.py
"""
Typed errors + utilities for the offline mirror and navigation fallback.

Exports
-------
- MirrorError (base)
- SyncError, CommandError, UnsupportedRepositoryUrlError, ArchiveDownloadError,
  ArchiveLayoutError, EntryFileMissingError
- NavigationError, NavigationTimeoutError, NetworkError, NavigationAbortedError,
  OfflineCacheUnavailableError
- PathTraversalError, UnknownMirrorHostError
- FALLBACK_ERRORS
- classify_navigation_error(exc)
- sync_error_guard()
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

import requests

# =========================
# Exception types
# =========================


class MirrorError(RuntimeError):
    """Base class for offline-mirror failures."""


# ---- sync ----


class SyncError(MirrorError):
    """A site could not be synchronized; recorded per site in the refresh summary."""


class CommandError(SyncError):
    """An external tool invocation failed."""

    def __init__(self, command: Sequence[str], message: str, *, cwd: Path | None = None) -> None:
        self.command = list(command)
        self.cwd = cwd
        self.detail = message
        where = f" (cwd: {cwd})" if cwd else ""
        super().__init__(f'Failed to execute "{" ".join(self.command)}"{where}: {message}')

    @property
    def not_a_checkout(self) -> bool:
        return bool(re.search(r"not a git repository", self.detail, re.IGNORECASE))


class UnsupportedRepositoryUrlError(SyncError):
    """Repository URL is neither https://host/owner/repo nor user@host:owner/repo."""


class ArchiveDownloadError(SyncError):
    """Snapshot archive could not be downloaded (status, redirects, transport)."""


class ArchiveLayoutError(SyncError):
    """Snapshot archive could not be extracted or has no top-level directory."""


class EntryFileMissingError(SyncError):
    """The synchronized tree does not contain the site's entry file."""


# ---- navigation ----


class NavigationError(MirrorError):
    """A navigation attempt failed."""


class NavigationTimeoutError(NavigationError):
    """The live load did not finish inside the timeout window."""


class NetworkError(NavigationError):
    """DNS/connection/transport failure while loading the live site."""


class NavigationAbortedError(NavigationError):
    """The load was stopped on purpose (e.g. the user went back home)."""


class OfflineCacheUnavailableError(NavigationError):
    """Fallback was needed but no mirror exists for the URL's origin."""

    def __init__(self, url: str, cause: BaseException) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"No offline mirror for {url}: {cause}")


# ---- resolver ----


class PathTraversalError(MirrorError):
    """A mirrored-content request tried to escape its site's cache root."""


class UnknownMirrorHostError(MirrorError):
    """A mirrored-content request named a host that has no cache root."""


# Soft errors: a mirror lookup is attempted before giving up
FALLBACK_ERRORS = (NavigationTimeoutError, NetworkError)

# Chromium/OS-style network failure markers seen in surface error messages
_NETWORK_PATTERN = re.compile(
    r"(ERR_NAME_NOT_RESOLVED|ERR_INTERNET_DISCONNECTED|ERR_CONNECTION_\w+|ERR_ADDRESS_UNREACHABLE|"
    r"ERR_NETWORK_\w+|ERR_TIMED_OUT|name or service not known|connection (refused|reset|closed)|"
    r"network is unreachable|temporary failure in name resolution)",
    re.IGNORECASE,
)
_ABORT_PATTERN = re.compile(r"ERR_ABORTED", re.IGNORECASE)

# =========================
# Classification helpers
# =========================


def classify_navigation_error(exc: BaseException) -> NavigationError:
    """
    Map arbitrary exceptions raised by a content surface to a typed NavigationError.

    Heuristics:
      - NavigationError subclasses → passed through
      - requests.Timeout → NavigationTimeoutError
      - requests.ConnectionError / other RequestException, OSError → NetworkError
      - messages with network failure markers → NetworkError
      - "ERR_ABORTED" → NavigationAbortedError
      - Fallback → NavigationError
    """
    if isinstance(exc, NavigationError):
        return exc

    if isinstance(exc, requests.Timeout):
        return NavigationTimeoutError(str(exc))
    if isinstance(exc, requests.RequestException):
        return NetworkError(str(exc))

    if isinstance(exc, TimeoutError):
        return NavigationTimeoutError(str(exc) or "timed out")
    if isinstance(exc, OSError):
        return NetworkError(f"{type(exc).__name__}: {exc}")

    msg = f"{type(exc).__name__}: {exc}"
    if _ABORT_PATTERN.search(msg):
        return NavigationAbortedError(msg)
    if _NETWORK_PATTERN.search(msg):
        return NetworkError(msg)
    return NavigationError(msg)


@contextmanager
def sync_error_guard(site_name: str) -> Iterator[None]:
    """Normalize unexpected exceptions raised while syncing one site into SyncError."""
    try:
        yield
    except SyncError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise SyncError(f"{site_name}: {type(exc).__name__}: {exc}") from exc


__all__ = [
    "MirrorError",
    "SyncError",
    "CommandError",
    "UnsupportedRepositoryUrlError",
    "ArchiveDownloadError",
    "ArchiveLayoutError",
    "EntryFileMissingError",
    "NavigationError",
    "NavigationTimeoutError",
    "NetworkError",
    "NavigationAbortedError",
    "OfflineCacheUnavailableError",
    "PathTraversalError",
    "UnknownMirrorHostError",
    "FALLBACK_ERRORS",
    "classify_navigation_error",
    "sync_error_guard",
]
