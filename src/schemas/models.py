# src/schemas/models.py

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

APP_DIRNAME = "site-mirror"

# =========================
# Site catalog
# =========================


class RepositorySource(BaseModel):
    """Where a site's static content can be mirrored from."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(..., description="Clone URL, e.g. https://github.com/org/repo.git or git@github.com:org/repo.git")
    branch: str = Field("main", description="Branch pinned for clone/fetch and archive snapshots.")
    entry_file: str = Field(
        "index.html",
        alias="entryFile",
        description="Entry document relative to the repository root, used for offline browsing.",
    )

    @field_validator("url")
    @classmethod
    def _non_empty_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("repository url must not be empty")
        return v

    @field_validator("entry_file")
    @classmethod
    def _relative_entry(cls, v: str) -> str:
        v = v.strip().lstrip("/\\")
        if not v or ".." in Path(v).parts:
            raise ValueError("entry_file must be a relative path inside the repository")
        return v


class Site(BaseModel):
    """One catalog entry: display name, public URL and mirror source."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Human-readable site name.")
    url: str = Field(..., description="Public URL. Its scheme+host+port is the site's origin.")
    repository: RepositorySource

    @field_validator("url")
    @classmethod
    def _absolute_http_url(cls, v: str) -> str:
        parsed = urlparse(v.strip())
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            raise ValueError(f"site url must be an absolute http(s) URL: {v!r}")
        return v.strip()

    @property
    def hostname(self) -> str:
        return urlparse(self.url).hostname or ""

    @property
    def branch(self) -> str:
        return self.repository.branch

    @property
    def entry_file(self) -> str:
        return self.repository.entry_file


# =========================
# Refresh results
# =========================


class SiteFailure(BaseModel):
    """A single site that could not be synchronized during a refresh pass."""

    model_config = ConfigDict(frozen=True)

    site: str = Field(..., description="Site name.")
    reason: str = Field(..., min_length=1, description="Error message from the failed sync.")


class RefreshSummary(BaseModel):
    """Result of one refresh pass over the whole catalog."""

    model_config = ConfigDict(frozen=True)

    updated: list[str] = Field(default_factory=list, description="Names of sites re-published in this pass.")
    failed: list[SiteFailure] = Field(default_factory=list, description="Sites whose sync failed, with reasons.")

    @property
    def ok(self) -> bool:
        return not self.failed


# =========================
# Navigation
# =========================


class NavigationMode(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class NavigationState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ONLINE = "online"
    OFFLINE = "offline"
    FAILED = "failed"


class SurfaceName(str, Enum):
    HOME = "home"
    DESTINATION = "destination"


# =========================
# Settings
# =========================


def default_data_dir() -> Path:
    """
    Per-user data location.

    Order: $SITEMIRROR_DATA_DIR, then $XDG_DATA_HOME / %LOCALAPPDATA% with an app
    subfolder, then ~/.local/share/<app>.
    """
    explicit = os.getenv("SITEMIRROR_DATA_DIR")
    if explicit:
        return Path(explicit).expanduser()
    base = os.getenv("XDG_DATA_HOME") or os.getenv("LOCALAPPDATA")
    if base:
        return Path(base).expanduser() / APP_DIRNAME
    return Path.home() / ".local" / "share" / APP_DIRNAME


class MirrorSettings(BaseModel):
    """
    Runtime knobs for the mirror cache and navigation controller.

    Kept frozen so a single instance can be shared by every component owned by the
    application context.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    data_dir: Path = Field(default_factory=default_data_dir, description="Per-user data directory.")
    cache_dirname: str = Field("offline-cache", min_length=1, description="Cache root folder name under data_dir.")
    navigation_timeout_s: float = Field(10.0, gt=0, description="Live navigation window before falling back.")
    download_timeout_s: float = Field(60.0, gt=0, description="HTTP timeout for archive downloads.")
    max_redirects: int = Field(5, ge=0, description="Redirects followed while downloading a snapshot archive.")
    git_executable: str = Field("git", min_length=1, description="Version-control executable probed at startup.")
    user_agent: str = Field("site-mirror/0.1 (+offline-cache)", description="User-Agent for HTTP requests.")
    virtual_scheme: str = Field("offline-mirror", description="URL scheme used to serve mirrored content.")

    @field_validator("virtual_scheme")
    @classmethod
    def _scheme_shape(cls, v: str) -> str:
        v = v.strip().lower()
        if not v or not v[0].isalpha() or not all(c.isalnum() or c in "+-." for c in v):
            raise ValueError(f"invalid URL scheme: {v!r}")
        if v in {"http", "https", "file"}:
            raise ValueError("virtual scheme must differ from live and file schemes")
        return v

    @property
    def cache_root(self) -> Path:
        return self.data_dir / self.cache_dirname


__all__ = [
    "APP_DIRNAME",
    "RepositorySource",
    "Site",
    "SiteFailure",
    "RefreshSummary",
    "NavigationMode",
    "NavigationState",
    "SurfaceName",
    "MirrorSettings",
    "default_data_dir",
]
