# src/core/mirror/strategies.py
"""
Sync strategies: produce a fresh local copy of one site's repository.

Design
------
- `SyncStrategy` protocol: `sync(site, destination, staging) -> Path`.
  The returned path is the tree holding the new content. When it is `destination`
  itself the content was updated in place; otherwise it is a staged tree that the
  caller verifies and publishes.
- `VersionControlSync`: shallow clone into staging, or fetch + force checkout in place.
- `ArchiveSync`: download a branch snapshot zip and extract it into staging.
- `StrategySelector`: probes the version-control tool once and remembers the choice.

Invariants
----------
- Strategies never delete or rename `destination`; publishing belongs to the cache manager.
- Every failed external-tool invocation raises CommandError with the attempted command.
"""

from __future__ import annotations

import asyncio
import io
import logging
import zipfile
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import urljoin, urlparse

import requests

from src.schemas.models import MirrorSettings, Site

from .errors import (
    ArchiveDownloadError,
    ArchiveLayoutError,
    CommandError,
    UnsupportedRepositoryUrlError,
)
from .paths import remove_tree

log = logging.getLogger("sitemirror.sync")

# (args, cwd) -> stdout
CommandRunner = Callable[[Sequence[str], Path | None], Awaitable[str]]

_SCP_LIKE = ("@", ":")


class SyncStrategy(Protocol):
    name: str

    async def sync(self, site: Site, destination: Path, staging: Path) -> Path: ...


# -------------------------
# External commands
# -------------------------


async def run_command(args: Sequence[str], cwd: Path | None = None) -> str:
    """
    Run an external tool and return its stdout.

    The child process is killed if the awaiting task is cancelled.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(args, f"{type(e).__name__}: {e}", cwd=cwd) from e

    try:
        out, err = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    if proc.returncode != 0:
        detail = err.decode("utf-8", errors="replace").strip() or f"exit status {proc.returncode}"
        raise CommandError(args, detail, cwd=cwd)
    return out.decode("utf-8", errors="replace")


# -------------------------
# Version control
# -------------------------


class VersionControlSync:
    """Clone-or-fetch against the site's pinned branch, always at depth 1."""

    name = "version-control"

    def __init__(self, executable: str = "git", runner: CommandRunner | None = None) -> None:
        self.executable = executable
        self._runner = runner or run_command

    async def _git(self, *args: str, cwd: Path | None = None) -> str:
        return await self._runner([self.executable, *args], cwd)

    async def sync(self, site: Site, destination: Path, staging: Path) -> Path:
        branch = site.branch
        if not (destination / ".git").exists():
            return await self._clone(site, staging)

        try:
            await self._git("fetch", "--depth", "1", "origin", branch, cwd=destination)
            await self._git("checkout", "--force", "-B", branch, f"origin/{branch}", cwd=destination)
        except CommandError as e:
            if not e.not_a_checkout:
                raise
            log.warning("%s is not a valid checkout, cloning afresh: %s", destination, e.detail)
            return await self._clone(site, staging)
        return destination

    async def _clone(self, site: Site, staging: Path) -> Path:
        await asyncio.to_thread(remove_tree, staging)
        await self._git(
            "clone",
            "--depth",
            "1",
            "--single-branch",
            "--branch",
            site.branch,
            site.repository.url,
            str(staging),
        )
        return staging


# -------------------------
# Archive snapshots
# -------------------------


@dataclass(frozen=True)
class RepositoryRef:
    host: str
    owner: str
    repo: str


def _strip_git_suffix(name: str) -> str:
    return name[:-4] if name.lower().endswith(".git") else name


def parse_repository_url(url: str) -> RepositoryRef:
    """
    Accepts:
      - https://host/owner/repo[.git]
      - user@host:owner/repo[.git]
    Anything else raises UnsupportedRepositoryUrlError.
    """
    raw = url.strip()
    parsed = urlparse(raw)

    if parsed.scheme:
        if parsed.scheme.lower() != "https" or not parsed.hostname:
            raise UnsupportedRepositoryUrlError(f"Unsupported repository URL: {url}")
        host = parsed.hostname.lower()
        path = parsed.path.strip("/")
    elif all(m in raw for m in _SCP_LIKE) and raw.index("@") < raw.index(":"):
        user_host, _, path = raw.partition(":")
        host = user_host.split("@", 1)[1].lower()
        path = path.strip("/")
    else:
        raise UnsupportedRepositoryUrlError(f"Unsupported repository URL: {url}")

    parts = path.split("/")
    if not host or len(parts) != 2 or not all(parts):
        raise UnsupportedRepositoryUrlError(f"Unsupported repository URL: {url}")
    owner, repo = parts[0], _strip_git_suffix(parts[1])
    if not repo:
        raise UnsupportedRepositoryUrlError(f"Unsupported repository URL: {url}")
    return RepositoryRef(host=host, owner=owner, repo=repo)


def archive_url_for(ref: RepositoryRef, branch: str) -> str:
    """Branch snapshot zip URL. GitHub serves these from codeload; others use /archive/."""
    if ref.host in {"github.com", "www.github.com"}:
        return f"https://codeload.github.com/{ref.owner}/{ref.repo}/zip/refs/heads/{branch}"
    return f"https://{ref.host}/{ref.owner}/{ref.repo}/archive/refs/heads/{branch}.zip"


def download_archive(url: str, *, max_redirects: int = 5, timeout_s: float = 60.0, user_agent: str | None = None) -> bytes:
    """
    GET `url`, following at most `max_redirects` redirects by hand.

    Raises ArchiveDownloadError beyond the redirect bound, on any non-200 final status,
    and on transport failures.
    """
    headers = {"User-Agent": user_agent} if user_agent else {}
    current = url
    for _hop in range(max_redirects + 1):
        try:
            resp = requests.get(current, headers=headers, timeout=timeout_s, allow_redirects=False)
        except requests.RequestException as e:
            raise ArchiveDownloadError(f"Failed to download archive from {current}: {e}") from e
        try:
            location = resp.headers.get("Location")
            if 300 <= resp.status_code < 400 and location:
                current = urljoin(current, location)
                continue
            if resp.status_code != 200:
                raise ArchiveDownloadError(f"Failed to download archive from {current}. Status code: {resp.status_code}")
            return resp.content
        finally:
            resp.close()
    raise ArchiveDownloadError("Too many redirects while downloading archive.")


def extract_archive(data: bytes, staging: Path) -> Path:
    """
    Extract a snapshot zip into `staging` and return its first top-level directory,
    which becomes the staged tree.
    """
    remove_tree(staging)
    staging.mkdir(parents=True)
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            zf.extractall(staging)
    except (zipfile.BadZipFile, zipfile.LargeZipFile) as e:
        raise ArchiveLayoutError(f"Archive could not be extracted: {e}") from e

    dirs = sorted(p for p in staging.iterdir() if p.is_dir() and not p.is_symlink())
    if not dirs:
        raise ArchiveLayoutError("Failed to locate extracted repository folder inside archive.")
    return dirs[0]


class ArchiveSync:
    """Download-and-extract fallback used when no version-control tool is available."""

    name = "archive"

    def __init__(self, settings: MirrorSettings | None = None) -> None:
        self.settings = settings or MirrorSettings()

    async def sync(self, site: Site, destination: Path, staging: Path) -> Path:
        ref = parse_repository_url(site.repository.url)
        url = archive_url_for(ref, site.branch)
        log.debug("downloading snapshot %s for %s", url, site.name)
        data = await asyncio.to_thread(
            download_archive,
            url,
            max_redirects=self.settings.max_redirects,
            timeout_s=self.settings.download_timeout_s,
            user_agent=self.settings.user_agent,
        )
        return await asyncio.to_thread(extract_archive, data, staging)


# -------------------------
# Selection
# -------------------------


class StrategySelector:
    """
    Chooses VersionControlSync when `<git> --version` succeeds, else ArchiveSync.

    The probe runs at most once per selector; `reason` records why the choice was made.
    """

    def __init__(self, settings: MirrorSettings | None = None, runner: CommandRunner | None = None) -> None:
        self.settings = settings or MirrorSettings()
        self._runner = runner or run_command
        self._chosen: SyncStrategy | None = None
        self._lock = asyncio.Lock()
        self.reason: str | None = None

    @property
    def chosen(self) -> SyncStrategy | None:
        return self._chosen

    async def select(self) -> SyncStrategy:
        if self._chosen is not None:
            return self._chosen
        async with self._lock:
            if self._chosen is None:
                self._chosen = await self._probe()
        return self._chosen

    async def _probe(self) -> SyncStrategy:
        exe = self.settings.git_executable
        try:
            version = await self._runner([exe, "--version"], None)
        except CommandError as e:
            self.reason = f"{exe} unavailable: {e.detail}"
            log.warning("%s executable not found. Falling back to archive downloads.", exe)
            return ArchiveSync(self.settings)
        self.reason = version.strip() or f"{exe} available"
        log.info("using %s for mirror sync (%s)", exe, self.reason)
        return VersionControlSync(exe, self._runner)


__all__ = [
    "CommandRunner",
    "SyncStrategy",
    "run_command",
    "VersionControlSync",
    "RepositoryRef",
    "parse_repository_url",
    "archive_url_for",
    "download_archive",
    "extract_archive",
    "ArchiveSync",
    "StrategySelector",
]
