# src/core/mirror/manager.py
"""
Offline cache manager: on-disk mirrors of the site catalog plus an in-memory index.

Responsibilities
----------------
- Rehydrate the origin → entry-file index from disk at startup (no network).
- Refresh every site sequentially, isolating per-site failures into a RefreshSummary.
- Coalesce concurrent refresh requests into one shared pass.
- Stage each sync beside the live tree and publish it with directory renames.

Invariants
----------
- A site directory is absent, fully published, or being staged in `<folder>.tmp`;
  it is never overwritten in place by a staged sync.
- Index entries are only added after the entry file is confirmed on disk and are
  re-verified on every read.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path

from src.schemas.models import MirrorSettings, RefreshSummary, Site, SiteFailure

from .errors import EntryFileMissingError, sync_error_guard
from .paths import backup_path, folder_name_for, is_file, origin_of, remove_tree, staging_path
from .strategies import StrategySelector, SyncStrategy

log = logging.getLogger("sitemirror.cache")


class OfflineCacheManager:
    def __init__(
        self,
        sites: Iterable[Site],
        settings: MirrorSettings | None = None,
        *,
        strategy: SyncStrategy | None = None,
        selector: StrategySelector | None = None,
    ) -> None:
        self.settings = settings or MirrorSettings()
        self.sites: tuple[Site, ...] = tuple(sites)
        self._strategy = strategy
        self._selector = selector or StrategySelector(self.settings)
        self._cache_root: Path | None = None
        self._refresh_task: asyncio.Future[RefreshSummary] | None = None

        self._index: dict[str, Path] = {}
        self._site_by_origin: dict[str, Site] = {}
        self._folder_by_origin: dict[str, str] = {}
        self._folder_by_host: dict[str, str] = {}
        for site in self.sites:
            origin = origin_of(site.url)
            folder = folder_name_for(site.url)
            self._site_by_origin[origin] = site
            self._folder_by_origin[origin] = folder
            self._folder_by_host[_host_key(site.url)] = folder

    # ---------- Layout ----------

    @property
    def cache_root(self) -> Path:
        if self._cache_root is None:
            self._cache_root = self.settings.cache_root
        return self._cache_root

    def site_root(self, site: Site) -> Path:
        return self.cache_root / folder_name_for(site.url)

    def entry_path(self, site: Site) -> Path:
        return self.site_root(site) / site.entry_file

    def site_root_for_origin(self, origin: str) -> Path | None:
        folder = self._folder_by_origin.get(origin)
        return self.cache_root / folder if folder else None

    def site_root_for_host(self, host: str) -> Path | None:
        folder = self._folder_by_host.get(host.lower())
        return self.cache_root / folder if folder else None

    def host_roots(self) -> dict[str, Path]:
        """host[:port] → site cache root, for every catalog site."""
        return {host: self.cache_root / folder for host, folder in self._folder_by_host.items()}

    def indexed_entries(self) -> dict[str, Path]:
        return dict(self._index)

    # ---------- Startup ----------

    async def initialize_from_disk(self) -> None:
        """Register every site whose entry file already exists. Idempotent."""
        await asyncio.to_thread(self.cache_root.mkdir, parents=True, exist_ok=True)
        for site in self.sites:
            await asyncio.to_thread(self._recover_interrupted_publish, self.site_root(site))
            entry = self.entry_path(site)
            if is_file(entry):
                self._index[origin_of(site.url)] = entry
            else:
                self._index.pop(origin_of(site.url), None)
        log.info("offline index rehydrated: %d/%d sites available", len(self._index), len(self.sites))

    @staticmethod
    def _recover_interrupted_publish(destination: Path) -> None:
        # A crash between the two publish renames leaves only the previous tree aside.
        backup = backup_path(destination)
        if not destination.exists() and backup.is_dir():
            log.warning("restoring %s from interrupted publish", destination)
            backup.rename(destination)

    # ---------- Lookups ----------

    async def get_offline_entry(self, url: str) -> Path | None:
        """Verified entry file for the URL's origin, or None when no mirror exists."""
        try:
            origin = origin_of(url)
        except ValueError:
            return None

        cached = self._index.get(origin)
        if cached is not None:
            if is_file(cached):
                return cached
            log.info("indexed entry for %s vanished: %s", origin, cached)
            self._index.pop(origin, None)

        site = self._site_by_origin.get(origin)
        if site is None:
            return None
        entry = self.entry_path(site)
        if is_file(entry):
            self._index[origin] = entry
            return entry
        return None

    # ---------- Refresh ----------

    async def refresh_all_sites(self) -> RefreshSummary:
        """
        Sync every site once. Concurrent callers share the in-flight pass and receive
        the same RefreshSummary object.
        """
        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._synchronize_all_sites())
            self._refresh_task = task
            task.add_done_callback(self._clear_refresh_task)
        else:
            log.debug("refresh already in flight; joining it")
        # A cancelled caller must not cancel the shared pass.
        return await asyncio.shield(task)

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None

    def _clear_refresh_task(self, task: asyncio.Future[RefreshSummary]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _synchronize_all_sites(self) -> RefreshSummary:
        updated: list[str] = []
        failed: list[SiteFailure] = []

        for site in self.sites:
            try:
                await self.sync_site(site)
                updated.append(site.name)
            except Exception as e:  # noqa: BLE001 - batch boundary
                reason = str(e) or type(e).__name__
                failed.append(SiteFailure(site=site.name, reason=reason))
                log.error("Failed to cache %s: %s", site.url, reason)

        summary = RefreshSummary(updated=updated, failed=failed)
        log.info("refresh finished: %d updated, %d failed", len(updated), len(failed))
        return summary

    # ---------- Sync ----------

    async def select_strategy(self) -> SyncStrategy:
        if self._strategy is None:
            self._strategy = await self._selector.select()
        return self._strategy

    async def sync_site(self, site: Site) -> Path:
        """
        Produce a fresh mirror of `site` and publish it. Returns the verified entry path.

        Raises SyncError (or a subclass) on any failure; the previously published tree
        is left untouched unless the strategy updated it in place.
        """
        await asyncio.to_thread(self.cache_root.mkdir, parents=True, exist_ok=True)
        destination = self.site_root(site)
        staging = staging_path(destination)
        origin = origin_of(site.url)

        await asyncio.to_thread(remove_tree, staging)
        try:
            with sync_error_guard(site.name):
                strategy = await self.select_strategy()
                log.debug("syncing %s with %s strategy", site.name, strategy.name)
                tree = await strategy.sync(site, destination, staging)

                staged_entry = tree / site.entry_file
                if not is_file(staged_entry):
                    raise EntryFileMissingError(f"Entry file not found at {staged_entry}")

                if tree != destination:
                    await asyncio.to_thread(publish_tree, tree, destination)
        finally:
            await asyncio.to_thread(remove_tree, staging)

        entry = destination / site.entry_file
        self._index[origin] = entry
        log.info("cached %s at %s", site.name, destination)
        return entry


def publish_tree(tree: Path, destination: Path) -> None:
    """
    Swap `tree` into `destination` with renames only.

    The previous tree is moved aside first and restored if the second rename fails,
    so `destination` is always either the old tree, the new tree, or briefly absent.
    """
    backup = backup_path(destination)
    remove_tree(backup)
    had_previous = destination.exists()
    if had_previous:
        destination.rename(backup)
    try:
        tree.rename(destination)
    except OSError:
        if had_previous:
            backup.rename(destination)
        raise
    remove_tree(backup)


def _host_key(url: str) -> str:
    # host[:port] as it appears in the virtual content address
    netloc = origin_of(url).split("://", 1)[1]
    return netloc.lower()


__all__ = ["OfflineCacheManager", "publish_tree"]
