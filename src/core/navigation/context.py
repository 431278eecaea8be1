# src/core/navigation/context.py
"""
Application context: the single object that owns the cache manager, the content
resolver and the navigation state machine. UI handlers receive it explicitly.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from src.catalog.sites import DEFAULT_SITES
from src.core.mirror.manager import OfflineCacheManager
from src.core.mirror.resolver import OfflineContentResolver
from src.core.mirror.strategies import SyncStrategy
from src.schemas.models import MirrorSettings, NavigationState, RefreshSummary, Site

from .controller import NavigationController
from .events import NavigationObserver, ObserverGroup
from .surfaces import ContentSurface, HttpSurface


@dataclass
class AppContext:
    settings: MirrorSettings
    sites: tuple[Site, ...]
    cache: OfflineCacheManager
    resolver: OfflineContentResolver
    navigation: NavigationController
    events: ObserverGroup

    async def startup(self) -> None:
        await self.cache.initialize_from_disk()

    # Commands accepted from the UI layer

    async def navigate(self, url: str) -> NavigationState | None:
        return await self.navigation.navigate(url)

    def go_home(self) -> None:
        self.navigation.go_home()

    async def refresh_cache(self) -> RefreshSummary:
        return await self.cache.refresh_all_sites()


def build_context(
    settings: MirrorSettings | None = None,
    sites: Sequence[Site] | None = None,
    *,
    surface: ContentSurface | None = None,
    observers: Sequence[NavigationObserver] = (),
    strategy: SyncStrategy | None = None,
) -> AppContext:
    """Wire the core together. Without a surface, a headless HttpSurface is used."""
    cfg = settings or MirrorSettings()
    catalog = tuple(sites) if sites is not None else DEFAULT_SITES
    cache = OfflineCacheManager(catalog, cfg, strategy=strategy)
    resolver = OfflineContentResolver.from_manager(cache)
    events = ObserverGroup(observers)
    nav = NavigationController(
        cache,
        resolver,
        surface or HttpSurface(resolver, cfg),
        events,
        timeout_s=cfg.navigation_timeout_s,
    )
    return AppContext(settings=cfg, sites=catalog, cache=cache, resolver=resolver, navigation=nav, events=events)


__all__ = ["AppContext", "build_context"]
