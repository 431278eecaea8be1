# src/core/navigation/controller.py
"""
Navigation controller: one live load at a time, with timeout-driven offline fallback.

States
------
    IDLE → LOADING → {ONLINE, OFFLINE}      (destination surface shown)
    LOADING → FAILED → IDLE                 (error surfaced, surface unchanged)
    any → IDLE                              (go_home)

Flow of `navigate(url)`
-----------------------
1) Drop the request if a navigation is already LOADING.
2) Signal loading, clear the destination surface's browsing cache.
3) Race the live load against the timeout window; the loser is cancelled and the
   surface stopped, so no transfer keeps running.
4) Timeout or network failure → look up the mirror for the URL's origin and load its
   entry through the virtual scheme. No mirror → the triggering error is surfaced.
"""

from __future__ import annotations

import asyncio
import logging

from src.core.mirror.errors import (
    FALLBACK_ERRORS,
    NavigationAbortedError,
    NavigationError,
    NavigationTimeoutError,
    OfflineCacheUnavailableError,
    classify_navigation_error,
)
from src.core.mirror.manager import OfflineCacheManager
from src.core.mirror.resolver import OfflineContentResolver
from src.schemas.models import NavigationMode, NavigationState, SurfaceName

from .events import NavigationObserver, NullObserver
from .surfaces import ContentSurface

log = logging.getLogger("sitemirror.navigation")


class NavigationController:
    def __init__(
        self,
        cache: OfflineCacheManager,
        resolver: OfflineContentResolver,
        surface: ContentSurface,
        observer: NavigationObserver | None = None,
        *,
        timeout_s: float = 10.0,
    ) -> None:
        self.cache = cache
        self.resolver = resolver
        self.surface = surface
        self.observer: NavigationObserver = observer or NullObserver()
        self.timeout_s = timeout_s

        self.state = NavigationState.IDLE
        self.mode = NavigationMode.ONLINE
        self.active_surface = SurfaceName.HOME
        self.last_error: NavigationError | None = None
        self._inflight: asyncio.Future[None] | None = None
        # bumped by go_home; a navigation started under an older value is stale
        self._generation = 0

    @property
    def is_loading(self) -> bool:
        return self.state is NavigationState.LOADING

    # ---------- Commands ----------

    async def navigate(self, url: str) -> NavigationState | None:
        """
        Load `url` into the destination surface.

        Returns the outcome (ONLINE, OFFLINE, FAILED, or IDLE when aborted by go_home),
        or None when the request was dropped because another navigation is loading.
        """
        if self.is_loading:
            log.info("Navigation is already in progress. Ignoring request for %s", url)
            return None

        self.state = NavigationState.LOADING
        self.last_error = None
        generation = self._generation
        self.observer.on_loading_changed(True)
        outcome = NavigationState.FAILED
        try:
            await self.surface.clear_cache()
            self._raise_if_stale(generation, url)
            log.info("Cache cleared. Navigating to: %s", url)
            try:
                await self._load(url, self.timeout_s)
                mode = NavigationMode.ONLINE
            except FALLBACK_ERRORS as e:
                log.warning("live load of %s failed (%s); trying offline mirror", url, e)
                self._raise_if_stale(generation, url)
                await self._load_offline(url, e)
                mode = NavigationMode.OFFLINE

            self._raise_if_stale(generation, url)
            self._show_destination(mode)
            outcome = NavigationState.OFFLINE if mode is NavigationMode.OFFLINE else NavigationState.ONLINE
        except NavigationAbortedError:
            log.info("Navigation to %s was aborted.", url)
            outcome = NavigationState.IDLE
        except OfflineCacheUnavailableError as e:
            self._fail(url, e, surfaced=classify_navigation_error(e.cause))
        except NavigationError as e:
            self._fail(url, e, surfaced=e)
        finally:
            self.state = NavigationState.IDLE if outcome is NavigationState.FAILED else outcome
            self.observer.on_loading_changed(False)
        return outcome

    def go_home(self) -> None:
        """Abort any in-flight load and show the home surface."""
        self._generation += 1
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            log.info("aborting in-flight load")
            self.surface.stop()
            inflight.cancel()
        elif self.surface.is_loading():
            self.surface.stop()

        if not self.is_loading:
            self.state = NavigationState.IDLE
        self.active_surface = SurfaceName.HOME
        self.mode = NavigationMode.ONLINE
        self.observer.on_surface_changed(SurfaceName.HOME)
        self.observer.on_mode_changed(NavigationMode.ONLINE)
        self.observer.on_back_navigation_changed(False)
        self.observer.on_loading_changed(False)

    # ---------- Internals ----------

    async def _load(self, url: str, timeout_s: float | None) -> None:
        """Run one surface load; cancel and stop it if the deadline passes first."""
        task = asyncio.ensure_future(self.surface.load(url))
        self._inflight = task
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_s)
        except asyncio.CancelledError:
            self.surface.stop()
            task.cancel()
            raise
        finally:
            self._inflight = None

        if not done:
            self.surface.stop()
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise NavigationTimeoutError(f"Timed out after {timeout_s:g}s loading {url}")
        if task.cancelled():
            raise NavigationAbortedError(f"ERR_ABORTED: load of {url} cancelled")
        exc = task.exception()
        if exc is not None:
            raise classify_navigation_error(exc) from exc

    async def _load_offline(self, url: str, cause: NavigationError) -> None:
        entry = await self.cache.get_offline_entry(url)
        if entry is None:
            raise OfflineCacheUnavailableError(url, cause) from cause
        address = self.resolver.address_for_path(entry)
        log.info("serving %s from offline mirror %s", url, address)
        await self._load(address, None)

    def _raise_if_stale(self, generation: int, url: str) -> None:
        if generation != self._generation:
            raise NavigationAbortedError(f"ERR_ABORTED: navigation to {url} superseded by go_home")

    def _show_destination(self, mode: NavigationMode) -> None:
        self.mode = mode
        self.active_surface = SurfaceName.DESTINATION
        self.observer.on_mode_changed(mode)
        self.observer.on_surface_changed(SurfaceName.DESTINATION)
        self.observer.on_back_navigation_changed(True)

    def _fail(self, url: str, error: NavigationError, *, surfaced: NavigationError) -> None:
        self.last_error = error
        log.error("Failed to load URL %r: %s", url, error)
        self.observer.on_navigation_failed(url, surfaced)


__all__ = ["NavigationController"]
