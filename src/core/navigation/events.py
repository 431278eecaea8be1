# src/core/navigation/events.py
"""
Presentation events emitted by the navigation core.

The UI layer implements `NavigationObserver` (or subclasses `NullObserver` and
overrides what it needs) and is handed to the controller; the core never touches
widgets directly.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from src.core.mirror.errors import NavigationError
from src.schemas.models import NavigationMode, SurfaceName

log = logging.getLogger("sitemirror.events")


class NavigationObserver(Protocol):
    def on_loading_changed(self, loading: bool) -> None: ...

    def on_mode_changed(self, mode: NavigationMode) -> None: ...

    def on_back_navigation_changed(self, available: bool) -> None: ...

    def on_surface_changed(self, surface: SurfaceName) -> None: ...

    def on_navigation_failed(self, url: str, error: NavigationError) -> None: ...


class NullObserver:
    """No-op observer; subclass and override the events you care about."""

    def on_loading_changed(self, loading: bool) -> None:
        pass

    def on_mode_changed(self, mode: NavigationMode) -> None:
        pass

    def on_back_navigation_changed(self, available: bool) -> None:
        pass

    def on_surface_changed(self, surface: SurfaceName) -> None:
        pass

    def on_navigation_failed(self, url: str, error: NavigationError) -> None:
        pass


class LoggingObserver(NullObserver):
    """Writes every presentation event to the log (headless runs)."""

    def on_loading_changed(self, loading: bool) -> None:
        log.debug("loading %s", "started" if loading else "finished")

    def on_mode_changed(self, mode: NavigationMode) -> None:
        log.info("mode: %s", mode.value)

    def on_back_navigation_changed(self, available: bool) -> None:
        log.debug("back navigation %s", "available" if available else "unavailable")

    def on_surface_changed(self, surface: SurfaceName) -> None:
        log.debug("surface: %s", surface.value)

    def on_navigation_failed(self, url: str, error: NavigationError) -> None:
        log.error("Failed to load URL %r: %s", url, error)


class ObserverGroup(NullObserver):
    """Fans every event out to several subscribers, in registration order."""

    def __init__(self, observers: Iterable[NavigationObserver] = ()) -> None:
        self._observers: list[NavigationObserver] = list(observers)

    def subscribe(self, observer: NavigationObserver) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: NavigationObserver) -> None:
        self._observers = [o for o in self._observers if o is not observer]

    def on_loading_changed(self, loading: bool) -> None:
        for o in self._observers:
            o.on_loading_changed(loading)

    def on_mode_changed(self, mode: NavigationMode) -> None:
        for o in self._observers:
            o.on_mode_changed(mode)

    def on_back_navigation_changed(self, available: bool) -> None:
        for o in self._observers:
            o.on_back_navigation_changed(available)

    def on_surface_changed(self, surface: SurfaceName) -> None:
        for o in self._observers:
            o.on_surface_changed(surface)

    def on_navigation_failed(self, url: str, error: NavigationError) -> None:
        for o in self._observers:
            o.on_navigation_failed(url, error)


__all__ = ["NavigationObserver", "NullObserver", "LoggingObserver", "ObserverGroup"]
