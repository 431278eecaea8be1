# src/core/navigation/surfaces.py
"""
Content surfaces: the thing a navigation loads a URL into.

`ContentSurface` is the contract the controller drives. A GUI shell adapts its web
view to it; `HttpSurface` is the headless implementation used by the CLI. It streams
live pages with requests and reads mirrored pages through the content resolver.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Protocol

import requests

from src.core.mirror.errors import NavigationAbortedError
from src.core.mirror.resolver import OfflineContentResolver
from src.schemas.models import MirrorSettings

log = logging.getLogger("sitemirror.surface")

_STREAM_CHUNK = 64 * 1024


class ContentSurface(Protocol):
    async def clear_cache(self) -> None: ...

    async def load(self, url: str) -> None: ...

    def stop(self) -> None: ...

    def is_loading(self) -> bool: ...


class HttpSurface:
    """
    Headless surface.

    - Live URLs: GET with streaming. Every transfer gets its own stop event, checked
      between chunks; `stop()` sets the event of every transfer still running, so a
      timed-out transfer ends even after a newer load has started.
    - Virtual mirror addresses: served via `OfflineContentResolver.read`.
    - Non-2xx live responses count as loaded pages, as in a browser; only transport
      failures raise.
    """

    def __init__(
        self,
        resolver: OfflineContentResolver | None = None,
        settings: MirrorSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.resolver = resolver
        self.settings = settings or MirrorSettings()
        self._session = session or requests.Session()
        self._lock = threading.Lock()
        self._transfers: set[threading.Event] = set()
        self._reads = 0
        self.current_url: str | None = None
        self.content: bytes | None = None
        self.content_type: str | None = None
        self.status_code: int | None = None

    async def clear_cache(self) -> None:
        self._session.cookies.clear()
        self.content = None
        self.content_type = None
        self.status_code = None

    async def load(self, url: str) -> None:
        if self.resolver is not None and self.resolver.handles(url):
            self._reads += 1
            try:
                body, ctype = await asyncio.to_thread(self.resolver.read, url)
            finally:
                self._reads -= 1
            status = 200
        else:
            stop = threading.Event()
            with self._lock:
                self._transfers.add(stop)
            try:
                status, body, ctype = await asyncio.to_thread(self._fetch, url, stop)
            except asyncio.CancelledError:
                # the worker thread outlives the cancelled await
                stop.set()
                with self._lock:
                    self._transfers.discard(stop)
                raise
        self.current_url = url
        self.status_code = status
        self.content = body
        self.content_type = ctype

    def _fetch(self, url: str, stop: threading.Event) -> tuple[int, bytes, str]:
        headers = {"User-Agent": self.settings.user_agent}
        try:
            with self._session.get(url, headers=headers, timeout=self.settings.navigation_timeout_s, stream=True) as resp:
                chunks: list[bytes] = []
                for chunk in resp.iter_content(chunk_size=_STREAM_CHUNK):
                    if stop.is_set():
                        raise NavigationAbortedError(f"ERR_ABORTED: load of {url} stopped")
                    if chunk:
                        chunks.append(chunk)
                ctype = resp.headers.get("Content-Type", "application/octet-stream")
                return resp.status_code, b"".join(chunks), ctype
        finally:
            with self._lock:
                self._transfers.discard(stop)

    def stop(self) -> None:
        with self._lock:
            running = list(self._transfers)
        if running or self._reads:
            log.debug("stopping %d in-flight transfer(s)", len(running))
        for event in running:
            event.set()

    def is_loading(self) -> bool:
        with self._lock:
            transferring = any(not e.is_set() for e in self._transfers)
        return transferring or self._reads > 0


__all__ = ["ContentSurface", "HttpSurface"]
