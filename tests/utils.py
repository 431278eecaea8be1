# tests/utils.py
"""
Single source of truth for test data, factories, and fakes.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

import asyncio
import io
import zipfile
from collections.abc import Callable, Mapping
from pathlib import Path

from src.core.mirror.errors import NavigationError, SyncError
from src.core.mirror.paths import folder_name_for
from src.core.navigation.events import NullObserver
from src.schemas.models import MirrorSettings, NavigationMode, RepositorySource, Site, SurfaceName

# -----------------------------
# Global defaults (edit once)
# -----------------------------

DEFAULT_ENTRY_HTML = "<html><body><img src='assets/logo.png'></body></html>"
DEFAULT_FILES: dict[str, str | bytes] = {
    "index.html": DEFAULT_ENTRY_HTML,
    "assets/logo.png": b"\x89PNG\r\n\x1a\nfake",
}

# -----------------------------
# Catalog / settings factories
# -----------------------------


def make_site(host: str, *, entry_file: str = "index.html", repo: str | None = None, scheme: str = "http") -> Site:
    return Site(
        name=host,
        url=f"{scheme}://{host}",
        repository=RepositorySource(
            url=repo or f"https://github.com/example/{host.split('.')[0]}.git",
            branch="main",
            entry_file=entry_file,
        ),
    )


def make_sites(n: int = 3) -> tuple[Site, ...]:
    names = ("alpha.example.test", "beta.example.test", "gamma.example.test", "delta.example.test")
    return tuple(make_site(h) for h in names[:n])


def make_settings(tmp_path: Path, **overrides) -> MirrorSettings:
    data = {"data_dir": tmp_path / "data", "navigation_timeout_s": 0.2}
    data.update(overrides)
    return MirrorSettings(**data)


def write_tree(root: Path, files: Mapping[str, str | bytes]) -> None:
    for rel, body in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(body, bytes):
            target.write_bytes(body)
        else:
            target.write_text(body, encoding="utf-8")


def publish_on_disk(settings: MirrorSettings, site: Site, files: Mapping[str, str | bytes] | None = None) -> Path:
    """Lay out a published mirror for `site` directly on disk; returns its root."""
    root = settings.cache_root / folder_name_for(site.url)
    write_tree(root, files if files is not None else DEFAULT_FILES)
    return root


def zip_bytes(files: Mapping[str, str | bytes], *, top: str | None = "repo-main") -> bytes:
    """In-memory snapshot archive; `top` nests everything one level deep like a branch snapshot."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        if top:
            zf.writestr(f"{top}/", "")
        for rel, body in files.items():
            name = f"{top}/{rel}" if top else rel
            zf.writestr(name, body)
    return buf.getvalue()


# -----------------------------
# Fakes
# -----------------------------


class FakeStrategy:
    """Writes `files` into staging; fails for sites named in `fail_for`."""

    name = "fake"

    def __init__(
        self,
        files: Mapping[str, str | bytes] | None = None,
        *,
        fail_for: tuple[str, ...] = (),
        delay: float = 0.0,
        after_staging: Callable[[Site, Path], object] | None = None,
    ) -> None:
        self.files = dict(files) if files is not None else dict(DEFAULT_FILES)
        self.fail_for = set(fail_for)
        self.delay = delay
        self.after_staging = after_staging
        self.calls: list[str] = []

    async def sync(self, site: Site, destination: Path, staging: Path) -> Path:
        self.calls.append(site.name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if site.name in self.fail_for:
            raise SyncError(f"simulated failure for {site.name}")
        write_tree(staging, self.files)
        if self.after_staging is not None:
            result = self.after_staging(site, staging)
            if asyncio.iscoroutine(result):
                await result
        return staging


class RecordingObserver(NullObserver):
    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []
        self.failures: list[tuple[str, NavigationError]] = []

    def on_loading_changed(self, loading: bool) -> None:
        self.events.append(("loading", loading))

    def on_mode_changed(self, mode: NavigationMode) -> None:
        self.events.append(("mode", mode))

    def on_back_navigation_changed(self, available: bool) -> None:
        self.events.append(("back", available))

    def on_surface_changed(self, surface: SurfaceName) -> None:
        self.events.append(("surface", surface))

    def on_navigation_failed(self, url: str, error: NavigationError) -> None:
        self.failures.append((url, error))

    def of(self, kind: str) -> list[object]:
        return [v for k, v in self.events if k == kind]


class FakeSurface:
    """
    Scripted content surface.

    `live` maps a URL to one of:
      - "ok"       load succeeds immediately
      - "hang"     load never finishes on its own
      - Exception  raised from load
    Unlisted URLs (including virtual mirror addresses) load fine.
    `clear_delay` makes clear_cache take that long.
    """

    def __init__(self, live: Mapping[str, object] | None = None, *, clear_delay: float = 0.0) -> None:
        self.live = dict(live or {})
        self.clear_delay = clear_delay
        self.loads: list[str] = []
        self.completed: list[str] = []
        self.cleared = 0
        self.stops = 0
        self.cancelled = 0
        self._loading = False

    async def clear_cache(self) -> None:
        self.cleared += 1
        if self.clear_delay:
            await asyncio.sleep(self.clear_delay)

    async def load(self, url: str) -> None:
        self.loads.append(url)
        self._loading = True
        try:
            action = self.live.get(url, "ok")
            if action == "hang":
                await asyncio.Event().wait()
            if isinstance(action, BaseException):
                raise action
            self.completed.append(url)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self._loading = False

    def stop(self) -> None:
        self.stops += 1

    def is_loading(self) -> bool:
        return self._loading


__all__ = [
    "DEFAULT_ENTRY_HTML",
    "DEFAULT_FILES",
    "make_site",
    "make_sites",
    "make_settings",
    "write_tree",
    "publish_on_disk",
    "zip_bytes",
    "FakeStrategy",
    "RecordingObserver",
    "FakeSurface",
]
