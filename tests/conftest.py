# tests/conftest.py
from __future__ import annotations

from pathlib import Path

import pytest

from src.core.mirror.manager import OfflineCacheManager
from src.core.mirror.resolver import OfflineContentResolver
from tests.utils import FakeStrategy, make_settings, make_sites


# -------- Isolation from the real per-user environment --------
@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path):
    for var in ("SITEMIRROR_DATA_DIR", "SITEMIRROR_TIMEOUT", "SITEMIRROR_GIT", "SITEMIRROR_DEBUG"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
    yield


# -------- Domain fixtures --------
@pytest.fixture
def sites():
    return make_sites(3)


@pytest.fixture
def settings(tmp_path: Path):
    return make_settings(tmp_path)


@pytest.fixture
def manager_factory(settings, sites):
    """
    Factory for cache managers rooted in the test's tmp dir.

    Usage:
        mgr = manager_factory()                       # FakeStrategy, default files
        mgr = manager_factory(strategy=FakeStrategy(fail_for=("beta.example.test",)))
    """

    def _factory(*, strategy=None, catalog=None):
        return OfflineCacheManager(catalog or sites, settings, strategy=strategy or FakeStrategy())

    return _factory


@pytest.fixture
def resolver_for():
    def _factory(manager: OfflineCacheManager) -> OfflineContentResolver:
        return OfflineContentResolver.from_manager(manager)

    return _factory
