# tests/mirror/test_cache_manager.py
"""
Unit tests for src/core/mirror/manager.py

Covers:
  - Startup rehydration and lazy re-verification of index entries.
  - Refresh coalescing (one pass for N concurrent callers).
  - Partial-failure isolation across sites.
  - Stage-then-rename publish, including interruption before the swap.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import pytest

from src.core.mirror import manager as manager_mod
from src.core.mirror.errors import EntryFileMissingError, SyncError
from src.core.mirror.manager import OfflineCacheManager, publish_tree
from src.core.mirror.paths import folder_name_for
from tests.utils import FakeStrategy, publish_on_disk, write_tree

# ---------- Startup / lookups ----------


def test_initialize_from_disk_indexes_only_existing_entries(manager_factory, settings, sites):
    publish_on_disk(settings, sites[0])
    publish_on_disk(settings, sites[2], {"other.html": "no entry here"})
    mgr = manager_factory()

    asyncio.run(mgr.initialize_from_disk())
    asyncio.run(mgr.initialize_from_disk())  # idempotent

    assert settings.cache_root.is_dir()
    results = [asyncio.run(mgr.get_offline_entry(s.url)) for s in sites]
    assert results[0] == settings.cache_root / folder_name_for(sites[0].url) / "index.html"
    assert results[1] is None
    assert results[2] is None
    assert list(mgr.indexed_entries()) == ["http://alpha.example.test"]


def test_get_offline_entry_drops_vanished_entries_and_rediscovers(manager_factory, settings, sites):
    root = publish_on_disk(settings, sites[0])
    mgr = manager_factory()
    asyncio.run(mgr.initialize_from_disk())

    shutil.rmtree(root)
    assert asyncio.run(mgr.get_offline_entry("http://alpha.example.test/some/page")) is None
    assert mgr.indexed_entries() == {}

    publish_on_disk(settings, sites[0])
    found = asyncio.run(mgr.get_offline_entry("http://alpha.example.test/"))
    assert found == root / "index.html"
    assert mgr.indexed_entries()["http://alpha.example.test"] == found


def test_get_offline_entry_for_unknown_or_invalid_urls(manager_factory):
    mgr = manager_factory()
    assert asyncio.run(mgr.get_offline_entry("http://unknown.example.test")) is None
    assert asyncio.run(mgr.get_offline_entry("not a url")) is None


def test_site_root_lookups(manager_factory, settings, sites):
    mgr = manager_factory()
    expected = settings.cache_root / "alpha.example.test"
    assert mgr.site_root_for_origin("http://alpha.example.test") == expected
    assert mgr.site_root_for_host("ALPHA.example.test") == expected
    assert mgr.site_root_for_host("nope.test") is None
    assert set(mgr.host_roots()) == {s.hostname for s in sites}


def test_interrupted_publish_is_recovered_at_startup(manager_factory, settings, sites):
    root = settings.cache_root / folder_name_for(sites[0].url)
    write_tree(root.with_name(root.name + ".old"), {"index.html": "previous"})
    mgr = manager_factory()

    asyncio.run(mgr.initialize_from_disk())

    assert (root / "index.html").read_text() == "previous"
    assert asyncio.run(mgr.get_offline_entry(sites[0].url)) == root / "index.html"


# ---------- Refresh ----------


def test_refresh_publishes_every_site(manager_factory, settings, sites):
    strategy = FakeStrategy()
    mgr = manager_factory(strategy=strategy)

    summary = asyncio.run(mgr.refresh_all_sites())

    assert summary.updated == [s.name for s in sites]
    assert summary.failed == []
    for s in sites:
        root = settings.cache_root / folder_name_for(s.url)
        assert (root / "assets" / "logo.png").exists()
        assert not root.with_name(root.name + ".tmp").exists()
        assert asyncio.run(mgr.get_offline_entry(s.url)) == root / "index.html"


def test_one_failing_site_does_not_abort_the_batch(manager_factory, sites):
    strategy = FakeStrategy(fail_for=("beta.example.test",))
    mgr = manager_factory(strategy=strategy)

    summary = asyncio.run(mgr.refresh_all_sites())

    assert len(summary.updated) == 2
    assert len(summary.failed) == 1
    assert summary.failed[0].site == "beta.example.test"
    assert summary.failed[0].reason
    assert strategy.calls == [s.name for s in sites]


def test_unexpected_strategy_exceptions_become_failures(manager_factory):
    class Exploding(FakeStrategy):
        async def sync(self, site, destination, staging):
            raise KeyError("boom")

    summary = asyncio.run(manager_factory(strategy=Exploding()).refresh_all_sites())
    assert summary.updated == []
    assert [f.site for f in summary.failed] == ["alpha.example.test", "beta.example.test", "gamma.example.test"]
    assert all("KeyError" in f.reason for f in summary.failed)


@pytest.mark.timeout(5)
def test_concurrent_refreshes_share_one_pass(manager_factory, sites):
    strategy = FakeStrategy(delay=0.02)
    mgr = manager_factory(strategy=strategy)

    async def go():
        results = await asyncio.gather(*(mgr.refresh_all_sites() for _ in range(5)))
        return results, mgr.refresh_in_flight

    results, in_flight_after = asyncio.run(go())

    assert strategy.calls == [s.name for s in sites]
    assert all(r is results[0] for r in results)
    assert in_flight_after is False


def test_marker_cleared_after_failed_pass_so_next_refresh_runs(manager_factory, sites):
    strategy = FakeStrategy(fail_for=tuple(s.name for s in sites))
    mgr = manager_factory(strategy=strategy)

    first = asyncio.run(mgr.refresh_all_sites())
    strategy.fail_for.clear()
    second = asyncio.run(mgr.refresh_all_sites())

    assert len(first.failed) == 3
    assert len(second.updated) == 3
    assert len(strategy.calls) == 6


# ---------- Sync / publish ----------


def test_missing_entry_file_is_a_sync_failure_and_keeps_previous(manager_factory, settings, sites):
    root = publish_on_disk(settings, sites[0], {"index.html": "v1"})
    mgr = manager_factory(strategy=FakeStrategy({"readme.md": "no entry"}))
    asyncio.run(mgr.initialize_from_disk())

    with pytest.raises(EntryFileMissingError, match="Entry file not found"):
        asyncio.run(mgr.sync_site(sites[0]))

    assert (root / "index.html").read_text() == "v1"
    assert not (root / "readme.md").exists()
    assert not root.with_name(root.name + ".tmp").exists()


def test_failure_before_swap_leaves_previous_tree_intact(manager_factory, settings, sites, monkeypatch):
    root = publish_on_disk(settings, sites[0], {"index.html": "v1", "page.html": "old"})
    mgr = manager_factory(strategy=FakeStrategy({"index.html": "v2"}))
    asyncio.run(mgr.initialize_from_disk())

    def interrupted(tree: Path, destination: Path) -> None:
        raise RuntimeError("power cut before rename")

    monkeypatch.setattr(manager_mod, "publish_tree", interrupted)
    with pytest.raises(SyncError, match="power cut"):
        asyncio.run(mgr.sync_site(sites[0]))

    assert (root / "index.html").read_text() == "v1"
    assert (root / "page.html").read_text() == "old"
    assert not root.with_name(root.name + ".tmp").exists()
    assert asyncio.run(mgr.get_offline_entry(sites[0].url)) == root / "index.html"


def test_cancellation_after_staging_on_first_sync_leaves_nothing(manager_factory, settings, sites):
    staged = asyncio.Event()

    async def hold(site, staging):
        staged.set()
        await asyncio.Event().wait()

    mgr = manager_factory(strategy=FakeStrategy(after_staging=hold))

    async def go():
        task = asyncio.create_task(mgr.sync_site(sites[0]))
        await staged.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(go())

    root = settings.cache_root / folder_name_for(sites[0].url)
    assert not root.exists()
    assert not root.with_name(root.name + ".tmp").exists()
    assert mgr.indexed_entries() == {}


def test_successful_sync_replaces_tree_wholesale(manager_factory, settings, sites):
    root = publish_on_disk(settings, sites[0], {"index.html": "v1", "stale.html": "gone soon"})
    mgr = manager_factory(strategy=FakeStrategy({"index.html": "v2"}))

    entry = asyncio.run(mgr.sync_site(sites[0]))

    assert entry == root / "index.html"
    assert entry.read_text() == "v2"
    assert not (root / "stale.html").exists()
    assert not root.with_name(root.name + ".old").exists()


def test_publish_tree_restores_previous_when_swap_fails(tmp_path: Path):
    dest = tmp_path / "site"
    write_tree(dest, {"index.html": "v1"})

    with pytest.raises(OSError):
        publish_tree(tmp_path / "does-not-exist", dest)

    assert (dest / "index.html").read_text() == "v1"
    assert not (tmp_path / "site.old").exists()


def test_in_place_update_is_not_republished(settings, sites):
    class InPlace(FakeStrategy):
        async def sync(self, site, destination, staging):
            self.calls.append(site.name)
            write_tree(destination, {"index.html": "updated in place"})
            return destination

    mgr = OfflineCacheManager(sites[:1], settings, strategy=InPlace())
    entry = asyncio.run(mgr.sync_site(sites[0]))
    assert entry.read_text() == "updated in place"
