# main.py
"""
Entry Point: Site Mirror

Purpose
-------
Headless driver for the offline-mirror core:
  - refresh   sync every catalog site into the per-user cache (prints a JSON summary)
  - status    list each site's origin and its cached entry file
  - open      navigate to a URL with timeout-driven offline fallback
  - resolve   map a virtual mirror address to the file it serves

Usage
-----
    python main.py refresh
    python main.py status
    python main.py open http://www.zssdmr.dpdns.org
    python main.py resolve offline-mirror://www.zssdmr.dpdns.org/index.html
    python main.py --config settings.json --catalog sites.json --debug refresh
"""

from __future__ import annotations

import argparse
import asyncio
import json

from src.catalog.sites import load_catalog
from src.core.log import configure_logging
from src.core.mirror.errors import MirrorError, PathTraversalError
from src.core.mirror.paths import origin_of
from src.core.navigation import AppContext, LoggingObserver, build_context
from src.inputs.settings import load_settings
from src.schemas.models import NavigationState


async def _refresh(ctx: AppContext) -> int:
    await ctx.startup()
    summary = await ctx.refresh_cache()
    print(json.dumps(summary.model_dump(), indent=2))
    return 0 if summary.ok else 1


async def _status(ctx: AppContext) -> int:
    await ctx.startup()
    for site in ctx.sites:
        entry = await ctx.cache.get_offline_entry(site.url)
        print(f"{site.name}\t{origin_of(site.url)}\t{entry or '-'}")
    return 0


async def _open(ctx: AppContext, url: str) -> int:
    await ctx.startup()
    outcome = await ctx.navigate(url)
    if outcome is None or outcome is NavigationState.FAILED:
        err = ctx.navigation.last_error
        print(f"failed: {err}" if err else "failed")
        return 1
    print(f"{outcome.value}\t{ctx.navigation.mode.value}")
    return 0


def _resolve(ctx: AppContext, address: str) -> int:
    try:
        print(ctx.resolver.resolve(address))
    except PathTraversalError as e:
        print(f"denied: {e}")
        return 2
    except (MirrorError, ValueError) as e:
        print(f"error: {e}")
        return 1
    return 0


def main() -> int:
    p = argparse.ArgumentParser(description="Offline mirror for a fixed site catalog")
    p.add_argument("--config", type=str, default=None, help="Settings JSON (optional)")
    p.add_argument("--catalog", type=str, default=None, help="Site catalog JSON (defaults to the built-in catalog)")
    p.add_argument("--debug", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("refresh", help="Sync all sites into the offline cache")
    sub.add_parser("status", help="Show cached entry files")
    p_open = sub.add_parser("open", help="Navigate to a URL with offline fallback")
    p_open.add_argument("url")
    p_resolve = sub.add_parser("resolve", help="Resolve a virtual mirror address")
    p_resolve.add_argument("address")
    args = p.parse_args()

    settings = load_settings(args.config)
    configure_logging(debug=args.debug, log_dir=settings.data_dir / "logs")
    ctx = build_context(settings, load_catalog(args.catalog), observers=[LoggingObserver()])

    if args.command == "refresh":
        return asyncio.run(_refresh(ctx))
    if args.command == "status":
        return asyncio.run(_status(ctx))
    if args.command == "open":
        return asyncio.run(_open(ctx, args.url))
    return _resolve(ctx, args.address)


if __name__ == "__main__":
    raise SystemExit(main())
