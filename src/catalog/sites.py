# src/catalog/sites.py
"""
The fixed site catalog, plus a loader for alternative catalogs kept in JSON.

JSON shape: a list of sites, or an object with a "sites" list.
    [{"name": "...", "url": "http://...", "repository": {"url": "...", "branch": "main", "entryFile": "index.html"}}]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from src.core.mirror.paths import folder_name_for, origin_of
from src.schemas.models import RepositorySource, Site

DEFAULT_SITES: tuple[Site, ...] = (
    Site(
        name="www.zssdmr.dpdns.org",
        url="http://www.zssdmr.dpdns.org",
        repository=RepositorySource(
            url="https://github.com/zssdmrofficial/zssdmrofficial.github.io.git",
            branch="main",
            entry_file="index.html",
        ),
    ),
    Site(
        name="ussr.zssdmr.dpdns.org",
        url="http://ussr.zssdmr.dpdns.org",
        repository=RepositorySource(
            url="https://github.com/zssdmrofficial/ussr.zssdmrofficial.github.io.git",
            branch="main",
            entry_file="index.html",
        ),
    ),
    Site(
        name="pinball.zssdmr.dpdns.org",
        url="http://pinball.zssdmr.dpdns.org",
        repository=RepositorySource(
            url="https://github.com/zssdmrofficial/pinball.zssdmrofficial.github.io.git",
            branch="main",
            entry_file="index.html",
        ),
    ),
)

_SITES_ADAPTER = TypeAdapter(list[Site])


def parse_catalog(data: Any) -> tuple[Site, ...]:
    """Validate raw catalog data. Duplicate origins, and sites sharing a cache folder, are rejected."""
    if isinstance(data, dict):
        data = data.get("sites")
    if not isinstance(data, list):
        raise ValueError('Catalog must be a list of sites or an object with a "sites" list.')
    try:
        sites = _SITES_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise ValueError(f"Catalog validation failed:\n{e}") from e

    seen: dict[str, str] = {}
    folders: dict[str, str] = {}
    for site in sites:
        origin = origin_of(site.url)
        if origin in seen:
            raise ValueError(f"Duplicate origin {origin} for sites {seen[origin]!r} and {site.name!r}")
        seen[origin] = site.name
        folder = folder_name_for(site.url)
        if folder in folders:
            raise ValueError(f"Sites {folders[folder]!r} and {site.name!r} would share the cache folder {folder!r}")
        folders[folder] = site.name
    return tuple(sites)


def load_catalog(path: str | Path | None = None) -> tuple[Site, ...]:
    """DEFAULT_SITES when `path` is None, else the validated catalog in that JSON file."""
    if path is None:
        return DEFAULT_SITES
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Catalog file not found: {p}")
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {p}: {e}") from e
    return parse_catalog(raw)


__all__ = ["DEFAULT_SITES", "parse_catalog", "load_catalog"]
