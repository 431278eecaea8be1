# src/inputs/settings.py
"""
Settings loader for the offline mirror.

Goals
-----
- File-first settings with validation via Pydantic.
- Optional: no file means defaults.
- Minimal environment-variable overrides for CI/CLI convenience.

Supported JSON shapes
---------------------
1) Flat (root = MirrorSettings fields)
   { "navigation_timeout_s": 8, "data_dir": "/tmp/mirror" }

2) Structured
   { "settings": { ... MirrorSettings ... }, "sites": [ ... optional catalog ... ] }

Environment overrides (optional)
--------------------------------
- SITEMIRROR_DATA_DIR  -> data_dir
- SITEMIRROR_TIMEOUT   -> navigation_timeout_s (float)
- SITEMIRROR_GIT       -> git_executable

Public API
----------
- class SettingsLoader:
    - load(path: str | Path | None) -> MirrorSettings
    - load_json(text: str) -> MirrorSettings
- function load_settings(path: str | Path | None) -> MirrorSettings  (convenience)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from pydantic import ValidationError

from src.schemas.models import MirrorSettings

log = logging.getLogger("sitemirror.config")


@dataclass(frozen=True)
class SettingsLoader:
    """
    File-first settings loader with light env overrides.

    Responsibilities:
        - Read JSON from a file or string
        - Accept both the flat and structured shapes
        - Validate with Pydantic
        - Apply environment overrides
    """

    env_prefix: str = "SITEMIRROR_"

    # ---------- Public API ----------

    def load(self, path: str | Path | None = None) -> MirrorSettings:
        if path is None:
            return self._apply_env_overrides(self._parse_root({}))
        raw = self._read_json_file(Path(path))
        return self._apply_env_overrides(self._parse_root(self._unwrap(raw)))

    def load_json(self, text: str) -> MirrorSettings:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON payload: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError("Settings JSON must be an object.")
        return self._apply_env_overrides(self._parse_root(self._unwrap(raw)))

    # ---------- Internals ----------

    def _read_json_file(self, p: Path) -> dict[str, Any]:
        if not p.exists():
            raise FileNotFoundError(f"Settings file not found: {p}")
        if p.suffix.lower() != ".json":
            raise ValueError(f"Unsupported settings format for {p.name}; only .json is supported.")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {p}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Settings JSON in {p} must be an object.")
        return cast(dict[str, Any], data)

    def _unwrap(self, raw: dict[str, Any]) -> dict[str, Any]:
        settings = raw.get("settings")
        return settings if isinstance(settings, dict) else raw

    def _parse_root(self, data: dict[str, Any]) -> MirrorSettings:
        try:
            return MirrorSettings.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Settings validation failed:\n{e}") from e

    def _apply_env_overrides(self, cfg: MirrorSettings) -> MirrorSettings:
        prefix = self.env_prefix
        updates: dict[str, Any] = {}

        data_dir = os.getenv(f"{prefix}DATA_DIR")
        if data_dir:
            updates["data_dir"] = Path(data_dir).expanduser()

        timeout = os.getenv(f"{prefix}TIMEOUT")
        if timeout:
            try:
                updates["navigation_timeout_s"] = float(timeout)
            except ValueError:
                log.warning("ignoring non-numeric %sTIMEOUT=%r", prefix, timeout)

        git = os.getenv(f"{prefix}GIT")
        if git:
            updates["git_executable"] = git.strip()

        if not updates:
            return cfg
        return self._parse_root({**cfg.model_dump(), **updates})


def load_settings(path: str | Path | None = None) -> MirrorSettings:
    """Convenience wrapper for one-shot callers."""
    return SettingsLoader().load(path)


__all__ = ["SettingsLoader", "load_settings"]
