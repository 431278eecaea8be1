# src/core/mirror/resolver.py
"""
Serve mirrored files under a dedicated virtual scheme.

Address shape
-------------
    <scheme>://<original-host>/<url-encoded relative path>[#fragment]

The host segment keeps the live site's host so relative references inside mirrored
pages resolve back into the same virtual origin, which is distinct from both the live
origin and the application's own UI origin.

Guardrails
----------
- The decoded path is joined onto the host's cache root and canonicalized
  (symlinks followed). Anything that does not land on or under the canonical root
  is a PathTraversalError, logged on the security logger and never retried.
"""

from __future__ import annotations

import logging
import mimetypes
from collections.abc import Mapping
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit

from .errors import PathTraversalError, UnknownMirrorHostError
from .paths import is_within, origin_of

log = logging.getLogger("sitemirror.resolver")
security_log = logging.getLogger("sitemirror.security")

DEFAULT_SCHEME = "offline-mirror"
_DIRECTORY_INDEX = "index.html"


class OfflineContentResolver:
    def __init__(self, roots: Mapping[str, Path], scheme: str = DEFAULT_SCHEME) -> None:
        self.scheme = scheme.lower()
        self._roots: dict[str, Path] = {host.lower(): Path(root) for host, root in roots.items()}

    @classmethod
    def from_manager(cls, manager, scheme: str | None = None) -> OfflineContentResolver:
        """Precompute host → cache root for every catalog site."""
        return cls(manager.host_roots(), scheme or manager.settings.virtual_scheme)

    @property
    def hosts(self) -> list[str]:
        return sorted(self._roots)

    def handles(self, address: str) -> bool:
        return urlsplit(address).scheme.lower() == self.scheme

    # ---------- Building addresses ----------

    def address_for(self, host: str, relative_path: str = "", fragment: str | None = None) -> str:
        encoded = quote(relative_path.replace("\\", "/").lstrip("/"), safe="/")
        address = f"{self.scheme}://{host.lower()}/{encoded}"
        return f"{address}#{fragment}" if fragment else address

    def address_for_url(self, url: str, relative_path: str = "") -> str:
        host = origin_of(url).split("://", 1)[1]
        return self.address_for(host, relative_path)

    def address_for_path(self, path: Path, fragment: str | None = None) -> str:
        """Virtual address of a file that lives under one of the known cache roots."""
        target = Path(path).resolve()
        for host, root in self._roots.items():
            canonical_root = root.resolve()
            if is_within(target, canonical_root):
                return self.address_for(host, target.relative_to(canonical_root).as_posix(), fragment)
        raise UnknownMirrorHostError(f"{path} is not inside any mirrored site")

    # ---------- Resolution ----------

    def resolve(self, address: str) -> Path:
        """
        Canonical file-system path for a virtual address.

        Raises:
            ValueError: address does not use this resolver's scheme
            UnknownMirrorHostError: no cache root for the address host
            PathTraversalError: the path escapes the host's cache root
        """
        parts = urlsplit(address)
        if parts.scheme.lower() != self.scheme:
            raise ValueError(f"not a {self.scheme}:// address: {address!r}")

        host = parts.netloc.lower()
        root = self._roots.get(host)
        if root is None:
            raise UnknownMirrorHostError(f"No offline mirror for host {host!r}")
        return self.resolve_relative(root, unquote(parts.path), host=host)

    def resolve_relative(self, root: Path, decoded_path: str, *, host: str = "") -> Path:
        canonical_root = Path(root).resolve()
        relative = decoded_path.lstrip("/\\")
        candidate: Path | None = None
        if "\x00" not in relative:
            try:
                candidate = (canonical_root / relative).resolve()
            except (ValueError, OSError):
                candidate = None
        if candidate is None or not is_within(candidate, canonical_root):
            security_log.warning("blocked path traversal for host %r: %r", host, decoded_path)
            raise PathTraversalError(f"Request for {decoded_path!r} escapes the mirror root of {host or root}")
        return candidate

    def read(self, address: str) -> tuple[bytes, str]:
        """
        Bytes and MIME type for a virtual address. Directories serve their index.html.

        Raises FileNotFoundError when the resolved path does not exist.
        """
        path = self.resolve(address)
        if path.is_dir():
            path = self.resolve_relative(path, _DIRECTORY_INDEX, host=urlsplit(address).netloc)
        if not path.is_file():
            raise FileNotFoundError(str(path))
        mime, _ = mimetypes.guess_type(path.name)
        log.debug("serving %s (%s)", path, mime)
        return path.read_bytes(), mime or "application/octet-stream"


__all__ = ["DEFAULT_SCHEME", "OfflineContentResolver"]
