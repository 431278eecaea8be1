# src/core/mirror/__init__.py
from .errors import (
    ArchiveDownloadError,
    ArchiveLayoutError,
    CommandError,
    EntryFileMissingError,
    MirrorError,
    PathTraversalError,
    SyncError,
    UnknownMirrorHostError,
    UnsupportedRepositoryUrlError,
)
from .manager import OfflineCacheManager, publish_tree
from .paths import folder_name_for, origin_of
from .resolver import OfflineContentResolver
from .strategies import (
    ArchiveSync,
    StrategySelector,
    SyncStrategy,
    VersionControlSync,
    parse_repository_url,
)

__all__ = [
    "MirrorError",
    "SyncError",
    "CommandError",
    "UnsupportedRepositoryUrlError",
    "ArchiveDownloadError",
    "ArchiveLayoutError",
    "EntryFileMissingError",
    "PathTraversalError",
    "UnknownMirrorHostError",
    "OfflineCacheManager",
    "publish_tree",
    "OfflineContentResolver",
    "SyncStrategy",
    "VersionControlSync",
    "ArchiveSync",
    "StrategySelector",
    "parse_repository_url",
    "origin_of",
    "folder_name_for",
]
