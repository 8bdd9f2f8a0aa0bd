"""
ImageCache - Key to generated image map with TTL eviction.

Key behaviors:
- Hits do not extend lifetime (not an LRU)
- Expired entries are evicted on lookup and by periodic sweeps
- An entry whose file vanished is dropped and reported as a miss
- Overwritten files stay on disk until a sweep finds them expired
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from src.core.entities import CacheKey, CachedArtifact, ErrorCode
from src.core.ports.storage import ArtifactStorePort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheConfig:
    timeout_seconds: float = 120.0


DEFAULT_CACHE_CONFIG = CacheConfig()


@dataclass(frozen=True)
class _RetiredFile:
    path: str
    created_at: datetime


class ImageCache:
    def __init__(self, store: ArtifactStorePort, config: CacheConfig | None = None) -> None:
        self._store = store
        self._timeout = (config or DEFAULT_CACHE_CONFIG).timeout_seconds
        self._entries: dict[CacheKey, CachedArtifact] = {}
        self._retired: list[_RetiredFile] = []

    @property
    def timeout(self) -> float:
        return self._timeout

    def set_timeout(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("Cache timeout must not be negative")
        self._timeout = seconds

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def _expired(self, created_at: datetime, now: datetime) -> bool:
        return (now - created_at).total_seconds() >= self._timeout

    def lookup(self, key: CacheKey, now: datetime) -> CachedArtifact | None:
        artifact = self._entries.get(key)
        if artifact is None:
            return None

        if self._expired(artifact.created_at, now):
            self._remove(key)
            return None

        if not artifact.exists():
            logger.warning(
                "%s: cached image missing, re-rendering: %s",
                ErrorCode.CACHE_IO_FAILURE.value,
                artifact.file_path,
            )
            del self._entries[key]
            return None

        return artifact

    def insert(self, artifact: CachedArtifact) -> None:
        previous = self._entries.get(artifact.key)
        if previous is not None and previous.file_path != artifact.file_path:
            self._retired.append(_RetiredFile(previous.file_path, previous.created_at))
        self._entries[artifact.key] = artifact

    def evict_expired(self, now: datetime) -> int:
        """Remove expired entries and their files. Returns evicted entry count."""
        expired = [
            key
            for key, artifact in self._entries.items()
            if self._expired(artifact.created_at, now)
        ]
        for key in expired:
            self._remove(key)

        keep: list[_RetiredFile] = []
        for retired in self._retired:
            if self._expired(retired.created_at, now):
                self._store.delete(retired.path)
            else:
                keep.append(retired)
        self._retired = keep

        if expired:
            logger.debug("Evicted %d cached images", len(expired))
        return len(expired)

    def drop_all(self) -> None:
        for artifact in self._entries.values():
            self._store.delete(artifact.file_path)
        for retired in self._retired:
            self._store.delete(retired.path)
        self._entries.clear()
        self._retired.clear()

    def _remove(self, key: CacheKey) -> None:
        artifact = self._entries.pop(key)
        self._store.delete(artifact.file_path)
