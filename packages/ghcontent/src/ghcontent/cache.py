"""Expiring response cache backed by a persistent key/value file."""

import json
import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator
from urllib.parse import quote

logger = logging.getLogger(__name__)

CACHE_PREFIX = "gh_cache_v2_"
DEFAULT_TTL = 5 * 60  # seconds


class StorageQuotaExceeded(OSError):
    """Raised when a write would push storage past its quota."""


class LocalStorage:
    """
    String key/value store mirrored to a single JSON file.

    With ``path=None`` the store lives in memory only. Every mutation
    rewrites the file, so the on-disk state always matches the last write.
    """

    def __init__(self, path: str | Path | None = None, quota_bytes: int | None = None):
        self.path = Path(path).expanduser() if path else None
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed storage file %s", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self, items: dict[str, str]) -> None:
        encoded = json.dumps(items, ensure_ascii=False)
        if self.quota_bytes is not None and len(encoded.encode("utf-8")) > self.quota_bytes:
            raise StorageQuotaExceeded(f"Storage quota of {self.quota_bytes} bytes exceeded")
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            f.write(encoded)
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        items = {**self._items, key: value}
        self._flush(items)
        self._items = items

    def remove_item(self, key: str) -> None:
        if key not in self._items:
            return
        items = {k: v for k, v in self._items.items() if k != key}
        self._flush(items)
        self._items = items

    def remove_many(self, keys: list[str]) -> None:
        doomed = set(keys)
        if not doomed & self._items.keys():
            return
        items = {k: v for k, v in self._items.items() if k not in doomed}
        self._flush(items)
        self._items = items

    def keys(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)


class CacheKind(str, Enum):
    """Operation a cached response belongs to."""

    TREE = "tree"
    CONTENT = "content"
    METADATA = "meta"


@dataclass(frozen=True)
class CacheKey:
    """Structured cache key: operation kind plus its parameters."""

    kind: CacheKind
    parts: tuple[str, ...]

    @classmethod
    def tree(cls, owner: str, repo: str, branch: str) -> "CacheKey":
        return cls(CacheKind.TREE, (owner, repo, branch))

    @classmethod
    def content(cls, owner: str, repo: str, branch: str, path: str) -> "CacheKey":
        return cls(CacheKind.CONTENT, (owner, repo, branch, path))

    @classmethod
    def metadata(cls, owner: str, repo: str, path: str) -> "CacheKey":
        return cls(CacheKind.METADATA, (owner, repo, path))

    def format(self, prefix: str = CACHE_PREFIX) -> str:
        # Percent-encoding keeps ":" out of every part.
        encoded = ":".join(quote(part, safe="") for part in self.parts)
        return f"{prefix}{self.kind.value}:{encoded}"

    def __str__(self) -> str:
        return self.format()


class CacheStore:
    """Namespaced, expiring cache over a :class:`LocalStorage`."""

    def __init__(
        self,
        storage: LocalStorage | None = None,
        ttl: float = DEFAULT_TTL,
        prefix: str = CACHE_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage if storage is not None else LocalStorage()
        self.ttl = ttl
        self.prefix = prefix
        self.clock = clock

    def _storage_key(self, key: CacheKey | str) -> str:
        if isinstance(key, CacheKey):
            return key.format(self.prefix)
        return key if key.startswith(self.prefix) else f"{self.prefix}{key}"

    def get(self, key: CacheKey | str) -> Any | None:
        """Return the cached payload, or ``None`` on a miss."""
        storage_key = self._storage_key(key)
        raw = self.storage.get_item(storage_key)
        if raw is None:
            return None
        try:
            entry = json.loads(raw)
            payload = entry["payload"]
            expires_at = float(entry["expires_at"])
        except (ValueError, TypeError, KeyError):
            logger.debug("Cache entry unreadable: %s", storage_key)
            return None
        if self.clock() >= expires_at:
            logger.debug("Cache entry expired: %s", storage_key)
            try:
                self.storage.remove_item(storage_key)
            except OSError as e:
                logger.warning("Failed to evict %s: %s", storage_key, e)
            return None
        logger.debug("Cache hit: %s", storage_key)
        return payload

    def set(self, key: CacheKey | str, value: Any, ttl: float | None = None) -> None:
        """Store ``value`` until ``now + ttl``. Failures are logged, never raised."""
        if value is None:
            return
        storage_key = self._storage_key(key)
        expires_at = self.clock() + (self.ttl if ttl is None else ttl)
        try:
            raw = json.dumps({"payload": value, "expires_at": expires_at})
            self.storage.set_item(storage_key, raw)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to save %s to cache: %s", storage_key, e)

    def invalidate_by_prefix(self, prefix: str | None = None) -> int:
        """
        Remove every entry whose key starts with ``prefix``.

        ``prefix`` is namespaced like keys passed to :meth:`set`; the default
        sweeps the whole cache namespace.
        """
        prefix = self.prefix if prefix is None else self._storage_key(prefix)
        doomed = [k for k in self.storage.keys() if k.startswith(prefix)]
        try:
            self.storage.remove_many(doomed)
        except OSError as e:
            logger.warning("Failed to invalidate cache prefix %s: %s", prefix, e)
            return 0
        logger.info("Invalidated %d cache entries (prefix=%s)", len(doomed), prefix)
        return len(doomed)
