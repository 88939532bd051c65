"""
Two-layer cache for pictogram lookups.

Values live in an in-process dict and in a JSON document on disk. Each
namespace has its own default time-to-live; expired entries are dropped
when they are read and during the startup sweep. The disk layer is an
optimisation only: if it cannot be read or written, the store logs the
problem and keeps working from memory.
"""

import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Protocol, Tuple

from pictoboard.errors import CacheUnavailable

logger = logging.getLogger(__name__)

HOUR = 60 * 60
DAY = 24 * HOUR


class CacheNamespace(str, Enum):
    SEARCH = "search"
    KEYWORDS = "keywords"
    PICTOGRAM_METADATA = "pictogram-metadata"


DEFAULT_TTLS: Dict[CacheNamespace, float] = {
    CacheNamespace.SEARCH: HOUR,
    CacheNamespace.KEYWORDS: 7 * DAY,
    CacheNamespace.PICTOGRAM_METADATA: DAY,
}


def cache_key(namespace: CacheNamespace, key: str) -> str:
    return f"{CacheNamespace(namespace).value}:{key}"


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at < self.ttl

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "storedAt": self.stored_at, "ttl": self.ttl}

    @classmethod
    def from_dict(cls, raw: Any) -> "CacheEntry":
        """Raises ValueError for anything that is not a well-formed entry."""
        if not isinstance(raw, dict) or "value" not in raw:
            raise ValueError(f"malformed cache entry: {raw!r}")
        try:
            stored_at = float(raw["storedAt"])
            ttl = float(raw["ttl"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed cache entry: {raw!r}") from exc
        return cls(value=raw["value"], stored_at=stored_at, ttl=ttl)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expired: int = 0
    persistent_failures: int = 0


class CacheLayer(Protocol):
    def load(self, key: str) -> Optional[Dict[str, Any]]: ...

    def store(self, key: str, raw: Dict[str, Any]) -> None: ...

    def delete(self, key: str) -> None: ...

    def items(self) -> Iterator[Tuple[str, Any]]: ...


class MemoryLayer:
    """In-process layer. Also usable on its own as the persistent layer in tests."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        return self._data.get(key)

    def store(self, key: str, raw: Dict[str, Any]) -> None:
        self._data[key] = raw

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def items(self) -> Iterator[Tuple[str, Any]]:
        return iter(list(self._data.items()))

    def __len__(self) -> int:
        return len(self._data)


class JsonFileLayer:
    """
    Persistent layer: a single JSON object {"namespace:key": entry} on disk.

    The parsed document is kept after the first successful read, so lookups
    do not touch the disk; writes rewrite the file under a lock. Every
    method may raise OSError or ValueError; CacheStore handles them.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Optional[Dict[str, Any]] = None
        self._lock = threading.RLock()

    def _read(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data
        if not self.path.exists():
            self._data = {}
            return self._data
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        self._data = data
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._read().get(key)

    def store(self, key: str, raw: Dict[str, Any]) -> None:
        with self._lock:
            data = dict(self._read())
            data[key] = raw
            self._write(data)
            self._data = data

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key in data:
                data = {k: v for k, v in data.items() if k != key}
                self._write(data)
                self._data = data

    def items(self) -> Iterator[Tuple[str, Any]]:
        with self._lock:
            return iter(list(self._read().items()))

    def replace_all(self, data: Dict[str, Any]) -> None:
        with self._lock:
            self._write(data)
            self._data = dict(data)

    def reset(self) -> None:
        """Drop a document that cannot be parsed at all."""
        with self._lock:
            if self.path.exists():
                self.path.unlink()
            self._data = {}


class CacheStore:
    def __init__(
        self,
        memory: Optional[CacheLayer] = None,
        persistent: Optional[CacheLayer] = None,
        ttls: Optional[Dict[CacheNamespace, float]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.memory = memory if memory is not None else MemoryLayer()
        self.persistent = persistent
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}
        self.clock = clock
        self.stats = CacheStats()

    @classmethod
    def from_settings(cls, settings, sweep: bool = True) -> "CacheStore":
        store = cls(persistent=JsonFileLayer(settings.cache_path))
        if sweep:
            removed = store.sweep()
            if removed:
                logger.info("Startup sweep removed %d stale cache entries", removed)
        return store

    def _degrade(self, action: str, full_key: str, exc: Exception) -> None:
        self.stats.persistent_failures += 1
        err = CacheUnavailable(f"{action} {full_key}: {exc}")
        logger.warning("Persistent cache unavailable, using memory only (%s)", err)

    def _persistent_load(self, full_key: str) -> Optional[Dict[str, Any]]:
        if self.persistent is None:
            return None
        try:
            return self.persistent.load(full_key)
        except (OSError, ValueError, TypeError) as exc:
            self._degrade("read", full_key, exc)
            return None

    def _persistent_call(self, action: str, full_key: str, fn, *args) -> None:
        if self.persistent is None:
            return
        try:
            fn(*args)
        except (OSError, ValueError, TypeError) as exc:
            self._degrade(action, full_key, exc)

    def _evict(self, full_key: str) -> None:
        self.memory.delete(full_key)
        if self.persistent is not None:
            self._persistent_call("delete", full_key, self.persistent.delete, full_key)

    def _valid_entry(self, raw: Any, now: float) -> Optional[CacheEntry]:
        try:
            entry = CacheEntry.from_dict(raw)
        except ValueError:
            return None
        return entry if entry.is_valid(now) else None

    def get(self, namespace: CacheNamespace, key: str) -> Optional[Any]:
        """
        Return the cached value, or None when absent or expired.
        Memory is checked first; a disk hit is copied back into memory.
        """
        full_key = cache_key(namespace, key)
        now = self.clock()

        raw = self.memory.load(full_key)
        from_memory = raw is not None
        if raw is None:
            raw = self._persistent_load(full_key)

        if raw is None:
            self.stats.misses += 1
            return None

        entry = self._valid_entry(raw, now)
        if entry is None:
            logger.debug("Cache entry %s expired or unreadable, evicting", full_key)
            self.stats.expired += 1
            self.stats.misses += 1
            self._evict(full_key)
            return None

        if not from_memory:
            self.memory.store(full_key, entry.to_dict())
        self.stats.hits += 1
        return entry.value

    def set(self, namespace: CacheNamespace, key: str, value: Any, ttl: Optional[float] = None) -> None:
        full_key = cache_key(namespace, key)
        if ttl is None:
            ttl = self.ttls[CacheNamespace(namespace)]
        raw = CacheEntry(value=value, stored_at=self.clock(), ttl=float(ttl)).to_dict()

        self.memory.store(full_key, raw)
        if self.persistent is not None:
            self._persistent_call("write", full_key, self.persistent.store, full_key, raw)

    def delete(self, namespace: CacheNamespace, key: str) -> None:
        self._evict(cache_key(namespace, key))

    def clear(self, namespace: Optional[CacheNamespace] = None) -> int:
        """Remove every entry, or every entry of one namespace. Returns the count removed."""
        prefix = cache_key(namespace, "") if namespace is not None else ""
        keys = {k for k, _ in self.memory.items() if k.startswith(prefix)}
        if self.persistent is not None:
            try:
                keys |= {k for k, _ in self.persistent.items() if k.startswith(prefix)}
            except (OSError, ValueError, TypeError) as exc:
                self._degrade("list", prefix or "*", exc)
        for k in keys:
            self._evict(k)
        return len(keys)

    def sweep(self) -> int:
        """
        Walk the persisted entries once and drop the expired or corrupted ones.
        Returns the number of entries removed; never raises.
        """
        if self.persistent is None:
            return 0

        now = self.clock()
        try:
            items = list(self.persistent.items())
        except (OSError, ValueError, TypeError) as exc:
            self._degrade("sweep", "*", exc)
            if isinstance(exc, ValueError) and isinstance(self.persistent, JsonFileLayer):
                # the whole document is unreadable: nothing in it can be trusted
                try:
                    self.persistent.reset()
                except OSError as reset_exc:
                    self._degrade("reset", "*", reset_exc)
            return 0

        kept = {}
        removed = 0
        for full_key, raw in items:
            if self._valid_entry(raw, now) is None:
                removed += 1
                self.memory.delete(full_key)
            else:
                kept[full_key] = raw

        if removed:
            if isinstance(self.persistent, JsonFileLayer):
                self._persistent_call("sweep", "*", self.persistent.replace_all, kept)
            else:
                for full_key, _ in items:
                    if full_key not in kept:
                        self._persistent_call("delete", full_key, self.persistent.delete, full_key)
        return removed
