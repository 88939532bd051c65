"""
Tests for the two-layer cache store.
"""

import json
import threading
import time
from pathlib import Path

import pytest

from pictoboard.config import Settings
from pictoboard.pictos.cache import (
    DEFAULT_TTLS,
    CacheEntry,
    CacheNamespace,
    CacheStore,
    JsonFileLayer,
    MemoryLayer,
    cache_key,
)


class BrokenLayer(MemoryLayer):
    """Persistent layer whose disk is full / unreadable."""

    def load(self, key):
        raise OSError("disk unavailable")

    def store(self, key, raw):
        raise OSError("quota exceeded")

    def delete(self, key):
        raise OSError("disk unavailable")

    def items(self):
        raise OSError("disk unavailable")


class TestExpiry:
    @pytest.mark.parametrize("namespace", list(CacheNamespace))
    def test_entry_lives_exactly_its_namespace_ttl(self, namespace, cache, clock) -> None:
        ttl = DEFAULT_TTLS[namespace]
        cache.set(namespace, "alma", {"id": 2462})

        clock.advance(ttl - 0.001)
        assert cache.get(namespace, "alma") == {"id": 2462}

        clock.advance(0.002)
        assert cache.get(namespace, "alma") is None

    def test_explicit_ttl_overrides_namespace_default(self, cache, clock) -> None:
        cache.set(CacheNamespace.KEYWORDS, "hu", ["alma"], ttl=10)
        clock.advance(11)
        assert cache.get(CacheNamespace.KEYWORDS, "hu") is None

    def test_expired_entry_is_evicted_from_both_layers(self, cache, clock) -> None:
        cache.set(CacheNamespace.SEARCH, "alma", [])
        clock.advance(DEFAULT_TTLS[CacheNamespace.SEARCH] + 1)

        assert cache.get(CacheNamespace.SEARCH, "alma") is None
        key = cache_key(CacheNamespace.SEARCH, "alma")
        assert cache.memory.load(key) is None
        assert cache.persistent.load(key) is None
        assert cache.stats.expired == 1

    def test_set_overwrites_and_restarts_clock(self, cache, clock) -> None:
        cache.set(CacheNamespace.SEARCH, "alma", [1])
        clock.advance(3000)
        cache.set(CacheNamespace.SEARCH, "alma", [2])
        clock.advance(3000)
        assert cache.get(CacheNamespace.SEARCH, "alma") == [2]


class TestLayers:
    def test_namespaces_do_not_collide(self, cache) -> None:
        cache.set(CacheNamespace.SEARCH, "2462", "search")
        cache.set(CacheNamespace.PICTOGRAM_METADATA, "2462", "meta")
        assert cache.get(CacheNamespace.SEARCH, "2462") == "search"
        assert cache.get(CacheNamespace.PICTOGRAM_METADATA, "2462") == "meta"

    def test_persistent_hit_is_promoted_to_memory(self, clock) -> None:
        disk = MemoryLayer()
        CacheStore(persistent=disk, clock=clock).set(CacheNamespace.SEARCH, "alma", ["x"])

        fresh = CacheStore(persistent=disk, clock=clock)
        key = cache_key(CacheNamespace.SEARCH, "alma")
        assert fresh.memory.load(key) is None

        assert fresh.get(CacheNamespace.SEARCH, "alma") == ["x"]
        assert fresh.memory.load(key) is not None

    def test_memory_is_consulted_first(self, cache) -> None:
        cache.set(CacheNamespace.SEARCH, "alma", "v1")
        cache.persistent.delete(cache_key(CacheNamespace.SEARCH, "alma"))
        assert cache.get(CacheNamespace.SEARCH, "alma") == "v1"

    def test_broken_persistent_layer_fails_open(self, clock) -> None:
        store = CacheStore(persistent=BrokenLayer(), clock=clock)

        store.set(CacheNamespace.SEARCH, "alma", [1])
        assert store.get(CacheNamespace.SEARCH, "alma") == [1]
        assert store.get(CacheNamespace.SEARCH, "körte") is None
        assert store.sweep() == 0
        assert store.stats.persistent_failures >= 2

    def test_clear_single_namespace(self, cache) -> None:
        cache.set(CacheNamespace.SEARCH, "alma", 1)
        cache.set(CacheNamespace.SEARCH, "körte", 2)
        cache.set(CacheNamespace.KEYWORDS, "hu", 3)

        assert cache.clear(CacheNamespace.SEARCH) == 2
        assert cache.get(CacheNamespace.SEARCH, "alma") is None
        assert cache.get(CacheNamespace.KEYWORDS, "hu") == 3


class TestJsonFileLayer:
    def test_survives_restart(self, tmp_path: Path, clock) -> None:
        path = tmp_path / "cache.json"
        CacheStore(persistent=JsonFileLayer(path), clock=clock).set(CacheNamespace.KEYWORDS, "hu", ["alma", "körte"])

        reopened = CacheStore(persistent=JsonFileLayer(path), clock=clock)
        assert reopened.get(CacheNamespace.KEYWORDS, "hu") == ["alma", "körte"]

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        entry = on_disk["keywords:hu"]
        assert set(entry) == {"value", "storedAt", "ttl"}

    def test_sweep_drops_expired_and_corrupted_entries(self, tmp_path: Path, clock) -> None:
        path = tmp_path / "cache.json"
        now = clock()
        path.write_text(
            json.dumps(
                {
                    "search:alma": CacheEntry(["fresh"], now, 3600).to_dict(),
                    "search:körte": CacheEntry(["old"], now - 7200, 3600).to_dict(),
                    "search:broken": "not an entry",
                    "pictogram-metadata:1": {"value": 1, "storedAt": "yesterday", "ttl": 10},
                }
            ),
            encoding="utf-8",
        )
        store = CacheStore(persistent=JsonFileLayer(path), clock=clock)

        assert store.sweep() == 3
        assert list(json.loads(path.read_text(encoding="utf-8"))) == ["search:alma"]
        assert store.get(CacheNamespace.SEARCH, "alma") == ["fresh"]

    def test_corrupted_entry_reads_as_absent(self, tmp_path: Path, clock) -> None:
        path = tmp_path / "cache.json"
        path.write_text(json.dumps({"search:alma": {"storedAt": 1}}), encoding="utf-8")
        store = CacheStore(persistent=JsonFileLayer(path), clock=clock)

        assert store.get(CacheNamespace.SEARCH, "alma") is None
        assert store.get(CacheNamespace.SEARCH, "alma") is None

    def test_unparseable_file_does_not_crash(self, tmp_path: Path, clock) -> None:
        path = tmp_path / "cache.json"
        path.write_text("{not json", encoding="utf-8")
        store = CacheStore(persistent=JsonFileLayer(path), clock=clock)

        assert store.get(CacheNamespace.SEARCH, "alma") is None
        assert store.sweep() == 0
        assert not path.exists()

        store.set(CacheNamespace.SEARCH, "alma", [1])
        assert store.get(CacheNamespace.SEARCH, "alma") == [1]
        assert path.exists()

    def test_lookups_use_the_parsed_document(self, tmp_path: Path, clock) -> None:
        path = tmp_path / "cache.json"
        layer = JsonFileLayer(path)
        store = CacheStore(persistent=layer, clock=clock)
        store.set(CacheNamespace.KEYWORDS, "hu", ["alma"])

        path.unlink()
        assert layer.load(cache_key(CacheNamespace.KEYWORDS, "hu"))["value"] == ["alma"]

    def test_concurrent_writes_are_not_lost(self, tmp_path: Path) -> None:
        path = tmp_path / "cache.json"
        layer = JsonFileLayer(path)
        entry = CacheEntry(1, 0.0, 60).to_dict()

        threads = [threading.Thread(target=layer.store, args=(f"search:{i}", entry)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert len(on_disk) == 20


class TestFromSettings:
    def write_cache(self, path: Path, now: float) -> None:
        path.write_text(
            json.dumps(
                {
                    "search:alma": CacheEntry(["fresh"], now, 3600).to_dict(),
                    "search:körte": CacheEntry(["old"], now - 7200, 3600).to_dict(),
                }
            ),
            encoding="utf-8",
        )

    def test_startup_sweep_removes_expired_entries(self, tmp_path: Path) -> None:
        path = tmp_path / "cache.json"
        self.write_cache(path, time.time())

        store = CacheStore.from_settings(Settings(cache_path=path))

        assert isinstance(store.persistent, JsonFileLayer)
        assert list(json.loads(path.read_text(encoding="utf-8"))) == ["search:alma"]
        assert store.get(CacheNamespace.SEARCH, "alma") == ["fresh"]

    def test_sweep_can_be_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "cache.json"
        self.write_cache(path, time.time())

        CacheStore.from_settings(Settings(cache_path=path), sweep=False)

        assert set(json.loads(path.read_text(encoding="utf-8"))) == {"search:alma", "search:körte"}
