"""
Shared fixtures: a controllable clock, an in-memory cache store and a fake
ARASAAC client that records every call.
"""

import threading
import time
from typing import Dict, List, Optional, Set

import pytest

from pictoboard.errors import RemoteUnavailable
from pictoboard.pictos.arasaac_client import PictogramRef, Resolution
from pictoboard.pictos.cache import CacheStore, MemoryLayer
from pictoboard.pictos.resolve import PictogramResolver

STATIC_URL = "https://static.test"


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeClient:
    """
    Stand-in for ArasaacClient. Images listed in `available` probe fine,
    everything else answers 404. With down=True every call fails.
    """

    def __init__(
        self,
        results: Optional[Dict[str, List[dict]]] = None,
        available: Optional[Set[str]] = None,
        keywords: Optional[List[str]] = None,
        down: bool = False,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.lang = "hu"
        self.results = results or {}
        self.available = available or set()
        self.keyword_list = keywords or []
        self.down = down
        self.delays = delays or {}
        self.search_calls: List[str] = []
        self.probe_calls: List[str] = []
        self.keyword_calls = 0
        self._lock = threading.Lock()

    @property
    def network_calls(self) -> int:
        return len(self.search_calls) + len(self.probe_calls) + self.keyword_calls

    def search_pictograms(self, term: str) -> List[dict]:
        with self._lock:
            self.search_calls.append(term)
        time.sleep(self.delays.get(term, 0))
        if self.down:
            raise RemoteUnavailable(f"search/{term}", reason="connection refused")
        return self.results.get(term, [])

    def fetch_keywords(self) -> List[str]:
        self.keyword_calls += 1
        if self.down:
            raise RemoteUnavailable("keywords", reason="connection refused")
        return self.keyword_list

    def pictogram_url(self, picto_id: int, resolution: Resolution = Resolution.MEDIUM) -> str:
        return PictogramRef.build(picto_id, resolution, STATIC_URL).url

    def probe_image(self, url: str) -> None:
        with self._lock:
            self.probe_calls.append(url)
        if self.down:
            raise RemoteUnavailable(url, reason="connection refused")
        if url not in self.available:
            raise RemoteUnavailable(url, status=404)


def picto_url(picto_id: int, resolution: Resolution) -> str:
    return PictogramRef.build(picto_id, resolution, STATIC_URL).url


def search_item(picto_id: int, *keywords: str) -> dict:
    return {"_id": picto_id, "keywords": [{"keyword": kw, "type": 2} for kw in keywords], "categories": ["fruit"]}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheStore:
    return CacheStore(memory=MemoryLayer(), persistent=MemoryLayer(), clock=clock)


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def resolver(client: FakeClient, cache: CacheStore) -> PictogramResolver:
    return PictogramResolver(client, cache)
