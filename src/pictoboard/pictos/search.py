"""
Debounced, last-request-wins pictogram search for the type-ahead box.

Every call to SearchPipeline.search() takes the next request id and waits
for the debounce delay. If another call arrived in the meantime the older
one gives up without touching the network. A response that comes back
after a newer request was issued is dropped, so results are always those
of the most recent query.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from pictoboard.errors import RemoteUnavailable, StaleRequestDiscarded
from pictoboard.pictos.resolve import PictogramResolver, SearchCandidate, normalize_term

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 0.3


@dataclass(frozen=True)
class SearchRequest:
    term: str
    request_id: int


@dataclass(frozen=True)
class SearchResult:
    request: SearchRequest
    candidates: List[SearchCandidate]


class SearchPipeline:
    def __init__(
        self,
        resolver: PictogramResolver,
        debounce: float = DEFAULT_DEBOUNCE,
        limit: int = 12,
        on_results: Optional[Callable[[SearchResult], None]] = None,
    ):
        self.resolver = resolver
        self.debounce = debounce
        self.limit = limit
        self.on_results = on_results
        self.latest: Optional[SearchResult] = None
        self._ids = itertools.count(1)
        self._current_id = 0

    @classmethod
    def from_settings(cls, resolver: PictogramResolver, settings, **kwargs) -> "SearchPipeline":
        return cls(resolver, debounce=settings.debounce, limit=settings.search_limit, **kwargs)

    @property
    def current_id(self) -> int:
        return self._current_id

    def _issue(self, term: str) -> SearchRequest:
        request = SearchRequest(term=normalize_term(term), request_id=next(self._ids))
        self._current_id = request.request_id
        return request

    def _ensure_current(self, request: SearchRequest) -> None:
        if request.request_id != self._current_id:
            raise StaleRequestDiscarded(request.request_id, self._current_id)

    def _apply(self, request: SearchRequest, candidates: List[SearchCandidate]) -> List[SearchCandidate]:
        self._ensure_current(request)
        self.latest = SearchResult(request=request, candidates=candidates)
        if self.on_results is not None:
            self.on_results(self.latest)
        return candidates

    async def search(self, term: str) -> Optional[List[SearchCandidate]]:
        """
        Ranked candidates for term, [] when there are none or the service is
        down, None when this call was superseded by a newer one.
        """
        request = self._issue(term)
        try:
            if not request.term:
                return self._apply(request, [])

            await asyncio.sleep(self.debounce)
            self._ensure_current(request)

            try:
                candidates = await self.resolver.search_candidates(request.term, limit=self.limit)
            except RemoteUnavailable as exc:
                logger.info("Search for %r failed, showing no suggestions: %s", request.term, exc)
                candidates = []

            return self._apply(request, candidates)
        except StaleRequestDiscarded as exc:
            logger.debug("Discarding search %r: %s", request.term, exc)
            return None

    async def suggest(self, prefix: str, limit: int = 8) -> List[str]:
        """
        Keyword completions for the dropdown, from the cached keyword list.
        """
        prefix = normalize_term(prefix)
        if not prefix:
            return []
        try:
            words = await self.resolver.keywords()
        except RemoteUnavailable as exc:
            logger.info("Keyword list unavailable: %s", exc)
            return []

        out: List[str] = []
        seen = set()
        for word in words:
            norm = normalize_term(word)
            if norm.startswith(prefix) and norm not in seen:
                seen.add(norm)
                out.append(word)
                if len(out) >= limit:
                    break
        return out
