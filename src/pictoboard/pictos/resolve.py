import asyncio
import logging
import unicodedata
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pictoboard.errors import PictoboardError, RemoteUnavailable, ResolutionExhausted
from pictoboard.pictos.arasaac_client import RESOLUTION_TIERS, ArasaacClient, PictogramRef, Resolution
from pictoboard.pictos.cache import CacheNamespace, CacheStore
from pictoboard.pictos.placeholder import placeholder_for
from pictoboard.vocabulary import VocabularyEntry

logger = logging.getLogger(__name__)


class PictogramSource(str, Enum):
    CACHE = "cache"
    DIRECT = "direct"
    SEARCH_FALLBACK = "search-fallback"
    PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class ResolvedPictogram:
    url: str
    source: PictogramSource
    pictogram_id: Optional[int] = None
    resolution: Optional[Resolution] = None


@dataclass(frozen=True)
class ResolveOptions:
    """
    Per-call context from the board: the largest tier worth probing and the
    word's grammatical type (used to colour the placeholder).
    """
    max_resolution: Resolution = Resolution.LARGE
    grammatical_type: Optional[str] = None


@dataclass(frozen=True)
class SearchCandidate:
    id: int
    keyword: Optional[str]
    keywords: List[str]
    categories: List[str]

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> Optional["SearchCandidate"]:
        """
        Build a candidate from a raw search item. ARASAAC returns 'keywords'
        as a list of {'keyword': ..., 'type': ...} dicts, sometimes plain strings.
        """
        if not isinstance(item, dict) or item.get("_id") is None:
            return None
        try:
            picto_id = int(item["_id"])
            kws = _extract_keywords(item)
            categories = [str(c).strip().lower() for c in item.get("categories", []) or [] if str(c).strip()]
        except (TypeError, ValueError):
            logger.debug("Skipping malformed search item %r", item)
            return None
        return cls(id=picto_id, keyword=kws[0] if kws else None, keywords=kws, categories=categories)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "keyword": self.keyword, "keywords": self.keywords, "categories": self.categories}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchCandidate":
        return cls(
            id=int(data["id"]),
            keyword=data.get("keyword"),
            keywords=list(data.get("keywords", [])),
            categories=list(data.get("categories", [])),
        )


def normalize_term(term: str) -> str:
    # accents are kept: in Hungarian "kör" and "kor" are different words
    term = unicodedata.normalize("NFC", term).strip().lower()
    return " ".join(term.split())


def _extract_keywords(item: Dict[str, Any]) -> List[str]:
    out: List[str] = []
    for x in item.get("keywords", []) or []:
        if isinstance(x, str):
            kw = x
        elif isinstance(x, dict) and x.get("keyword"):
            kw = str(x["keyword"])
        else:
            continue
        kw = normalize_term(kw)
        if kw:
            out.append(kw)
    return out


def _tiers_from(max_resolution: Resolution) -> List[Resolution]:
    return list(RESOLUTION_TIERS[RESOLUTION_TIERS.index(max_resolution):])


def _label_key(label_norm: str) -> str:
    # "search:{term}" already holds candidate lists, resolved refs get their own prefix
    return f"label/{label_norm}"


class PictogramResolver:
    """
    Turns a pictogram id and/or a label into something the board can show.

    Order: cache, direct id (probing tiers from largest to smallest), search
    on the label, coloured placeholder. resolve() never raises.
    """

    def __init__(
        self,
        client: ArasaacClient,
        cache: CacheStore,
        placeholder: Callable[[str, Optional[str]], str] = placeholder_for,
    ):
        self.client = client
        self.cache = cache
        self.placeholder = placeholder

    async def search_candidates(self, term: str, limit: Optional[int] = None) -> List[SearchCandidate]:
        """
        Ranked candidates for a term, cache first. Raises RemoteUnavailable
        when the service cannot be reached and nothing is cached.
        """
        term_norm = normalize_term(term)
        if not term_norm:
            return []

        cached = self.cache.get(CacheNamespace.SEARCH, term_norm)
        if cached is not None:
            try:
                candidates = [SearchCandidate.from_dict(c) for c in cached]
                return candidates[:limit] if limit else candidates
            except (KeyError, TypeError, ValueError):
                logger.debug("Ignoring malformed cached search results for %r", term_norm)

        items = await asyncio.to_thread(self.client.search_pictograms, term_norm)
        candidates = [c for c in (SearchCandidate.from_item(item) for item in items) if c is not None]
        self.cache.set(CacheNamespace.SEARCH, term_norm, [c.to_dict() for c in candidates])
        logger.debug("Search %r returned %d candidates", term_norm, len(candidates))
        return candidates[:limit] if limit else candidates

    async def keywords(self) -> List[str]:
        """Keyword list of the client's language, cached for a week."""
        cached = self.cache.get(CacheNamespace.KEYWORDS, self.client.lang)
        if isinstance(cached, list):
            return cached
        words = await asyncio.to_thread(self.client.fetch_keywords)
        self.cache.set(CacheNamespace.KEYWORDS, self.client.lang, words)
        return words

    def _cached_ref(self, namespace: CacheNamespace, key: str) -> Optional[PictogramRef]:
        raw = self.cache.get(namespace, key)
        if raw is None:
            return None
        try:
            return PictogramRef.from_dict(raw)
        except (KeyError, TypeError, ValueError):
            logger.debug("Ignoring malformed cached pictogram %s:%s", namespace.value, key)
            return None

    async def _probe(self, picto_id: int, max_resolution: Resolution) -> Optional[PictogramRef]:
        for resolution in _tiers_from(max_resolution):
            ref = PictogramRef(id=picto_id, resolution=resolution, url=self.client.pictogram_url(picto_id, resolution))
            try:
                await asyncio.to_thread(self.client.probe_image, ref.url)
            except RemoteUnavailable as exc:
                logger.debug("Probe failed for pictogram %s (%s): %s", picto_id, resolution.value, exc)
                continue
            return ref
        return None

    async def _resolve_chain(self, pictogram_id: Optional[int], label: str, options: ResolveOptions) -> ResolvedPictogram:
        label_norm = normalize_term(label)

        if pictogram_id is not None:
            hit = self._cached_ref(CacheNamespace.PICTOGRAM_METADATA, str(pictogram_id))
        else:
            hit = self._cached_ref(CacheNamespace.SEARCH, _label_key(label_norm)) if label_norm else None
        if hit is not None:
            return ResolvedPictogram(hit.url, PictogramSource.CACHE, hit.id, hit.resolution)

        if pictogram_id is not None:
            ref = await self._probe(pictogram_id, options.max_resolution)
            if ref is not None:
                self.cache.set(CacheNamespace.PICTOGRAM_METADATA, str(ref.id), ref.to_dict())
                return ResolvedPictogram(ref.url, PictogramSource.DIRECT, ref.id, ref.resolution)
            logger.info("Pictogram %s not retrievable, searching for %r", pictogram_id, label)

        if not label_norm:
            raise ResolutionExhausted(label)

        try:
            candidates = await self.search_candidates(label_norm, limit=1)
        except RemoteUnavailable as exc:
            raise ResolutionExhausted(label) from exc
        if not candidates:
            raise ResolutionExhausted(label)

        # remote ranking is authoritative: only the top candidate is tried
        top_id = candidates[0].id
        ref = self._cached_ref(CacheNamespace.PICTOGRAM_METADATA, str(top_id))
        if ref is None:
            ref = await self._probe(top_id, options.max_resolution)
            if ref is None:
                raise ResolutionExhausted(label)
            self.cache.set(CacheNamespace.PICTOGRAM_METADATA, str(ref.id), ref.to_dict())

        self.cache.set(CacheNamespace.SEARCH, _label_key(label_norm), ref.to_dict())
        return ResolvedPictogram(ref.url, PictogramSource.SEARCH_FALLBACK, ref.id, ref.resolution)

    async def resolve(
        self,
        pictogram_id: Optional[int],
        label: str,
        options: Optional[ResolveOptions] = None,
    ) -> ResolvedPictogram:
        options = options or ResolveOptions()
        try:
            return await self._resolve_chain(pictogram_id, label, options)
        except ResolutionExhausted as exc:
            logger.info("%s, using placeholder", exc)
        except PictoboardError as exc:
            logger.warning("Resolving %r failed (%s), using placeholder", label, exc)
        except Exception:
            # resolve() must always hand the board something to draw
            logger.exception("Unexpected error resolving %r, using placeholder", label)
        return ResolvedPictogram(self.placeholder(label, options.grammatical_type), PictogramSource.PLACEHOLDER)

    async def resolve_entry(self, entry: VocabularyEntry, options: Optional[ResolveOptions] = None) -> ResolvedPictogram:
        options = options or ResolveOptions()
        if options.grammatical_type is None:
            options = replace(options, grammatical_type=entry.grammatical_type)
        return await self.resolve(entry.pictogram_id, entry.label, options)

    async def resolve_many(self, entries: List[VocabularyEntry], options: Optional[ResolveOptions] = None) -> Dict[str, ResolvedPictogram]:
        """
        Resolve a whole board page concurrently, keyed by entry id.
        """
        results = await asyncio.gather(*(self.resolve_entry(e, options) for e in entries))
        return {e.id: r for e, r in zip(entries, results)}
