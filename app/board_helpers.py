import asyncio
import json
from pathlib import Path
from typing import List

import streamlit as st

from pictoboard.config import PROJECT_ROOT, get_settings
from pictoboard.logging import setup_logging
from pictoboard.pictos.arasaac_client import ArasaacClient
from pictoboard.pictos.cache import CacheStore
from pictoboard.pictos.resolve import PictogramResolver, ResolvedPictogram
from pictoboard.pictos.search import SearchPipeline
from pictoboard.vocabulary import VocabularyEntry

VOCABULARY_PATH = PROJECT_ROOT / "data" / "vocabulary_hu.json"


@st.cache_resource
def get_resolver() -> PictogramResolver:
    """
    Client and cache store are shared by every session of the server process.
    Building the cache store runs the startup sweep.
    """
    settings = get_settings()
    setup_logging(settings.log_level)
    client = ArasaacClient.from_settings(settings)
    cache = CacheStore.from_settings(settings)
    return PictogramResolver(client, cache)


def get_pipeline() -> SearchPipeline:
    """
    Each browser session gets its own pipeline, so one user's typing never
    supersedes another user's query.
    """
    if "search_pipeline" not in st.session_state:
        st.session_state.search_pipeline = SearchPipeline.from_settings(get_resolver(), get_settings())
    return st.session_state.search_pipeline


@st.cache_data
def load_vocabulary(path: Path = VOCABULARY_PATH) -> List[VocabularyEntry]:
    with open(path, "r", encoding="utf-8") as f:
        return [VocabularyEntry.from_dict(item) for item in json.load(f)]


def picto_for(entry: VocabularyEntry) -> ResolvedPictogram:
    """
    Resolved image for a word button; memoised for the session
    """
    memo = st.session_state.setdefault("picto_memo", {})
    if entry.id not in memo:
        resolver = get_resolver()
        memo[entry.id] = asyncio.run(resolver.resolve_entry(entry))
    return memo[entry.id]


def picto_for_label(label: str, grammatical_type: str = "") -> ResolvedPictogram:
    entry = VocabularyEntry(id=f"free:{label}", label=label, category="", grammatical_type=grammatical_type)
    return picto_for(entry)


def search_terms(term: str):
    """Candidates for the search box, or None when a newer query superseded this one."""
    pipeline = get_pipeline()
    return asyncio.run(pipeline.search(term))


def suggest_words(prefix: str) -> List[str]:
    pipeline = get_pipeline()
    return asyncio.run(pipeline.suggest(prefix))
