"""
Warm the pictogram cache for the board vocabulary (and optional extra words)
so the board opens without waiting on the network.

    python scripts/fill_pictogram_cache.py [word ...]
"""

import asyncio
import json
import sys

from tqdm import tqdm

from pictoboard.config import PROJECT_ROOT, get_settings
from pictoboard.errors import RemoteUnavailable
from pictoboard.logging import setup_logging
from pictoboard.pictos.arasaac_client import ArasaacClient
from pictoboard.pictos.cache import CacheStore
from pictoboard.pictos.resolve import PictogramResolver, PictogramSource
from pictoboard.vocabulary import VocabularyEntry

VOCABULARY_PATH = PROJECT_ROOT / "data" / "vocabulary_hu.json"


def load_entries(extra_words):
    with open(VOCABULARY_PATH, "r", encoding="utf-8") as f:
        entries = [VocabularyEntry.from_dict(item) for item in json.load(f)]
    for word in extra_words:
        entries.append(VocabularyEntry(id=word, label=word, category="", grammatical_type=""))
    return entries


async def fill(entries, resolver):
    misses = []
    for entry in tqdm(entries, desc="pictograms"):
        r = await resolver.resolve_entry(entry)
        if r.source == PictogramSource.PLACEHOLDER:
            misses.append(entry.label)
        await asyncio.sleep(0.25)  # stay gentle with the public API

    try:
        words = await resolver.keywords()
        print(f"Keyword list cached ({len(words)} words).")
    except RemoteUnavailable as exc:
        print(f"Keyword list not cached: {exc}")
    return misses


def main():
    settings = get_settings()
    setup_logging(settings.log_level)
    resolver = PictogramResolver(ArasaacClient.from_settings(settings), CacheStore.from_settings(settings))

    entries = load_entries(sys.argv[1:])
    misses = asyncio.run(fill(entries, resolver))
    for label in misses:
        print(f"MISS: {label}")
    print(f"\nDone. Resolved {len(entries) - len(misses)}/{len(entries)} words.")


if __name__ == "__main__":
    main()
