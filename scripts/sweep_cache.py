"""
Drop expired or corrupted entries from the persistent pictogram cache.
"""

from pictoboard.config import get_settings
from pictoboard.logging import setup_logging
from pictoboard.pictos.cache import CacheStore


def main():
    settings = get_settings()
    setup_logging(settings.log_level)
    store = CacheStore.from_settings(settings, sweep=False)
    removed = store.sweep()
    print(f"Removed {removed} stale entries from {settings.cache_path}")


if __name__ == "__main__":
    main()
