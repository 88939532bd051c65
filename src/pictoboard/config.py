import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]

DEFAULT_API_URL = "https://api.arasaac.org/v1"
DEFAULT_STATIC_URL = "https://static.arasaac.org"
DEFAULT_LANG = "hu"
DEFAULT_TIMEOUT = 5.0
DEFAULT_DEBOUNCE_MS = 300
DEFAULT_SEARCH_LIMIT = 12


@dataclass(frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    static_url: str = DEFAULT_STATIC_URL
    lang: str = DEFAULT_LANG
    timeout: float = DEFAULT_TIMEOUT
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    search_limit: int = DEFAULT_SEARCH_LIMIT
    cache_path: Path = PROJECT_ROOT / "data" / "pictogram_cache.json"
    log_level: str = "INFO"

    @property
    def debounce(self) -> float:
        return self.debounce_ms / 1000.0


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %r", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r, using %r", name, raw, default)
        return default
    return value


def load_settings() -> Settings:
    """
    Build settings from the environment (and a .env file if there is one).
    """
    load_dotenv()

    cache_path = os.getenv("PICTO_CACHE_PATH")
    return Settings(
        api_url=os.getenv("ARASAAC_API_URL", DEFAULT_API_URL).rstrip("/"),
        static_url=os.getenv("ARASAAC_STATIC_URL", DEFAULT_STATIC_URL).rstrip("/"),
        lang=os.getenv("PICTO_LANG", DEFAULT_LANG).strip().lower() or DEFAULT_LANG,
        timeout=_env_number("PICTO_TIMEOUT", DEFAULT_TIMEOUT, float),
        debounce_ms=_env_number("PICTO_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS, int),
        search_limit=_env_number("PICTO_SEARCH_LIMIT", DEFAULT_SEARCH_LIMIT, int),
        cache_path=Path(cache_path) if cache_path else Settings.cache_path,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def clear_settings_cache() -> None:
    get_settings.cache_clear()
