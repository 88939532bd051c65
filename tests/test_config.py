"""
Tests for environment-driven settings.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from pictoboard.config import DEFAULT_DEBOUNCE_MS, clear_settings_cache, get_settings, load_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


def test_reads_environment(tmp_path: Path) -> None:
    env = {
        "ARASAAC_API_URL": "https://api.test/v1/",
        "PICTO_LANG": "ES",
        "PICTO_TIMEOUT": "1.5",
        "PICTO_DEBOUNCE_MS": "150",
        "PICTO_CACHE_PATH": str(tmp_path / "c.json"),
    }
    with patch.dict(os.environ, env, clear=False):
        settings = load_settings()

    assert settings.api_url == "https://api.test/v1"
    assert settings.lang == "es"
    assert settings.timeout == 1.5
    assert settings.debounce == 0.15
    assert settings.cache_path == tmp_path / "c.json"


def test_invalid_numbers_fall_back_to_defaults() -> None:
    with patch.dict(os.environ, {"PICTO_DEBOUNCE_MS": "soon", "PICTO_TIMEOUT": "-3"}, clear=False):
        settings = load_settings()

    assert settings.debounce_ms == DEFAULT_DEBOUNCE_MS
    assert settings.timeout == 5.0


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()
