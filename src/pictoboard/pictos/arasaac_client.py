import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from pictoboard.config import DEFAULT_API_URL, DEFAULT_STATIC_URL
from pictoboard.errors import RemoteUnavailable

logger = logging.getLogger(__name__)

ARASAAC_SEARCH_PATH = "/pictograms/{lang}/bestsearch/{term}"
ARASAAC_KEYWORDS_PATH = "/keywords/{lang}"
ARASAAC_PICTO_PATH = "/pictograms/{id}/{id}_{size}.png"


class Resolution(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @property
    def size(self) -> int:
        return RESOLUTION_SIZES[self]


# pixel sizes published on the static host
RESOLUTION_SIZES = {
    Resolution.SMALL: 300,
    Resolution.MEDIUM: 500,
    Resolution.LARGE: 2500,
}

# highest first
RESOLUTION_TIERS = (Resolution.LARGE, Resolution.MEDIUM, Resolution.SMALL)


@dataclass(frozen=True)
class PictogramRef:
    id: int
    resolution: Resolution
    url: str

    @classmethod
    def build(cls, picto_id: int, resolution: Resolution, static_url: str = DEFAULT_STATIC_URL) -> "PictogramRef":
        url = static_url.rstrip("/") + ARASAAC_PICTO_PATH.format(id=picto_id, size=resolution.size)
        return cls(id=int(picto_id), resolution=resolution, url=url)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "resolution": self.resolution.value, "url": self.url}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PictogramRef":
        return cls(id=int(data["id"]), resolution=Resolution(data["resolution"]), url=str(data["url"]))


class ArasaacClient:
    """
    Thin wrapper around the ARASAAC REST API and its static image host.

    Every failure (timeout, connection error, non-2xx, bad JSON) is raised as
    RemoteUnavailable. No retries happen here: callers own the fallback policy.
    """

    def __init__(
        self,
        lang: str = "hu",
        timeout: float = 5.0,
        api_url: str = DEFAULT_API_URL,
        static_url: str = DEFAULT_STATIC_URL,
        session: Optional[requests.Session] = None,
    ):
        self.lang = lang
        self.timeout = timeout
        self.api_url = api_url.rstrip("/")
        self.static_url = static_url.rstrip("/")
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings) -> "ArasaacClient":
        return cls(
            lang=settings.lang,
            timeout=settings.timeout,
            api_url=settings.api_url,
            static_url=settings.static_url,
        )

    def _get(self, url: str, **kwargs) -> requests.Response:
        logger.debug("GET %s", url)
        try:
            resp = self.session.get(url, timeout=self.timeout, **kwargs)
        except requests.Timeout as exc:
            logger.info("Timeout after %.1fs on %s", self.timeout, url)
            raise RemoteUnavailable(url, reason="timeout") from exc
        except requests.RequestException as exc:
            logger.info("Request to %s failed: %s", url, exc)
            raise RemoteUnavailable(url, reason=str(exc)) from exc
        return resp

    def _get_json(self, url: str) -> Any:
        resp = self._get(url)
        if not 200 <= resp.status_code < 300:
            logger.info("GET %s returned %s", url, resp.status_code)
            raise RemoteUnavailable(url, status=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteUnavailable(url, status=resp.status_code, reason="invalid JSON") from exc

    def search_pictograms(self, term: str) -> List[Dict]:
        """
        Search pictograms for a term, in the order the service ranks them.
        Returns a list of raw items with at least: _id, keywords
        """
        term = term.strip().lower()
        if not term:
            return []

        url = self.api_url + ARASAAC_SEARCH_PATH.format(lang=self.lang, term=quote(term, safe=""))
        try:
            results = self._get_json(url)
        except RemoteUnavailable as exc:
            # bestsearch answers 404 when nothing matches
            if exc.status == 404:
                return []
            raise

        if not isinstance(results, list):
            raise RemoteUnavailable(url, reason="unexpected payload")
        return results

    def fetch_keywords(self) -> List[str]:
        """
        Full keyword list for the client's language.
        """
        url = self.api_url + ARASAAC_KEYWORDS_PATH.format(lang=self.lang)
        data = self._get_json(url)
        words = data.get("words") if isinstance(data, dict) else data
        if not isinstance(words, list):
            raise RemoteUnavailable(url, reason="unexpected payload")
        return [str(w) for w in words if str(w).strip()]

    def pictogram_url(self, picto_id: int, resolution: Resolution = Resolution.MEDIUM) -> str:
        """
        Return a direct URL to the pictogram image (PNG).
        """
        return PictogramRef.build(picto_id, resolution, self.static_url).url

    def probe_image(self, url: str) -> None:
        """
        Check that an image is actually retrievable. Only headers are read,
        the body is never downloaded.
        """
        resp = self._get(url, stream=True)
        try:
            content_type = resp.headers.get("Content-Type", "")
            if not 200 <= resp.status_code < 300:
                raise RemoteUnavailable(url, status=resp.status_code)
            if not content_type.startswith("image/"):
                raise RemoteUnavailable(url, status=resp.status_code, reason=f"not an image ({content_type})")
        finally:
            resp.close()
