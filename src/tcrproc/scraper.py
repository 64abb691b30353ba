# src/tcrproc/scraper.py
"""Off-chain content and metadata scrapers used by the newsroom processor."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

Json = Dict[str, Any]


@dataclass(frozen=True)
class ScraperContent:
    uri: str = ""
    text: str = ""
    html: str = ""
    author: str = ""
    data: Json = field(default_factory=dict)


@dataclass(frozen=True)
class ScraperMetadata:
    uri: str = ""
    title: str = ""
    author: str = ""
    description: str = ""
    canonical_url: str = ""
    data: Json = field(default_factory=dict)

    def to_payload(self) -> Json:
        """Flatten into an article payload; structured `data` keys win over the typed fields."""
        out: Json = {}
        for k in ("title", "author", "description", "canonical_url"):
            v = getattr(self, k)
            if v:
                out[k] = v
        out.update(self.data)
        return out


class ScraperError(RuntimeError):
    pass


class ContentScraper(Protocol):
    def scrape_content(self, uri: str) -> ScraperContent: ...


class MetadataScraper(Protocol):
    def scrape_metadata(self, uri: str) -> ScraperMetadata: ...


class NullScraper:
    def scrape_content(self, uri: str) -> ScraperContent:
        return ScraperContent(uri=uri)

    def scrape_metadata(self, uri: str) -> ScraperMetadata:
        return ScraperMetadata(uri=uri)


def _http_get_json(url: str, *, timeout_s: float) -> Any:
    req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:
            raw = resp.read()
    except urllib.error.URLError as e:
        raise ScraperError(f"fetch_failed:{url}:{e}") from e
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise ScraperError(f"bad_json:{url}") from e


def _author(obj: Json) -> str:
    if obj.get("author"):
        return str(obj["author"])
    credits = obj.get("credits")
    if isinstance(credits, list) and credits and isinstance(credits[0], dict):
        return str(credits[0].get("name") or "")
    return ""


class HttpJsonMetadataScraper:
    """Fetches article metadata published as a JSON document at the revision URI."""

    def __init__(self, *, timeout_s: float = 10.0, gateway_base: Optional[str] = None) -> None:
        self._timeout_s = float(timeout_s)
        self._gateway_base = (gateway_base or "").rstrip("/")

    def _resolve(self, uri: str) -> str:
        u = str(uri or "").strip()
        if u.startswith("ipfs://") and self._gateway_base:
            return f"{self._gateway_base}/ipfs/{u[len('ipfs://'):]}"
        if not (u.startswith("http://") or u.startswith("https://")):
            raise ScraperError(f"unsupported_uri:{u}")
        return u

    def scrape_metadata(self, uri: str) -> ScraperMetadata:
        obj = _http_get_json(self._resolve(uri), timeout_s=self._timeout_s)
        if not isinstance(obj, dict):
            raise ScraperError(f"metadata_not_an_object:{uri}")
        return ScraperMetadata(
            uri=uri,
            title=str(obj.get("title") or ""),
            author=_author(obj),
            description=str(obj.get("description") or ""),
            canonical_url=str(obj.get("canonicalUrl") or obj.get("canonical_url") or ""),
            data=obj,
        )

    def scrape_content(self, uri: str) -> ScraperContent:
        obj = _http_get_json(self._resolve(uri), timeout_s=self._timeout_s)
        if not isinstance(obj, dict):
            raise ScraperError(f"content_not_an_object:{uri}")
        return ScraperContent(
            uri=uri,
            text=str(obj.get("text") or ""),
            html=str(obj.get("html") or ""),
            author=str(obj.get("author") or ""),
            data=obj,
        )


def build_metadata_scraper(kind: str, *, timeout_s: float = 10.0) -> MetadataScraper:
    if str(kind or "").strip().lower() == "http":
        return HttpJsonMetadataScraper(timeout_s=timeout_s)
    return NullScraper()
