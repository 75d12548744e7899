"""
microCMS Client - interview / blog articles.

Articles live in the "blog" endpoint of the headless CMS. Responses are kept
in a small in-process cache keyed by endpoint and query, so the catalogue
pages do not hit the CMS on every request. The cache is bounded: entries expire
after their TTL and the least recently used ones are evicted past max_size.
"""

import json
import logging
import threading
import time
from collections import OrderedDict
from typing import Optional, Any, Tuple

import requests

from frog_portal.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

BLOG_ENDPOINT = "blog"
LIST_FIELDS = "id,title,eyecatch,slug,publishedAt,categories,college_name,course_name"
DETAIL_TTL = 60 * 10
RELATED_TTL = 60 * 30


class CMSError(Exception):
    """Raised when the CMS returns an error or is unreachable."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


def get_optimized_image_url(image_url: Optional[str], width: int = 800, format: str = "webp", quality: int = 80) -> str:
    """Append microCMS image API parameters to an asset URL."""
    if not image_url:
        return ""
    separator = "&" if "?" in image_url else "?"
    return f"{image_url}{separator}w={width}&fm={format}&q={quality}"


class ResponseCache:
    """Thread-safe LRU cache of (stored_at, response) pairs."""

    def __init__(self, max_size: int):
        self.max_size = max(1, int(max_size))
        self._lock = threading.Lock()
        self._items: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._items)

    def get(self, key: str, ttl: float) -> Optional[Any]:
        with self._lock:
            hit = self._items.get(key)
            if hit is None:
                return None
            if time.monotonic() - hit[0] >= ttl:
                del self._items[key]
                return None
            self._items.move_to_end(key)
            return hit[1]

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._items.pop(key, None)
            self._items[key] = (time.monotonic(), value)
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


class MicroCMSClient:
    def __init__(self, session: Optional[requests.Session] = None, ttl: Optional[int] = None,
                 max_entries: Optional[int] = None):
        self.session = session or requests.Session()
        self.base_url = f"https://{settings.microcms_service_domain}.microcms.io/api/v1"
        self.ttl = ttl if ttl is not None else settings.microcms_cache_ttl
        self._cache = ResponseCache(max_entries if max_entries is not None else settings.microcms_cache_max_entries)

    def _fetch(self, endpoint: str, queries: Optional[dict]) -> dict:
        try:
            response = self.session.get(
                f"{self.base_url}/{endpoint}",
                params=queries or {},
                headers={"X-MICROCMS-API-KEY": settings.microcms_api_key},
                timeout=10,
            )
        except requests.RequestException as e:
            raise CMSError(f"microCMSに接続できません: {e}") from e

        if response.status_code == 404:
            raise CMSError("記事が見つかりません", status_code=404)
        if not response.ok:
            raise CMSError(f"microCMS error {response.status_code}", status_code=502)
        return response.json()

    def _cached(self, key: str, endpoint: str, queries: Optional[dict], force_refresh: bool, ttl: Optional[int]):
        ttl = self.ttl if ttl is None else ttl
        if not force_refresh:
            hit = self._cache.get(key, ttl)
            if hit is not None:
                return hit

        data = self._fetch(endpoint, queries)
        self._cache.set(key, data)
        return data

    def get(self, endpoint: str, queries: Optional[dict] = None, force_refresh: bool = False, ttl: Optional[int] = None) -> dict:
        key = f"{endpoint}:{json.dumps(queries or {}, sort_keys=True)}"
        return self._cached(key, endpoint, queries, force_refresh, ttl)

    def get_list(self, endpoint: str, queries: Optional[dict] = None, force_refresh: bool = False, ttl: Optional[int] = None) -> dict:
        key = f"list:{endpoint}:{json.dumps(queries or {}, sort_keys=True)}"
        return self._cached(key, endpoint, queries, force_refresh, ttl)

    # ------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------

    def list_posts(self, limit: int = 10, offset: int = 0, q: Optional[str] = None,
                   category: Optional[str] = None, force_refresh: bool = False) -> dict:
        queries = {
            "limit": limit,
            "offset": offset,
            "orders": "-publishedAt",
            "fields": LIST_FIELDS,
        }
        if q:
            queries["q"] = q
        if category:
            queries["filters"] = f"categories[contains]{category}"
        return self.get_list(BLOG_ENDPOINT, queries, force_refresh=force_refresh)

    def get_post(self, slug: str, force_refresh: bool = False) -> dict:
        return self.get(f"{BLOG_ENDPOINT}/{slug}", force_refresh=force_refresh, ttl=DETAIL_TTL)

    def related_posts(self, school_name: Optional[str] = None, course_name: Optional[str] = None, limit: int = 3) -> list:
        """Posts mentioning a school or course; CMS failures yield an empty list."""
        if school_name:
            filters = f"college_name[contains]{school_name}"
        elif course_name:
            filters = f"course_name[contains]{course_name}"
        else:
            return []
        try:
            data = self.get_list(BLOG_ENDPOINT, {"filters": filters, "limit": limit, "fields": LIST_FIELDS}, ttl=RELATED_TTL)
        except CMSError as e:
            logger.warning("Related posts lookup failed: %s", e)
            return []
        return data.get("contents", [])


def to_blog_post(item: dict) -> dict:
    """Flatten a CMS article into the API's BlogPost shape."""
    eyecatch = item.get("eyecatch") or {}
    return {
        "id": item["id"],
        "title": item.get("title", ""),
        "slug": item.get("slug") or item["id"],
        "contents": item.get("contents"),
        "eyecatch_url": get_optimized_image_url(eyecatch.get("url")) or None,
        "college_name": item.get("college_name"),
        "course_name": item.get("course_name"),
        "categories": [c.get("name", "") for c in item.get("categories") or []],
        "publishedAt": item.get("publishedAt"),
    }


# Singleton instance
_cms_client: MicroCMSClient = None


def get_cms_client() -> MicroCMSClient:
    """Get or create microCMS client (singleton pattern)"""
    global _cms_client
    if _cms_client is None:
        _cms_client = MicroCMSClient()
    return _cms_client
