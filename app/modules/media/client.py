# app/modules/media/client.py

"""
TMDb-backed media enrichment.

describe() returns a title and poster URL for a watchlist item, or raises
MediaUnavailableError. Successful lookups are cached in Redis.
"""

import logging
from typing import Optional, Protocol

import httpx

from app.core.cache import Cache, cache as default_cache
from app.core.config import settings
from app.modules.matches.schemas import MediaDetails, MediaKind

logger = logging.getLogger(__name__)


class MediaUnavailableError(Exception):
    """Metadata for one item could not be fetched."""


class MediaEnrichment(Protocol):
    async def describe(self, content_id: int, media_kind: MediaKind) -> MediaDetails: ...


class TMDbClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[Cache] = None,
    ):
        self.api_key = api_key or settings.TMDB_API_KEY
        self.base_url = (base_url or settings.TMDB_BASE_URL).rstrip("/")
        self.http_client = http_client
        self.cache = cache or default_cache

    @staticmethod
    def _cache_key(content_id: int, media_kind: MediaKind) -> str:
        return f"media:{media_kind.value}:{content_id}"

    async def describe(self, content_id: int, media_kind: MediaKind) -> MediaDetails:
        key = self._cache_key(content_id, media_kind)
        try:
            cached = await self.cache.get_json(key)
        except Exception as ex:
            logger.warning("Media cache read failed for %s: %s", key, ex)
            cached = None
        if cached:
            return MediaDetails(**cached)

        details = await self._fetch(content_id, media_kind)

        try:
            await self.cache.set_json(
                key, details.model_dump(), ttl=settings.MEDIA_CACHE_TTL_SECONDS
            )
        except Exception as ex:
            logger.warning("Media cache write failed for %s: %s", key, ex)
        return details

    async def _fetch(self, content_id: int, media_kind: MediaKind) -> MediaDetails:
        if not self.api_key:
            raise MediaUnavailableError("TMDB_API_KEY is not configured")

        url = f"{self.base_url}/{media_kind.value}/{content_id}"
        try:
            if self.http_client is not None:
                response = await self.http_client.get(url, params={"api_key": self.api_key})
            else:
                async with httpx.AsyncClient(timeout=settings.TMDB_TIMEOUT_SECONDS) as client:
                    response = await client.get(url, params={"api_key": self.api_key})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as ex:
            raise MediaUnavailableError(f"TMDb lookup failed for {url}: {ex}") from ex

        # Movies carry "title", TV shows carry "name"
        title = data.get("title") or data.get("name")
        if not title:
            raise MediaUnavailableError(f"TMDb returned no title for {media_kind.value} {content_id}")

        poster_path = data.get("poster_path")
        poster = f"{settings.TMDB_IMAGE_BASE_URL}{poster_path}" if poster_path else None
        return MediaDetails(title=title, poster=poster)
