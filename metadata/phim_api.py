import time
from urllib.parse import quote, urlencode

import httpx

from metadata.metadata_provider_base import MetadataProvider


class PhimApi(MetadataProvider):
    """Movie details by slug, cached forever in the permanent key-value tier."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, cache, timeout: float = 8.0):
        super().__init__(http_client, base_url, timeout)
        self.cache = cache

    async def get_movie(self, slug):
        self.logger.info("Getting metadata for movie " + slug)
        return await self.cache.get_or_fetch_document(
            f"movie:{slug}",
            lambda: self.get_json(f"{self.base_url}/phim/{quote(slug, safe='')}"),
        )


class CatalogProxy(MetadataProvider):
    """
    Pass-through for catalog listings.

    Responses are kept in memory and revalidated against upstream once they
    are older than ``revalidate`` seconds. At most ``max_entries`` listings
    are held; expired ones are dropped first, then the least recently fetched.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        revalidate: int = 3600,
        timeout: float = 8.0,
        max_entries: int = 500,
    ):
        super().__init__(http_client, base_url, timeout)
        self.revalidate = revalidate
        self.max_entries = max_entries
        self._cache = {}

    def build_url(self, path, params):
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = urlencode(params)
        return f"{url}?{query}" if query else url

    async def get(self, path, params):
        url = self.build_url(path, params)
        now = time.monotonic()

        entry = self._cache.get(url)
        if entry and now - entry["fetched_at"] < self.revalidate:
            self.logger.debug(f"[CATALOG HIT] {url}")
            return entry["data"]

        data = await self.get_json(url)
        self._cache.pop(url, None)
        self._ensure_space(now)
        self._cache[url] = {"data": data, "fetched_at": now}
        return data

    def _ensure_space(self, now):
        expired = [url for url, entry in self._cache.items() if now - entry["fetched_at"] >= self.revalidate]
        for url in expired:
            del self._cache[url]

        if len(self._cache) < self.max_entries:
            return
        oldest = sorted(self._cache, key=lambda url: self._cache[url]["fetched_at"])
        items_to_delete = oldest[:max(1, int(self.max_entries * 0.1))]
        for url in items_to_delete:
            del self._cache[url]
        self.logger.info(f"[CATALOG CLEANUP] Freed space. Evicted: {len(items_to_delete)}")
