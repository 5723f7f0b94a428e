"""
One entry point for every cache tier sitting in front of the manifest cleaner.

- edge: Cache-Control headers for proxied responses
- request: processed responses keyed by inbound request identity
- object: in-process playable handles keyed by manifest URL
- documents: permanent key-value store for metadata payloads

Each miss goes through a shared ``RequestCoalescer`` so concurrent callers
for the same key wait for one fetch+transform instead of starting their own.
"""
from typing import Any, Awaitable, Callable, Dict

from cache.coalescer import RequestCoalescer
from cache.document_cache import DocumentCache
from cache.edge import EdgeCachePolicy
from cache.object_cache import ObjectCache, PlaybackHandle
from cache.request_cache import CachedManifest, RequestCache
from utils.logger import setup_logger
from utils.manifest_cleaner import ManifestCleaner, ManifestResult

logger = setup_logger(__name__)


class CacheTierManager:
    def __init__(
        self,
        cleaner: ManifestCleaner,
        edge: EdgeCachePolicy,
        request_cache: RequestCache,
        object_cache: ObjectCache,
        documents: DocumentCache,
        coalescer: RequestCoalescer,
    ):
        self.cleaner = cleaner
        self.edge = edge
        self.request_cache = request_cache
        self.object_cache = object_cache
        self.documents = documents
        self.coalescer = coalescer
        self._stats = {"object_hits": 0, "object_misses": 0}

    def cache_control(self, manifest_url: str) -> str:
        return self.edge.cache_control(manifest_url)

    async def clean(self, manifest_url: str) -> ManifestResult:
        return await self.coalescer.get_or_fetch(
            f"clean:{manifest_url}",
            lambda: self.cleaner.resolve_and_clean(manifest_url),
        )

    async def cached_response(self, identity: str, manifest_url: str) -> CachedManifest:
        async def process():
            result = await self.clean(manifest_url)
            logger.info(f"[REQUEST CACHE] Stored processed playlist: {manifest_url[:60]}")
            return CachedManifest(
                url=result.url,
                content=result.content,
                content_type=result.content_type,
                suspicious=result.suspicious,
            )

        return await self.request_cache.get_or_process(identity, process)

    async def playback_handle(self, manifest_url: str) -> PlaybackHandle:
        handle = self.object_cache.get(manifest_url)
        if handle is not None:
            self._stats["object_hits"] += 1
            logger.info(f"[CACHE HIT] {manifest_url[:60]}...")
            return handle

        self._stats["object_misses"] += 1

        async def produce():
            # A concurrent caller may have filled the entry while we queued.
            existing = self.object_cache.get(manifest_url)
            if existing is not None:
                return existing
            result = await self.clean(manifest_url)
            return self.object_cache.put(manifest_url, result.content, result.content_type)

        return await self.coalescer.get_or_fetch(f"handle:{manifest_url}", produce)

    async def get_or_fetch_document(self, key: str, fetch_fn: Callable[[], Awaitable[Any]]) -> Any:
        return await self.documents.get_or_fetch(key, fetch_fn)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "object_entries": len(self.object_cache),
            **self._stats,
            "request_cache": dict(self.request_cache.stats),
            "documents": dict(self.documents.stats),
            "coalescer": self.coalescer.get_stats(),
        }
