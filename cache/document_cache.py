from typing import Any, Awaitable, Callable, Dict, Optional

from cache.coalescer import RequestCoalescer
from cache.kv_store import KeyValueStore
from utils.errors import CacheCorruption
from utils.logger import setup_logger

logger = setup_logger(__name__)

_MISSING = object()


def is_document(value: Any) -> bool:
    return isinstance(value, dict)


class DocumentCache:
    """
    Fetch-once, cache-forever documents on top of a ``KeyValueStore``.

    A stored value that fails ``validator`` (or cannot be decoded) is deleted
    and treated as a miss, so the caller only ever sees fresh or valid data.
    """

    def __init__(
        self,
        store: KeyValueStore,
        coalescer: Optional[RequestCoalescer] = None,
        validator: Callable[[Any], bool] = is_document,
    ):
        self.store = store
        self.coalescer = coalescer or RequestCoalescer()
        self.validator = validator
        self.stats = {"hits": 0, "misses": 0, "corrupted": 0}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            value = await self.store.get(key, _MISSING)
            if value is _MISSING:
                return None
            if not self.validator(value):
                raise CacheCorruption(key, value)
            return value
        except CacheCorruption:
            logger.warning(f"[KV CORRUPT] Dropping malformed entry {key}")
            self.stats["corrupted"] += 1
            await self.store.delete(key)
            return None

    async def get_or_fetch(self, key: str, fetch_fn: Callable[[], Awaitable[Any]]) -> Any:
        cached = await self.get(key)
        if cached is not None:
            self.stats["hits"] += 1
            logger.info(f"[KV HIT] {key}")
            return cached

        self.stats["misses"] += 1
        logger.info(f"[KV MISS] {key}")
        return await self.coalescer.get_or_fetch(key, lambda: self._fetch_and_store(key, fetch_fn))

    async def _fetch_and_store(self, key, fetch_fn):
        value = await fetch_fn()
        if self.validator(value):
            await self.store.set(key, value)
        else:
            logger.warning(f"[KV] Upstream value for {key} is not cacheable, skipping store")
        return value
