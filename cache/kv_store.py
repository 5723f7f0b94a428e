import json
from typing import Any, Dict, List, Optional

import redis.asyncio as redis

from utils.errors import CacheCorruption
from utils.logger import setup_logger

logger = setup_logger(__name__)


def _encode(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _decode(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise CacheCorruption(key, raw) from e


class KeyValueStore:
    """
    Permanent key-value storage: values never expire on their own.

    Values are JSON documents. ``get`` returns ``default`` for a missing key
    and raises ``CacheCorruption`` when the stored bytes are not JSON.
    """

    async def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    async def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def keys(self, prefix: str = "") -> List[str]:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class MemoryStore(KeyValueStore):
    """Process-local backend, used when no Redis URL is configured."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key, default=None):
        if key not in self._data:
            return default
        return _decode(key, self._data[key])

    async def set(self, key, value):
        self._data[key] = _encode(value)

    async def delete(self, key):
        self._data.pop(key, None)

    async def keys(self, prefix=""):
        return [key for key in self._data if key.startswith(prefix)]


class RedisStore(KeyValueStore):
    def __init__(self, client: "redis.Redis"):
        self.client = client

    @classmethod
    def from_url(cls, url: str):
        return cls(redis.Redis.from_url(url, decode_responses=True))

    async def get(self, key, default=None):
        raw = await self.client.get(key)
        if raw is None:
            return default
        return _decode(key, raw)

    async def set(self, key, value):
        await self.client.set(key, _encode(value))

    async def delete(self, key):
        await self.client.delete(key)

    async def keys(self, prefix=""):
        return [key async for key in self.client.scan_iter(match=f"{prefix}*")]

    async def close(self):
        await self.client.aclose()


def build_store(redis_url: Optional[str]) -> KeyValueStore:
    if redis_url:
        logger.info("[STORE] Using Redis for permanent cache")
        return RedisStore.from_url(redis_url)
    logger.info("[STORE] REDIS_URL not set, permanent cache is in-memory")
    return MemoryStore()
