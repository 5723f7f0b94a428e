import re
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable

from cache.coalescer import RequestCoalescer
from cache.document_cache import DocumentCache
from cache.kv_store import KeyValueStore
from utils.logger import setup_logger

logger = setup_logger(__name__)

_VERSIONED_NAMESPACE = re.compile(r"(?P<family>.+)-v\d+\Z")


@dataclass
class CachedManifest:
    url: str
    content: str
    content_type: str
    suspicious: bool = False


def _is_cached_manifest(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("content"), str)
        and isinstance(value.get("content_type"), str)
        and isinstance(value.get("url"), str)
    )


def _from_document(value):
    return CachedManifest(
        url=value["url"],
        content=value["content"],
        content_type=value["content_type"],
        suspicious=bool(value.get("suspicious", False)),
    )


def request_identity(method: str, url: str) -> str:
    return f"{method.upper()} {url}"


class RequestCache:
    """
    Processed responses stored under the identity of the inbound request.

    Entries live under a versioned namespace; bumping the name orphans every
    older entry and ``purge_other_versions`` removes them.
    """

    def __init__(self, store: KeyValueStore, namespace: str, coalescer: RequestCoalescer = None):
        self.store = store
        self.namespace = namespace
        self.documents = DocumentCache(store, coalescer, validator=_is_cached_manifest)

    def _key(self, identity):
        return f"{self.namespace}:{identity}"

    async def get(self, identity: str):
        value = await self.documents.get(self._key(identity))
        return _from_document(value) if value is not None else None

    async def get_or_process(self, identity: str, process_fn: Callable[[], Awaitable[CachedManifest]]) -> CachedManifest:
        async def produce():
            return asdict(await process_fn())

        value = await self.documents.get_or_fetch(self._key(identity), produce)
        return _from_document(value)

    async def purge_other_versions(self) -> int:
        match = _VERSIONED_NAMESPACE.match(self.namespace)
        if match is None:
            logger.debug(f"[REQUEST CACHE] {self.namespace} has no version suffix, nothing to purge")
            return 0

        family = match.group("family")
        sibling = re.compile(rf"{re.escape(family)}-v\d+:")
        current = f"{self.namespace}:"
        stale = [
            key for key in await self.store.keys(f"{family}-v")
            if sibling.match(key) and not key.startswith(current)
        ]
        for key in stale:
            await self.store.delete(key)
        if stale:
            logger.info(f"[REQUEST CACHE] Deleted {len(stale)} entries from old cache versions")
        return len(stale)

    @property
    def stats(self):
        return self.documents.stats
