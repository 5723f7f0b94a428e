import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class PlaybackHandle:
    id: str
    source_url: str
    content: str
    content_type: str
    created_at: float = field(default_factory=time.time)
    last_access: float = field(default_factory=time.time)


class ObjectCache:
    """
    In-process map from absolute manifest URL to a ready-to-play handle.

    Lives as long as the process. When full, the least recently used 10 %
    of the entries are dropped.
    """

    def __init__(self, max_size: int = 2000):
        self.max_size = max_size
        self._by_url: Dict[str, PlaybackHandle] = {}
        self._by_id: Dict[str, PlaybackHandle] = {}

    def __len__(self):
        return len(self._by_url)

    def get(self, url: str) -> Optional[PlaybackHandle]:
        handle = self._by_url.get(url)
        if handle is not None:
            handle.last_access = time.time()
        return handle

    def get_by_id(self, handle_id: str) -> Optional[PlaybackHandle]:
        handle = self._by_id.get(handle_id)
        if handle is not None:
            handle.last_access = time.time()
        return handle

    def put(self, url: str, content: str, content_type: str) -> PlaybackHandle:
        self._ensure_space()
        self.evict(url)
        handle = PlaybackHandle(
            id=uuid.uuid4().hex,
            source_url=url,
            content=content,
            content_type=content_type,
        )
        self._by_url[url] = handle
        self._by_id[handle.id] = handle
        return handle

    def evict(self, url: str) -> bool:
        handle = self._by_url.pop(url, None)
        if handle is None:
            return False
        self._by_id.pop(handle.id, None)
        return True

    def source_urls(self) -> List[str]:
        return list(self._by_url)

    def _ensure_space(self):
        if len(self._by_url) < self.max_size:
            return
        oldest = sorted(self._by_url.values(), key=lambda h: h.last_access)
        items_to_delete = oldest[:max(1, int(self.max_size * 0.1))]
        for handle in items_to_delete:
            self.evict(handle.source_url)
        logger.info(f"[CACHE CLEANUP] Freed space. Evicted: {len(items_to_delete)}")
