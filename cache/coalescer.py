"""
Request coalescing so concurrent misses for one key share a single fetch.

The first caller for a key runs ``fetch_fn``; callers arriving while it is
in flight await the same future and receive the same result or exception.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict

from utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class InFlightRequest:
    future: asyncio.Future
    started_at: float = field(default_factory=time.monotonic)
    waiter_count: int = 0


class RequestCoalescer:
    def __init__(self, timeout: float = 30.0):
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._timeout = timeout

    async def get_or_fetch(self, cache_key: str, fetch_fn: Callable[[], Awaitable[Any]]) -> Any:
        in_flight = self._in_flight.get(cache_key)
        if in_flight is not None:
            in_flight.waiter_count += 1
            logger.debug(f"Coalescing request for {cache_key} (waiters: {in_flight.waiter_count})")
            try:
                return await asyncio.wait_for(asyncio.shield(in_flight.future), self._timeout)
            except asyncio.TimeoutError:
                logger.error(f"Timeout waiting for coalesced request: {cache_key}")
                raise TimeoutError(f"Request for {cache_key} timed out after {self._timeout}s")

        future = asyncio.get_running_loop().create_future()
        self._in_flight[cache_key] = InFlightRequest(future=future)
        logger.debug(f"Initiating fetch for {cache_key}")

        try:
            result = await fetch_fn()
        except Exception as e:
            logger.warning(f"Fetch failed for {cache_key}: {e}")
            future.set_exception(e)
            # Mark retrieved so a failure nobody waited on is not reported again.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            if not future.done():
                future.cancel()
            self._in_flight.pop(cache_key, None)

    @property
    def active_requests(self) -> int:
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "active_requests": self.active_requests,
            "active_keys": list(self._in_flight.keys()),
        }
