"""
Single-slot TTL cache with an injected clock and single-flight refresh.

One TTLCache instance guards one upstream snapshot (all tags, all live
events, ...). A read inside the freshness window never touches upstream.
Concurrent callers that miss at the same time await one shared in-flight
fetch instead of each issuing their own.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

FetchFn = Callable[[], Awaitable[T]]


class TTLCache(Generic[T]):
    """
    Contract:
      get_or_refresh(fetch_fn) -> T
        slot empty, or now - last_refresh >= duration → call fetch_fn,
        store with a fresh timestamp, return. Otherwise return stored payload.
      clear() empties the slot unconditionally.

    A failed fetch propagates to every waiter and leaves the slot as it was.
    """

    def __init__(
        self,
        duration: float,
        fetch_fn: Optional[FetchFn] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        self.duration = duration
        self.name = name
        self._fetch_fn = fetch_fn
        self._clock = clock
        self._payload: Optional[T] = None
        self._has_value = False
        self._last_refresh: Optional[float] = None
        self._inflight: Optional[asyncio.Task] = None

    def is_fresh(self) -> bool:
        if not self._has_value or self._last_refresh is None:
            return False
        return self._clock() - self._last_refresh < self.duration

    async def get_or_refresh(self, fetch_fn: Optional[FetchFn] = None) -> T:
        if self.is_fresh():
            return self._payload

        fn = fetch_fn or self._fetch_fn
        if fn is None:
            raise ValueError(f"TTLCache '{self.name}' has no fetch function")

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._refresh(fn))
        # shield: one caller being cancelled must not cancel the shared fetch
        return await asyncio.shield(self._inflight)

    async def _refresh(self, fn: FetchFn) -> T:
        started = self._clock()
        try:
            payload = await fn()
        finally:
            self._inflight = None
        self._payload = payload
        self._has_value = True
        self._last_refresh = started
        size = len(payload) if hasattr(payload, "__len__") else "?"
        logger.info(f"[{self.name}] refreshed ({size} entries)")
        return payload

    def peek(self) -> Optional[T]:
        """Current payload without refreshing (None when empty)."""
        return self._payload if self._has_value else None

    def age(self) -> Optional[float]:
        """Seconds since the last successful refresh, None when empty."""
        if self._last_refresh is None:
            return None
        return self._clock() - self._last_refresh

    def clear(self) -> None:
        self._payload = None
        self._has_value = False
        self._last_refresh = None
