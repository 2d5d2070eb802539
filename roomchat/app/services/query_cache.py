import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..core.logger import get_logger

log = get_logger("services.query_cache")

Fetcher = Callable[[], Awaitable[Any]]


@dataclass
class QueryState:
    data: Any = None
    error: Optional[str] = None
    status: str = "pending"
    data_updated_at: Optional[float] = None
    fetch_count: int = 0
    is_fetching: bool = False
    is_invalidated: bool = False


class QueryCache:
    """
    Keyed store of query results.

    Entries are never discarded; a successful fetch replaces the data and a
    failed one only records the error. Concurrent fetches of one key share a
    single request, and a response is dropped if a newer request for the
    same key has already been applied.
    """

    def __init__(self):
        self._queries: Dict[str, QueryState] = {}
        self._fetchers: Dict[str, Fetcher] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._issued: Dict[str, int] = {}
        self._applied: Dict[str, int] = {}
        self._background: Set[asyncio.Task] = set()

    def register(self, key: str, fetcher: Fetcher) -> None:
        self._fetchers[key] = fetcher
        self._queries.setdefault(key, QueryState())

    def get_state(self, key: str) -> QueryState:
        return self._queries.setdefault(key, QueryState())

    def get_data(self, key: str) -> Any:
        state = self._queries.get(key)
        return state.data if state else None

    def set_data(self, key: str, value: Any) -> Any:
        """Replace the cached data. ``value`` may be a callable of the previous data."""
        state = self.get_state(key)
        new = value(state.data) if callable(value) else value
        state.data = new
        state.data_updated_at = time.time()
        return new

    async def fetch(self, key: str, *, force: bool = False) -> Any:
        fetcher = self._fetchers.get(key)
        if fetcher is None:
            raise KeyError(f"no fetcher registered for {key!r}")

        task = self._inflight.get(key)
        if task is None or force:
            seq = self._issued.get(key, 0) + 1
            self._issued[key] = seq
            task = asyncio.get_running_loop().create_task(self._run_fetch(key, fetcher, seq))
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _run_fetch(self, key: str, fetcher: Fetcher, seq: int) -> Any:
        state = self.get_state(key)
        state.is_fetching = True
        state.fetch_count += 1
        try:
            data = await fetcher()
        except Exception as e:
            if seq > self._applied.get(key, 0):
                self._applied[key] = seq
                state.error = getattr(e, "message", None) or str(e)
                state.status = "error"
            raise
        else:
            if seq > self._applied.get(key, 0):
                self._applied[key] = seq
                state.data = data
                state.data_updated_at = time.time()
                state.error = None
                state.status = "success"
                state.is_invalidated = False
            else:
                log.debug(f"[{key}] dropping response #{seq}, newer result already applied")
            return data
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]
                state.is_fetching = False

    def invalidate(self, key: str) -> Optional[asyncio.Task]:
        """Mark ``key`` stale and refetch it in the background."""
        if key not in self._fetchers:
            return None
        self.get_state(key).is_invalidated = True
        task = asyncio.get_running_loop().create_task(self._refetch(key))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _refetch(self, key: str) -> None:
        try:
            await self.fetch(key, force=True)
        except Exception as e:
            log.warning(f"[{key}] refetch after invalidation failed: {e}")

    async def wait_idle(self) -> None:
        while self._background or self._inflight:
            pending = list(self._background) + list(self._inflight.values())
            await asyncio.gather(*pending, return_exceptions=True)
