import asyncio
from typing import List, Optional

from ..core.logger import get_logger
from ..errors import FetchError, RemoteOperationError
from ..schemas.chat import ChatCreate, ChatEdit, ChatRecord
from .backend import BackendResult, ChatBackend
from .input_state import InputState
from .polling import PollingTask, SleepFn
from .query_cache import QueryCache

log = get_logger("services.chat_sync")

CHATS_QUERY_KEY = "query:chats"
DEFAULT_POLL_INTERVAL = 0.25


def _raise_for(result: BackendResult, operation: str) -> List[ChatRecord]:
    if result.error is not None:
        raise RemoteOperationError(result.error, operation=operation)
    return [ChatRecord.model_validate(row) for row in (result.data or [])]


class ChatSync:
    """
    Local, periodically refreshed view of the chat collection.

    Mutations go to the backend first and patch the cached collection from
    the backend's response. Mutation failures are logged and leave the cache
    as it was; fetch failures are raised to the caller.
    """

    def __init__(
        self,
        backend: ChatBackend,
        input_state: InputState,
        cache: Optional[QueryCache] = None,
        *,
        table: str = "message",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._backend = backend
        self._input = input_state
        self._cache = cache or QueryCache()
        self._table = table
        self._cache.register(CHATS_QUERY_KEY, self._select_all)
        self._poller = PollingTask(self._poll, poll_interval, name=CHATS_QUERY_KEY, sleep=sleep)

    @property
    def cache(self) -> QueryCache:
        return self._cache

    @property
    def poller(self) -> PollingTask:
        return self._poller

    @property
    def input_state(self) -> InputState:
        return self._input

    @property
    def chats(self) -> List[ChatRecord]:
        return list(self._cache.get_data(CHATS_QUERY_KEY) or [])

    @property
    def loaded(self) -> bool:
        return self._cache.get_data(CHATS_QUERY_KEY) is not None

    def chats_in_room(self, room_id: str) -> List[ChatRecord]:
        return [c for c in self.chats if c.roomId == room_id]

    # ------------------------------------------------------------

    async def _select_all(self) -> List[ChatRecord]:
        result = await self._backend.select(self._table, order=("updatedAt", True))
        if result.error is not None:
            raise FetchError(result.error)
        return [ChatRecord.model_validate(row) for row in (result.data or [])]

    async def fetch_all(self) -> List[ChatRecord]:
        return await self._cache.fetch(CHATS_QUERY_KEY)

    async def _poll(self) -> None:
        await self.fetch_all()

    def start(self) -> PollingTask:
        return self._poller.start()

    async def stop(self) -> None:
        await self._poller.stop()
        await self._cache.wait_idle()

    # ------------------------------------------------------------

    async def create(self, chat: ChatCreate) -> Optional[ChatRecord]:
        try:
            result = await self._backend.insert(self._table, chat.to_row())
            rows = _raise_for(result, "insert")
        except RemoteOperationError as e:
            log.error(f"create failed: {e.message}")
            return None

        created = rows[0] if rows else None
        if created is None:
            log.warning("create returned no row, cache left unchanged")
            return None

        def append(previous: Optional[List[ChatRecord]]) -> Optional[List[ChatRecord]]:
            if previous is None:
                return previous
            # a poll may already have picked the row up
            kept = [c for c in previous if c.id != created.id]
            return kept + [created]

        self._cache.set_data(CHATS_QUERY_KEY, append)
        log.debug(f"create: appended {created.id}")
        return created

    async def update(self, chat: ChatEdit) -> Optional[ChatRecord]:
        try:
            try:
                result = await self._backend.update(self._table, {"title": chat.title}, {"id": chat.id})
                rows = _raise_for(result, "update")
            except RemoteOperationError as e:
                log.error(f"update of {chat.id} failed: {e.message}")
                return None

            self._cache.invalidate(CHATS_QUERY_KEY)

            updated = rows[0] if rows else None
            if updated is None:
                log.warning(f"update of {chat.id} matched no row")
                return None

            def replace(previous: Optional[List[ChatRecord]]) -> Optional[List[ChatRecord]]:
                if previous is None:
                    return previous
                return [updated if c.id == chat.id else c for c in previous]

            self._cache.set_data(CHATS_QUERY_KEY, replace)
            log.debug(f"update: replaced {chat.id}")
            return updated
        finally:
            self._input.clear()

    async def delete(self, chat_id: str) -> bool:
        try:
            try:
                result = await self._backend.delete(self._table, {"id": chat_id})
                _raise_for(result, "delete")
            except RemoteOperationError as e:
                log.error(f"delete of {chat_id} failed: {e.message}")
                return False

            def remove(previous: Optional[List[ChatRecord]]) -> Optional[List[ChatRecord]]:
                if previous is None:
                    return previous
                return [c for c in previous if c.id != chat_id]

            self._cache.set_data(CHATS_QUERY_KEY, remove)
            log.debug(f"delete: removed {chat_id}")
            return True
        finally:
            self._input.clear()
