"""
Tests for the chat synchronization layer.

The backend is the in-memory FakeBackend, so every backend call completes
without suspending and cache state can be inspected between steps.
"""

import asyncio
from unittest import mock

import pytest

from fakes import FakeBackend, chat_row
from roomchat.app.errors import FetchError
from roomchat.app.schemas import ChatCreate, ChatEdit, ChatRecord
from roomchat.app.services import chat_sync
from roomchat.app.services.chat_sync import CHATS_QUERY_KEY, ChatSync
from roomchat.app.services.input_state import InputState


def _ids(sync):
    return [c.id for c in sync.chats]


def _snapshot(sync):
    return [c.model_dump() for c in sync.chats]


def _make(rows=None, draft="draft"):
    backend = FakeBackend(rows)
    state = InputState(draft)
    return backend, state, ChatSync(backend, state)


class TestFetchAll:
    def test_cache_matches_backend_ordered_by_updated_at(self):
        backend, _, sync = _make([chat_row("b", "T2"), chat_row("a", "T1"), chat_row("c", "T3")])

        result = asyncio.run(sync.fetch_all())

        assert [c.id for c in result] == ["a", "b", "c"]
        assert _ids(sync) == ["a", "b", "c"]
        assert backend.calls == [("select", "message")]

    def test_records_accept_backend_column_names(self):
        _, _, sync = _make([chat_row("a", "T1", room="room-7", user="user-3")])

        asyncio.run(sync.fetch_all())

        record = sync.chats[0]
        assert record.roomId == "room-7"
        assert record.userId == "user-3"
        assert record.published is False

    def test_fetch_error_is_raised_and_cache_kept(self):
        backend, _, sync = _make([chat_row("a", "T1")])

        async def scenario():
            await sync.fetch_all()
            backend.errors["select"] = "connection reset"
            with pytest.raises(FetchError) as excinfo:
                await sync.fetch_all()
            return excinfo.value

        err = asyncio.run(scenario())

        assert err.message == "connection reset"
        assert _ids(sync) == ["a"]
        state = sync.cache.get_state(CHATS_QUERY_KEY)
        assert state.status == "error"
        assert state.error == "connection reset"

    def test_concurrent_fetches_share_one_request(self):
        backend, _, sync = _make([chat_row("a", "T1")])

        async def scenario():
            return await asyncio.gather(sync.fetch_all(), sync.fetch_all())

        first, second = asyncio.run(scenario())

        assert backend.count("select") == 1
        assert first == second

    def test_not_loaded_before_first_fetch(self):
        _, _, sync = _make([chat_row("a", "T1")])

        assert sync.loaded is False
        assert sync.chats == []

    def test_chats_in_room(self):
        _, _, sync = _make([chat_row("a", "T1", room="r1"), chat_row("b", "T2", room="r2"), chat_row("c", "T3", room="r1")])

        asyncio.run(sync.fetch_all())

        assert [c.id for c in sync.chats_in_room("r1")] == ["a", "c"]
        assert sync.chats_in_room("missing") == []


class TestCreate:
    def test_appends_returned_row_without_resorting(self):
        backend, state, sync = _make([chat_row("a", "T5"), chat_row("b", "T6")])
        backend.now = "T1"

        async def scenario():
            await sync.fetch_all()
            return await sync.create(ChatCreate(title="x", roomId="r1", userId="u1"))

        created = asyncio.run(scenario())

        assert created.id == "id-1"
        assert created.updatedAt == "T1"
        assert _ids(sync) == ["a", "b", "id-1"]
        assert state.value == "draft"

    def test_sends_insert_with_backend_columns(self):
        backend, _, sync = _make()

        async def scenario():
            await sync.fetch_all()
            await sync.create(ChatCreate(title="x", roomId="r1", userId="u1"))

        asyncio.run(scenario())

        stored = backend.rows[0]
        assert stored["room_id"] == "r1"
        assert stored["user_id"] == "u1"
        assert "id" not in ChatCreate(title="x", roomId="r1", userId="u1").to_row()

    def test_failure_leaves_cache_and_input_untouched(self):
        backend, state, sync = _make([chat_row("a", "T1"), chat_row("b", "T2")])

        async def scenario():
            await sync.fetch_all()
            before = _snapshot(sync)
            backend.errors["insert"] = "permission denied for table message"
            with mock.patch.object(chat_sync.log, "error") as log_error:
                created = await sync.create(ChatCreate(title="x", roomId="r1", userId="u1"))
            return before, created, log_error

        before, created, log_error = asyncio.run(scenario())

        assert created is None
        assert _snapshot(sync) == before
        assert state.value == "draft"
        log_error.assert_called_once()
        assert "permission denied" in log_error.call_args[0][0]
        assert backend.count("insert") == 1

    def test_does_not_duplicate_row_already_picked_up_by_poll(self):
        backend, _, sync = _make([chat_row("a", "T1")])

        async def scenario():
            await sync.fetch_all()
            polled = ChatRecord.model_validate(chat_row("id-1", "T9", title="x"))
            sync.cache.set_data(CHATS_QUERY_KEY, lambda prev: prev + [polled])
            await sync.create(ChatCreate(title="x", roomId="r1", userId="u1"))

        asyncio.run(scenario())

        assert _ids(sync) == ["a", "id-1"]

    def test_before_first_load_cache_stays_empty(self):
        backend, _, sync = _make()

        created = asyncio.run(sync.create(ChatCreate(title="x", roomId="r1", userId="u1")))

        assert created is not None
        assert sync.loaded is False
        assert len(backend.rows) == 1


class TestUpdate:
    def test_replaces_matching_entry_then_refetches(self):
        backend, state, sync = _make([chat_row("a", "T1"), chat_row("b", "T2")])

        async def scenario():
            await sync.fetch_all()
            selects = backend.count("select")
            backend.now = "T3"
            updated = await sync.update(ChatEdit(id="a", title="hi"))
            patched = [(c.id, c.title, c.updatedAt) for c in sync.chats]
            await sync.cache.wait_idle()
            return selects, updated, patched

        selects, updated, patched = asyncio.run(scenario())

        assert updated.title == "hi"
        assert patched == [("a", "hi", "T3"), ("b", "b-title", "T2")]
        assert backend.count("select") == selects + 1
        # reconciliation restores updatedAt order
        assert _ids(sync) == ["b", "a"]
        assert state.value == ""

    def test_only_title_is_sent(self):
        backend, _, sync = _make([chat_row("a", "T1")])

        async def scenario():
            await sync.fetch_all()
            await sync.update(ChatEdit(id="a", title="hi"))
            await sync.cache.wait_idle()

        with mock.patch.object(backend, "update", wraps=backend.update) as update:
            asyncio.run(scenario())

        update.assert_called_once_with("message", {"title": "hi"}, {"id": "a"})

    def test_failure_keeps_cache_and_clears_input(self):
        backend, state, sync = _make([chat_row("a", "T1"), chat_row("b", "T2")])

        async def scenario():
            await sync.fetch_all()
            before = _snapshot(sync)
            selects = backend.count("select")
            backend.errors["update"] = "row level security"
            with mock.patch.object(chat_sync.log, "error") as log_error:
                updated = await sync.update(ChatEdit(id="a", title="hi"))
            await sync.cache.wait_idle()
            return before, selects, updated, log_error

        before, selects, updated, log_error = asyncio.run(scenario())

        assert updated is None
        assert _snapshot(sync) == before
        assert backend.count("select") == selects
        assert state.value == ""
        log_error.assert_called_once()

    def test_unknown_id_changes_nothing_but_clears_input(self):
        _, state, sync = _make([chat_row("a", "T1")])

        async def scenario():
            await sync.fetch_all()
            before = _snapshot(sync)
            updated = await sync.update(ChatEdit(id="zzz", title="hi"))
            await sync.cache.wait_idle()
            return before, updated

        before, updated = asyncio.run(scenario())

        assert updated is None
        assert _snapshot(sync) == before
        assert state.value == ""


class TestDelete:
    def test_removes_only_matching_entry(self):
        backend, state, sync = _make([chat_row("a", "T1"), chat_row("b", "T2")])

        async def scenario():
            await sync.fetch_all()
            return await sync.delete("b")

        assert asyncio.run(scenario()) is True
        assert _ids(sync) == ["a"]
        assert [r["id"] for r in backend.rows] == ["a"]
        assert state.value == ""

    def test_failure_keeps_cache_and_clears_input(self):
        backend, state, sync = _make([chat_row("a", "T1"), chat_row("b", "T2")])

        async def scenario():
            await sync.fetch_all()
            before = _snapshot(sync)
            backend.errors["delete"] = "timeout"
            with mock.patch.object(chat_sync.log, "error") as log_error:
                deleted = await sync.delete("b")
            return before, deleted, log_error

        before, deleted, log_error = asyncio.run(scenario())

        assert deleted is False
        assert _snapshot(sync) == before
        assert state.value == ""
        log_error.assert_called_once()

    def test_same_table_used_for_every_operation(self):
        backend = FakeBackend([chat_row("a", "T1")], table="chat")
        sync = ChatSync(backend, InputState(), table="chat")

        async def scenario():
            await sync.fetch_all()
            await sync.create(ChatCreate(title="x", roomId="r1", userId="u1"))
            await sync.update(ChatEdit(id="a", title="y"))
            await sync.delete("a")
            await sync.cache.wait_idle()

        asyncio.run(scenario())

        assert {table for _, table in backend.calls} == {"chat"}


class TestPolling:
    def test_start_polls_until_stopped(self):
        backend, _, _ = _make([chat_row("a", "T1")])
        intervals = []

        async def fast_sleep(delay):
            intervals.append(delay)
            await asyncio.sleep(0)

        async def scenario():
            sync = ChatSync(backend, InputState(), poll_interval=0.25, sleep=fast_sleep)
            sync.start()
            while backend.count("select") < 3:
                await asyncio.sleep(0)
            await sync.stop()
            return sync

        sync = asyncio.run(asyncio.wait_for(scenario(), timeout=5))

        assert sync.poller.running is False
        assert _ids(sync) == ["a"]
        assert set(intervals) == {0.25}

    def test_poll_failure_does_not_stop_polling(self):
        backend, _, _ = _make([chat_row("a", "T1")])
        backend.errors["select"] = "503 Service Unavailable"

        async def fast_sleep(_):
            if backend.count("select") >= 2:
                backend.errors.pop("select", None)
            await asyncio.sleep(0)

        async def scenario():
            sync = ChatSync(backend, InputState(), sleep=fast_sleep)
            sync.start()
            while not sync.loaded:
                await asyncio.sleep(0)
            await sync.stop()
            return sync

        sync = asyncio.run(asyncio.wait_for(scenario(), timeout=5))

        assert sync.poller.failures == 2
        assert _ids(sync) == ["a"]
